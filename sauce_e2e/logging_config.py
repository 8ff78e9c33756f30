"""Structured logging setup for the command line runner."""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog with ISO timestamps and the console renderer."""
    numeric_level = getattr(logging, str(level).strip().upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        # Resolve sys.stdout per call so redirected/captured output keeps working.
        cache_logger_on_first_use=False,
    )
