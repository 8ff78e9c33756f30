"""Command line entry point: run the login checks across the browser matrix."""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from .capabilities import enabled_capabilities, filter_capabilities
from .config import MAX_CONCURRENCY, load_config
from .credentials import load_credentials
from .exceptions import ConfigurationError, CredentialsError
from .logging_config import configure_logging
from .report_generator import ReportGenerator
from .runner import expand_capabilities, run_matrix
from .scenarios import LOGIN_SCENARIOS, get_scenario

logger = structlog.get_logger(__name__)


EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_SETUP_ERROR = 2


def _concurrency(value: str) -> int:
    conc = int(value)
    if not 1 <= conc <= MAX_CONCURRENCY:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_CONCURRENCY}")
    return conc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sauce-e2e",
        description="Run the login checks on Sauce Labs across the configured browser matrix.",
    )
    parser.add_argument("--config", help="Path to the YAML config (default: $SAUCE_E2E_CONFIG or config/sauce_e2e.yaml)")
    parser.add_argument("--concurrency", type=_concurrency, help="Maximum remote sessions open at once")
    parser.add_argument("--only", help="Run only capabilities whose id contains this text")
    parser.add_argument(
        "--scenario",
        action="append",
        choices=[s.name for s in LOGIN_SCENARIOS],
        help="Scenario to run (repeatable; default: all)",
    )
    parser.add_argument("--list", action="store_true", help="Print the expanded test instances and exit")
    parser.add_argument("--report-dir", help="Directory for the JSON report")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_SETUP_ERROR

    configure_logging(config.log_level)

    try:
        capabilities = filter_capabilities(enabled_capabilities(config.browsers), args.only)
    except ConfigurationError as e:
        logger.error("Invalid browser matrix", error=str(e))
        return EXIT_SETUP_ERROR

    scenarios = [get_scenario(name) for name in args.scenario] if args.scenario else list(LOGIN_SCENARIOS)
    instances = expand_capabilities(capabilities, scenarios)

    if args.list:
        for instance in instances:
            print(f"{instance.name}\t{instance.capability.describe()}")
        return EXIT_OK

    if not instances:
        logger.warning("No enabled browser matrix entries matched")
        return EXIT_OK

    try:
        credentials = load_credentials()
    except CredentialsError as e:
        logger.error("Missing Sauce credentials", error=str(e))
        return EXIT_SETUP_ERROR

    results = asyncio.run(run_matrix(instances, credentials, config, concurrency=args.concurrency))

    report_data = ReportGenerator(args.report_dir or config.reports_directory).generate(results)
    summary = report_data["summary"]

    print("\n" + "=" * 50)
    print("SAUCE LABS RESULTS SUMMARY")
    print("=" * 50)
    print(f"Total: {summary['total']}")
    print(f"Passed: {summary['passed']}")
    print(f"Failed: {summary['failed']}")
    print(f"Errors: {summary['errors']}")
    print(f"Unexpected: {summary['unexpected']}")
    print(f"Total Duration: {summary['total_duration']:.2f}s")

    unexpected = [r for r in results if not r.as_expected]
    if unexpected:
        print("\nUNEXPECTED RESULTS:")
        for result in unexpected:
            print(f"- {result.name}: {result.status} ({result.error_kind}) {result.error or ''}".rstrip())

    print(f"\nReport saved: {report_data['report_path']}")

    return EXIT_OK if not unexpected else EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
