"""Configuration management for the Sauce Labs harness."""

import os
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .capabilities import DEFAULT_MATRIX, MatrixEntry
from .exceptions import ConfigurationError


DEFAULT_CONFIG_PATH = "config/sauce_e2e.yaml"
MAX_CONCURRENCY = 50


class HarnessConfig(BaseModel):
    """Main configuration for the harness."""

    # Remote WebDriver hub
    hub_scheme: str = Field(default="https", description="Scheme used to reach the WebDriver hub")
    hub_host: str = Field(default="ondemand.saucelabs.com", description="WebDriver hub host")
    hub_port: int = Field(default=443, description="WebDriver hub port")
    session_timeout: float = Field(default=120.0, description="Page load timeout in seconds for each remote session")

    # Job status REST API
    rest_base_url: str = Field(default="https://saucelabs.com/rest/v1", description="Sauce REST API base URL")
    report_timeout: float = Field(default=30.0, description="Seconds to wait for a job status update")

    # Job metadata
    job_name: str = Field(default="sauce-e2e login", description="Prefix for Sauce job names")
    build: Optional[str] = Field(default="Sauce Connect Jenkins Python pytest", description="Build label")
    tags: list[str] = Field(default_factory=lambda: ["burgers"], description="Job tags")
    tunnel_identifier: Optional[str] = Field(default=None, description="Sauce Connect tunnel to route through")

    # Test target
    target_url: str = Field(default="http://localhost:8888", description="Login page under test")

    # Execution
    concurrency: int = Field(default=4, ge=1, le=MAX_CONCURRENCY, description="Maximum sessions open at once")
    log_level: str = Field(default="INFO", description="Logging level")
    reports_directory: str = Field(default="reports", description="Directory for JSON run reports")

    browsers: list[MatrixEntry] = Field(
        default_factory=lambda: [e.model_copy() for e in DEFAULT_MATRIX],
        description="Browser matrix",
    )

    @field_validator("hub_scheme")
    @classmethod
    def _known_scheme(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"http", "https"}:
            raise ValueError("hub_scheme must be http or https")
        return value

    @field_validator("tunnel_identifier", "build", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def hub_endpoint(self) -> str:
        """Hub address without credentials, safe to log."""
        return f"{self.hub_scheme}://{self.hub_host}:{self.hub_port}/wd/hub"


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def load_config(config_path: Optional[str] = None) -> HarnessConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("SAUCE_E2E_CONFIG", DEFAULT_CONFIG_PATH)

    config_data: dict[str, Any] = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Could not parse {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        config_data.update(loaded)

    # Override with environment variables
    env_overrides = {
        "hub_host": _first_env("SAUCE_HUB_HOST"),
        "hub_port": _first_env("SAUCE_HUB_PORT"),
        "rest_base_url": _first_env("SAUCE_REST_URL"),
        "tunnel_identifier": _first_env("SAUCE_TUNNEL_IDENTIFIER", "TUNNEL_IDENTIFIER"),
        "build": _first_env("SAUCE_BUILD_NAME"),
        "target_url": _first_env("TARGET_URL"),
        "concurrency": _first_env("SAUCE_E2E_CONCURRENCY"),
        "log_level": _first_env("LOG_LEVEL"),
    }

    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value

    try:
        return HarnessConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
