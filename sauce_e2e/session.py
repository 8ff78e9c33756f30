"""Remote browser sessions on Sauce Labs and the post-test status watcher."""

from __future__ import annotations

import sys
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import quote

import structlog
from selenium import webdriver
from selenium.webdriver.common.options import ArgOptions
from selenium.webdriver.remote.webdriver import WebDriver

from .capabilities import Capability
from .config import HarnessConfig
from .credentials import Credentials
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    SessionConnectionError,
    SessionError,
    SessionStateError,
)

if TYPE_CHECKING:
    from .reporter import ResultReporter

logger = structlog.get_logger(__name__)


SESSION_ID_PREFIX = "SauceOnDemandSessionID="

DriverFactory = Callable[[str, ArgOptions], WebDriver]

_OPTIONS_BY_BROWSER: dict[str, Callable[[], ArgOptions]] = {
    "chrome": webdriver.ChromeOptions,
    "googlechrome": webdriver.ChromeOptions,
    "firefox": webdriver.FirefoxOptions,
    "internet explorer": webdriver.IeOptions,
    "iexplore": webdriver.IeOptions,
    "ie": webdriver.IeOptions,
    "safari": webdriver.SafariOptions,
    "microsoftedge": webdriver.EdgeOptions,
    "edge": webdriver.EdgeOptions,
}

_AUTH_FAILURE_MARKERS = (
    "status code 401",
    "http 401",
    "unauthorized",
    "authentication error",
    "authentication failed",
    "invalid username",
    "access key",
)


class SessionState(str, Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


def build_options(capability: Capability, config: HarnessConfig, credentials: Credentials, name: str) -> ArgOptions:
    """W3C options for ``capability`` with the vendor block Sauce expects."""
    factory = _OPTIONS_BY_BROWSER.get(capability.browser_name.strip().lower())
    if factory is None:
        raise ConfigurationError(f"Unsupported browser for remote sessions: {capability.browser_name!r}")

    options = factory()
    if capability.version is not None:
        options.browser_version = capability.version
    options.platform_name = capability.platform

    sauce_options: dict[str, Any] = {
        "username": credentials.username,
        "accessKey": credentials.access_key,
        "name": name,
    }
    if config.build:
        sauce_options["build"] = config.build
    if config.tags:
        sauce_options["tags"] = list(config.tags)
    if config.tunnel_identifier:
        sauce_options["tunnelIdentifier"] = config.tunnel_identifier
    options.set_capability("sauce:options", sauce_options)
    return options


def hub_url(config: HarnessConfig, credentials: Credentials) -> str:
    user = quote(credentials.username, safe="")
    key = quote(credentials.access_key, safe="")
    return f"{config.hub_scheme}://{user}:{key}@{config.hub_host}:{config.hub_port}/wd/hub"


def _remote_driver(command_executor: str, options: ArgOptions) -> WebDriver:
    return webdriver.Remote(command_executor=command_executor, options=options)


def classify_open_error(exc: Exception, credentials: Credentials | None = None) -> SessionError:
    """Map a session-creation failure to an auth or connection error.

    Driver errors can echo the hub URL, so the access key is masked in the
    message when ``credentials`` are given.
    """
    detail = str(exc or "")
    if credentials is not None:
        detail = credentials.redact(detail)
    if any(marker in detail.lower() for marker in _AUTH_FAILURE_MARKERS):
        return AuthenticationError(f"Sauce rejected the credentials: {type(exc).__name__}: {detail}")
    return SessionConnectionError(f"Could not start a remote session: {type(exc).__name__}: {detail}")


class RemoteSession:
    """One billable remote browser, owned by a single test instance.

    Lifecycle is ``unopened -> open -> closed``. Use it as a context manager so
    the remote VM is released on every path.
    """

    def __init__(
        self,
        capability: Capability,
        credentials: Credentials,
        config: HarnessConfig,
        *,
        name: str | None = None,
        driver_factory: DriverFactory | None = None,
    ):
        self.capability = capability
        self.credentials = credentials
        self.config = config
        self.name = name or f"{config.job_name} [{capability.describe()}]"
        self._driver_factory = driver_factory or _remote_driver
        self._driver: WebDriver | None = None
        self._session_id: str | None = None
        self.state = SessionState.UNOPENED

    def __enter__(self) -> RemoteSession:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    @property
    def driver(self) -> WebDriver:
        if not self.is_open or self._driver is None:
            raise SessionStateError(f"Session is {self.state.value}; no driver available")
        return self._driver

    @property
    def session_id(self) -> str:
        if self._session_id is None:
            raise SessionStateError("Session was never opened")
        return self._session_id

    def open(self) -> RemoteSession:
        if self.state is not SessionState.UNOPENED:
            raise SessionStateError(f"Cannot open a session that is {self.state.value}")

        options = build_options(self.capability, self.config, self.credentials, self.name)
        logger.info(
            "Opening remote session",
            capability=self.capability.id,
            hub=self.config.hub_endpoint,
            username=self.credentials.username,
        )
        try:
            driver = self._driver_factory(hub_url(self.config, self.credentials), options)
        except Exception as exc:
            error = classify_open_error(exc, self.credentials)
            logger.error(
                "Remote session failed to open",
                capability=self.capability.id,
                error_kind=error.error_kind,
                error=str(error),
            )
            raise error from exc

        session_id = str(driver.session_id or "").strip()
        if not session_id:
            try:
                driver.quit()
            except Exception:
                logger.warning("Quit after missing session id failed", capability=self.capability.id)
            raise SessionConnectionError("Remote endpoint returned no session id")

        self._driver = driver
        self._session_id = session_id
        self.state = SessionState.OPEN

        try:
            driver.set_page_load_timeout(self.config.session_timeout)
        except Exception as exc:
            logger.warning("Could not set page load timeout", session_id=session_id, error=str(exc))

        # CI plugins scan stdout for this line to link builds to Sauce jobs.
        sys.stdout.write(f"{SESSION_ID_PREFIX}{session_id} job-name={self.name}\n")
        sys.stdout.flush()
        logger.info("Remote session open", capability=self.capability.id, session_id=session_id)
        return self

    def close(self) -> None:
        """Quit the remote browser. Safe to call more than once."""
        if self.state is not SessionState.OPEN:
            self.state = SessionState.CLOSED
            return

        driver = self._driver
        self._driver = None
        self.state = SessionState.CLOSED
        try:
            if driver is not None:
                driver.quit()
            logger.info("Remote session closed", session_id=self._session_id)
        except Exception as exc:
            logger.warning("Remote session quit failed", session_id=self._session_id, error=str(exc))


class SessionWatcher:
    """Reports the outcome of the enclosed block before the session is torn down.

    Nest it inside the session's own ``with`` so the report is sent while the
    session is still open::

        with RemoteSession(...) as session, watch_session(session, reporter):
            run_the_test(session.driver)
    """

    def __init__(self, session: RemoteSession, reporter: ResultReporter):
        self.session = session
        self.reporter = reporter
        self.passed: bool | None = None
        self.reported = False

    def __enter__(self) -> RemoteSession:
        if not self.session.is_open:
            raise SessionStateError("Outcome reporting needs an open session")
        return self.session

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finish(exc_type is None)

    def finish(self, passed: bool) -> bool:
        """Record and report the outcome once; later calls are no-ops."""
        if self.passed is not None:
            return self.reported
        self.passed = bool(passed)
        self.reported = self.reporter.report(self.session.session_id, self.passed, name=self.session.name)
        return self.reported


def watch_session(session: RemoteSession, reporter: ResultReporter) -> SessionWatcher:
    return SessionWatcher(session, reporter)
