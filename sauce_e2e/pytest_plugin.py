"""pytest plugin: run a test once per enabled browser and report its outcome to Sauce.

Any test that asks for ``sauce_capability`` is parametrized over the enabled browser
matrix. The ``sauce_driver`` fixture opens a remote session for that browser,
and after the test body finishes it marks the Sauce job passed or failed
before quitting the browser.
"""

from __future__ import annotations

from typing import Iterator

import pytest
import structlog
from selenium.webdriver.remote.webdriver import WebDriver

from .capabilities import enabled_capabilities, filter_capabilities
from .config import HarnessConfig, load_config
from .credentials import Credentials, load_credentials
from .exceptions import CredentialsError
from .reporter import ResultReporter
from .session import RemoteSession, watch_session

logger = structlog.get_logger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("sauce", "Sauce Labs remote browsers")
    group.addoption("--sauce-config", default=None, help="Harness YAML config (default: $SAUCE_E2E_CONFIG)")
    group.addoption("--sauce-only", default=None, help="Only run capabilities whose id contains this text")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: runs against live Sauce Labs browsers (needs credentials)")


CAPABILITY_ARG = "sauce_capability"


def _parametrized_by_test(metafunc: pytest.Metafunc, argname: str) -> bool:
    for marker in metafunc.definition.iter_markers("parametrize"):
        names = marker.args[0] if marker.args else marker.kwargs.get("argnames", ())
        if isinstance(names, str):
            names = [n.strip() for n in names.split(",")]
        if argname in names:
            return True
    return False


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if CAPABILITY_ARG not in metafunc.fixturenames:
        return
    # A test that parametrizes the browser itself keeps its own values.
    if _parametrized_by_test(metafunc, CAPABILITY_ARG):
        return
    harness = load_config(metafunc.config.getoption("sauce_config"))
    capabilities = filter_capabilities(
        enabled_capabilities(harness.browsers),
        metafunc.config.getoption("sauce_only"),
    )
    metafunc.parametrize(CAPABILITY_ARG, capabilities, ids=[c.id for c in capabilities])


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    rep = yield
    # Fixtures read the call-phase report during teardown.
    setattr(item, f"rep_{rep.when}", rep)
    return rep


@pytest.fixture(scope="session")
def harness_config(pytestconfig: pytest.Config) -> HarnessConfig:
    return load_config(pytestconfig.getoption("sauce_config"))


@pytest.fixture(scope="session")
def sauce_credentials() -> Credentials:
    try:
        return load_credentials()
    except CredentialsError as e:
        pytest.skip(str(e))


@pytest.fixture(scope="session")
def sauce_reporter(sauce_credentials: Credentials, harness_config: HarnessConfig) -> ResultReporter:
    return ResultReporter(sauce_credentials, harness_config)


@pytest.fixture
def sauce_session(
    request: pytest.FixtureRequest,
    sauce_capability,
    sauce_credentials: Credentials,
    harness_config: HarnessConfig,
    sauce_reporter: ResultReporter,
) -> Iterator[RemoteSession]:
    name = f"{harness_config.job_name} {request.node.name}"
    with RemoteSession(sauce_capability, sauce_credentials, harness_config, name=name) as session:
        watcher = watch_session(session, sauce_reporter)
        yield session
        rep = getattr(request.node, "rep_call", None)
        watcher.finish(bool(rep is not None and rep.passed))


@pytest.fixture
def sauce_driver(sauce_session: RemoteSession) -> WebDriver:
    return sauce_session.driver
