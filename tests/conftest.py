from __future__ import annotations

import itertools
import json
import threading
from typing import Any

import httpx
import pytest
from selenium.webdriver.common.by import By

from sauce_e2e.capabilities import Capability
from sauce_e2e.config import HarnessConfig
from sauce_e2e.credentials import Credentials


SECURE_PAGE = "Secure Area\nWelcome to the Secure Area. When you are done click logout below."
LOGIN_ERROR_PAGE = "Login Page\nYour password is invalid!"


class FakeElement:
    def __init__(self, driver: FakeDriver, locator: tuple[str, str]):
        self.driver = driver
        self.locator = locator

    def send_keys(self, text: str) -> None:
        self.driver.typed[self.locator] = text

    def click(self) -> None:
        self.driver.submit()

    @property
    def text(self) -> str:
        return self.driver.page_text


class FakeDriver:
    """Stands in for a remote WebDriver serving the sample login page."""

    def __init__(self, session_id: str, options: Any, error_on_get: Exception | None = None):
        self.session_id = session_id
        self.options = options
        self.error_on_get = error_on_get
        self.typed: dict[tuple[str, str], str] = {}
        self.visited: list[str] = []
        self.page_text = ""
        self.title = ""
        self.quit_count = 0
        self.page_load_timeout: float | None = None

    def set_page_load_timeout(self, seconds: float) -> None:
        self.page_load_timeout = seconds

    def get(self, url: str) -> None:
        if self.error_on_get is not None:
            raise self.error_on_get
        self.visited.append(url)
        self.title = "The Internet"
        self.page_text = "Login Page"

    def find_element(self, by: str, value: str) -> FakeElement:
        return FakeElement(self, (by, value))

    def submit(self) -> None:
        user = self.typed.get((By.ID, "username"))
        password = self.typed.get((By.ID, "password"))
        if user == "tomsmith" and password == "SuperSecretPassword!":
            self.page_text = SECURE_PAGE
        else:
            self.page_text = LOGIN_ERROR_PAGE

    def quit(self) -> None:
        self.quit_count += 1


class FakeGrid:
    """Driver factory that hands out FakeDrivers and remembers every request."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.drivers: list[FakeDriver] = []
        self.urls: list[str] = []
        self.open_error: Exception | None = None
        self.error_on_get: Exception | None = None
        self.active = 0
        self.max_active = 0

    def __call__(self, command_executor: str, options: Any) -> FakeDriver:
        with self._lock:
            self.urls.append(command_executor)
            if self.open_error is not None:
                raise self.open_error
            driver = FakeDriver(f"sess-{next(self._ids)}", options, error_on_get=self.error_on_get)
            self.drivers.append(driver)
            return driver

    def by_session(self, session_id: str) -> FakeDriver:
        return next(d for d in self.drivers if d.session_id == session_id)


class RecordingTransport:
    """httpx handler that records job status updates."""

    def __init__(self, grid: FakeGrid | None = None, status_code: int = 200):
        self.grid = grid
        self.status_code = status_code
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        session_id = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        quit_before_report = None
        if self.grid is not None:
            quit_before_report = self.grid.by_session(session_id).quit_count > 0
        with self._lock:
            self.calls.append(
                {
                    "method": request.method,
                    "path": request.url.path,
                    "session_id": session_id,
                    "json": json.loads(request.content or b"{}"),
                    "authorization": request.headers.get("Authorization"),
                    "quit_before_report": quit_before_report,
                }
            )
        return httpx.Response(self.status_code, json={"id": session_id})


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="demo-user", access_key="0000-1111-2222")


@pytest.fixture
def harness() -> HarnessConfig:
    return HarnessConfig(rest_base_url="https://saucelabs.test/rest/v1", tunnel_identifier="TUNNELNAME")


@pytest.fixture
def chrome() -> Capability:
    return Capability(platform="Windows 7", version="latest", browser_name="Chrome")


@pytest.fixture
def grid() -> FakeGrid:
    return FakeGrid()


@pytest.fixture
def rest(grid: FakeGrid) -> RecordingTransport:
    return RecordingTransport(grid)


@pytest.fixture
def rest_client(rest: RecordingTransport):
    with httpx.Client(transport=httpx.MockTransport(rest)) as client:
        yield client
