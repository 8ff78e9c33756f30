"""Login checks against the "The Internet" sample login page."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver

logger = structlog.get_logger(__name__)


SUCCESS_MARKER = "Secure Area"


@dataclass(frozen=True)
class LoginScenario:
    """Submit the login form and require the success marker on the result page."""

    name: str
    username: str
    password: str
    success_marker: str = SUCCESS_MARKER
    expected_to_pass: bool = True

    def run(self, driver: WebDriver, target_url: str) -> str:
        """Drive the login flow; raises AssertionError when the marker is missing.

        Returns the page title on success.
        """
        driver.get(target_url)
        driver.find_element(By.ID, "username").send_keys(self.username)
        driver.find_element(By.ID, "password").send_keys(self.password)
        driver.find_element(By.CSS_SELECTOR, "button.radius").click()

        title = driver.title
        logger.info("Page header", scenario=self.name, title=title)

        text = driver.find_element(By.TAG_NAME, "html").text or ""
        if self.success_marker not in text:
            raise AssertionError(f"Expected {self.success_marker!r} in page text after login as {self.username!r}")
        return title


VALID_LOGIN = LoginScenario(name="valid_login", username="tomsmith", password="SuperSecretPassword!")

# Demonstrates failure reporting: the wrong password never reaches the secure area.
BAD_PASSWORD = LoginScenario(
    name="bad_password",
    username="tomsmith",
    password="BadPassword",
    expected_to_pass=False,
)

LOGIN_SCENARIOS: tuple[LoginScenario, ...] = (VALID_LOGIN, BAD_PASSWORD)


def get_scenario(name: str) -> LoginScenario:
    for scenario in LOGIN_SCENARIOS:
        if scenario.name == name:
            return scenario
    raise KeyError(f"Unknown scenario: {name}")
