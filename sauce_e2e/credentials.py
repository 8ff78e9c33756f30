"""Sauce Labs username/access key lookup."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping
from urllib.parse import quote

import structlog

from .exceptions import CredentialsError

logger = structlog.get_logger(__name__)


USERNAME_ENV_VARS = ("SAUCE_USERNAME", "SAUCE_USER_NAME")
ACCESS_KEY_ENV_VARS = ("SAUCE_ACCESS_KEY", "SAUCE_API_KEY")
CREDENTIALS_FILE = Path("~/.sauce-ondemand")


@dataclass(frozen=True)
class Credentials:
    username: str
    access_key: str = field(repr=False)

    def masked(self) -> str:
        tail = self.access_key[-4:] if len(self.access_key) > 4 else ""
        return f"{self.username}:****{tail}"

    def redact(self, text: str) -> str:
        """Replace every occurrence of the access key in ``text``."""
        if not self.access_key:
            return text
        for secret in (self.access_key, quote(self.access_key, safe="")):
            text = text.replace(secret, "****")
        return text


def _from_env(env: Mapping[str, str]) -> tuple[str | None, str | None]:
    username = next((env[k].strip() for k in USERNAME_ENV_VARS if (env.get(k) or "").strip()), None)
    access_key = next((env[k].strip() for k in ACCESS_KEY_ENV_VARS if (env.get(k) or "").strip()), None)
    return username, access_key


def parse_credentials_file(text: str) -> tuple[str | None, str | None]:
    """
    Parse the ``~/.sauce-ondemand`` properties format:
      username=<name>
      key=<access key>
    Blank lines and ``#`` / ``!`` comments are ignored.
    """
    values: dict[str, str] = {}
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        sep = "=" if "=" in line else ":" if ":" in line else None
        if sep is None:
            continue
        k, v = line.split(sep, 1)
        values[k.strip().lower()] = v.strip()
    return values.get("username") or None, values.get("key") or values.get("accesskey") or None


def load_credentials(
    env: Mapping[str, str] | None = None,
    credentials_file: Path | None = None,
) -> Credentials:
    """Read credentials from the environment, falling back to ``~/.sauce-ondemand``."""
    env = os.environ if env is None else env
    username, access_key = _from_env(env)
    if username and access_key:
        logger.debug("Loaded Sauce credentials from environment", username=username)
        return Credentials(username=username, access_key=access_key)

    path = (credentials_file or CREDENTIALS_FILE).expanduser()
    if path.is_file():
        file_user, file_key = parse_credentials_file(path.read_text(encoding="utf-8", errors="replace"))
        username = username or file_user
        access_key = access_key or file_key
        if username and access_key:
            logger.debug("Loaded Sauce credentials from file", username=username, file=str(path))
            return Credentials(username=username, access_key=access_key)

    raise CredentialsError(
        "Sauce credentials not found: set SAUCE_USERNAME and SAUCE_ACCESS_KEY "
        f"or write username=/key= lines to {CREDENTIALS_FILE}"
    )
