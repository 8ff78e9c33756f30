"""Browser matrix: which (platform, version, browser) combinations to run."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError


_SLUG_RE = re.compile(r"[^a-z0-9.]+")


@dataclass(frozen=True)
class Capability:
    """A requested remote browser environment."""

    platform: str
    version: str | None
    browser_name: str

    @property
    def id(self) -> str:
        """Stable slug used for test ids and CLI filtering, e.g. ``windows-7-chrome-latest``."""
        parts = [self.platform, self.browser_name, self.version or "any"]
        return "-".join(_SLUG_RE.sub("-", p.strip().lower()).strip("-") for p in parts)

    def describe(self) -> str:
        version = self.version or "any version"
        return f"{self.browser_name} {version} on {self.platform}"

    def to_dict(self) -> dict[str, Any]:
        return {"platform": self.platform, "version": self.version, "browser_name": self.browser_name}


class MatrixEntry(BaseModel):
    """One row of the browser matrix as written in configuration."""

    platform: str = Field(description="Operating system, e.g. 'Windows 7'")
    version: Optional[str] = Field(default=None, description="Browser version; omitted means any")
    browser: str = Field(description="Browser name, e.g. 'chrome' or 'internet explorer'")
    enabled: bool = Field(default=True, description="Disabled rows stay listed but produce no runs")

    @field_validator("platform", "browser")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _blank_version_is_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def to_capability(self) -> Capability:
        return Capability(platform=self.platform, version=self.version, browser_name=self.browser)


DEFAULT_MATRIX: list[MatrixEntry] = [
    MatrixEntry(platform="Windows 7", version="latest", browser="Chrome"),
    MatrixEntry(platform="Windows 8.1", version="11", browser="internet explorer"),
    MatrixEntry(platform="Windows 8", version="10", browser="internet explorer", enabled=False),
    MatrixEntry(platform="OS X 10.8", version="6", browser="safari", enabled=False),
    MatrixEntry(platform="Windows 7", version="45", browser="Chrome", enabled=False),
    MatrixEntry(platform="OS X 10.10", version="8.0", browser="safari"),
    MatrixEntry(platform="Windows 7", version="5.1", browser="safari", enabled=False),
    MatrixEntry(platform="Windows XP", version="7.0", browser="internet explorer", enabled=False),
    MatrixEntry(platform="OS X 10.9", version="7.0", browser="safari", enabled=False),
    MatrixEntry(platform="Windows 8.1", version="latest", browser="firefox"),
    MatrixEntry(platform="Windows 8.1", version="43.0", browser="Chrome", enabled=False),
]


def enabled_capabilities(entries: Iterable[MatrixEntry]) -> list[Capability]:
    """Capabilities for the enabled rows, in matrix order, with duplicates rejected."""
    capabilities: list[Capability] = []
    seen: set[str] = set()
    for entry in entries:
        if not entry.enabled:
            continue
        capability = entry.to_capability()
        if capability.id in seen:
            raise ConfigurationError(f"Duplicate browser matrix entry: {capability.describe()}")
        seen.add(capability.id)
        capabilities.append(capability)
    return capabilities


def filter_capabilities(capabilities: Iterable[Capability], needle: str | None) -> list[Capability]:
    """Keep capabilities whose id contains ``needle`` (case-insensitive)."""
    if not needle:
        return list(capabilities)
    n = needle.strip().lower()
    return [c for c in capabilities if n in c.id]
