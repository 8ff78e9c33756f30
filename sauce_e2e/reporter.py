"""Marks Sauce jobs as passed or failed through the REST API."""

from __future__ import annotations

import threading
from typing import Any

import httpx
import structlog

from .config import HarnessConfig
from .credentials import Credentials

logger = structlog.get_logger(__name__)


class ResultReporter:
    """Sends one pass/fail update per session id.

    Reporting problems are logged and swallowed: the test verdict is whatever
    the test itself decided, not whether Sauce accepted the update.
    """

    def __init__(self, credentials: Credentials, config: HarnessConfig, client: httpx.Client | None = None):
        self.credentials = credentials
        self.config = config
        self._client = client
        self._lock = threading.Lock()
        self._reported: dict[str, bool] = {}

    def job_url(self, session_id: str) -> str:
        return f"{self.config.rest_base_url.rstrip('/')}/{self.credentials.username}/jobs/{session_id}"

    def outcome(self, session_id: str) -> bool | None:
        """The outcome already reported for ``session_id``, if any."""
        with self._lock:
            return self._reported.get(session_id)

    def report(self, session_id: str, passed: bool, name: str | None = None) -> bool:
        """Update the job record. Returns True when Sauce accepted the update."""
        session_id = str(session_id or "").strip()
        if not session_id:
            logger.warning("Skipping job status update without a session id")
            return False

        with self._lock:
            if session_id in self._reported:
                logger.warning(
                    "Job status already reported",
                    session_id=session_id,
                    passed=self._reported[session_id],
                )
                return False
            self._reported[session_id] = bool(passed)

        payload: dict[str, Any] = {"passed": bool(passed)}
        if name:
            payload["name"] = name

        try:
            resp = self._put(self.job_url(session_id), payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Job status update rejected",
                session_id=session_id,
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            return False
        except httpx.HTTPError as e:
            logger.error("Job status update failed", session_id=session_id, error=f"{type(e).__name__}: {e}")
            return False
        except Exception as e:
            # e.g. httpx.InvalidURL from a malformed rest_base_url
            logger.error("Job status update could not be sent", session_id=session_id, error=f"{type(e).__name__}: {e}")
            return False

        logger.info("Job status reported", session_id=session_id, passed=bool(passed))
        return True

    def _put(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        auth = (self.credentials.username, self.credentials.access_key)
        if self._client is not None:
            return self._client.put(url, json=payload, auth=auth, timeout=self.config.report_timeout)
        with httpx.Client(headers={"User-Agent": "sauce-e2e reporter"}) as client:
            return client.put(url, json=payload, auth=auth, timeout=self.config.report_timeout)
