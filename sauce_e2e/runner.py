"""Expands the browser matrix into test instances and runs them in parallel."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

import structlog

from .capabilities import Capability, MatrixEntry, enabled_capabilities
from .config import MAX_CONCURRENCY, HarnessConfig
from .credentials import Credentials
from .exceptions import ConfigurationError, SessionError
from .reporter import ResultReporter
from .scenarios import LOGIN_SCENARIOS, LoginScenario
from .session import DriverFactory, RemoteSession, SessionState, watch_session

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TestInstance:
    """One scenario bound to one capability. Built once, never mutated."""

    __test__ = False

    capability: Capability
    scenario: LoginScenario

    @property
    def name(self) -> str:
        return f"{self.scenario.name}[{self.capability.id}]"


@dataclass
class InstanceResult:
    """Outcome of a single test instance."""

    __test__ = False

    name: str
    capability: Capability
    scenario: str
    expected_to_pass: bool
    status: str  # pass|fail|error
    duration: float
    session_id: str | None = None
    reported: bool = False
    error_kind: str | None = None
    error: str | None = None
    title: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def success(self) -> bool:
        return self.status == "pass"

    @property
    def as_expected(self) -> bool:
        """Errors never count as expected; fail only when the scenario is meant to fail."""
        if self.status == "error":
            return False
        return self.success == self.expected_to_pass

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "capability": self.capability.to_dict(),
            "scenario": self.scenario,
            "expected_to_pass": self.expected_to_pass,
            "status": self.status,
            "as_expected": self.as_expected,
            "duration": self.duration,
            "session_id": self.session_id,
            "reported": self.reported,
            "error_kind": self.error_kind,
            "error": self.error,
            "title": self.title,
            "timestamp": self.timestamp,
        }


def expand(
    entries: Iterable[MatrixEntry],
    scenarios: Sequence[LoginScenario] = LOGIN_SCENARIOS,
) -> list[TestInstance]:
    """One instance per enabled capability per scenario, in matrix order."""
    return expand_capabilities(enabled_capabilities(entries), scenarios)


def expand_capabilities(
    capabilities: Iterable[Capability],
    scenarios: Sequence[LoginScenario] = LOGIN_SCENARIOS,
) -> list[TestInstance]:
    return [TestInstance(capability=c, scenario=s) for c in capabilities for s in scenarios]


def run_instance(
    instance: TestInstance,
    credentials: Credentials,
    config: HarnessConfig,
    *,
    reporter: ResultReporter | None = None,
    driver_factory: DriverFactory | None = None,
) -> InstanceResult:
    """Open a session, run the scenario, report the outcome, then close the session."""
    reporter = reporter or ResultReporter(credentials, config)
    log = logger.bind(instance=instance.name)
    started = time.time()

    session = RemoteSession(
        instance.capability,
        credentials,
        config,
        name=f"{config.job_name} {instance.name}",
        driver_factory=driver_factory,
    )
    watcher = None
    status = "error"
    error_kind = None
    error = None
    title = None

    try:
        with session:
            watcher = watch_session(session, reporter)
            try:
                with watcher:
                    title = instance.scenario.run(session.driver, config.target_url)
                status = "pass"
            except AssertionError as e:
                status = "fail"
                error_kind = "assertion_failed"
                error = str(e)
            except Exception as e:
                # Transport or WebDriver failure mid-session; already reported as failed.
                status = "error"
                error_kind = type(e).__name__
                error = credentials.redact(str(e))
    except SessionError as e:
        error_kind = e.error_kind
        error = str(e)
    except ConfigurationError as e:
        error_kind = "invalid_capability"
        error = str(e)

    duration = time.time() - started
    session_id = session.session_id if session.state is not SessionState.UNOPENED else None
    result = InstanceResult(
        name=instance.name,
        capability=instance.capability,
        scenario=instance.scenario.name,
        expected_to_pass=instance.scenario.expected_to_pass,
        status=status,
        duration=duration,
        session_id=session_id,
        reported=bool(watcher and watcher.reported),
        error_kind=error_kind,
        error=error,
        title=title,
    )

    if result.status == "pass":
        log.info("Instance passed", session_id=session_id, duration=round(duration, 3))
    else:
        log.warning(
            "Instance did not pass",
            status=result.status,
            error_kind=error_kind,
            error=error,
            session_id=session_id,
            duration=round(duration, 3),
        )
    return result


async def run_matrix(
    instances: Sequence[TestInstance],
    credentials: Credentials,
    config: HarnessConfig,
    *,
    concurrency: int | None = None,
    reporter: ResultReporter | None = None,
    driver_factory: DriverFactory | None = None,
) -> list[InstanceResult]:
    """Run every instance on worker threads, at most ``concurrency`` at a time.

    Results come back in instance order. A crash in one instance is turned
    into an error result and does not stop the others.
    """
    limit = max(1, min(int(concurrency or config.concurrency), MAX_CONCURRENCY))
    semaphore = asyncio.Semaphore(limit)

    logger.info("Running browser matrix", instances=len(instances), concurrency=limit)

    async def _guarded(instance: TestInstance) -> InstanceResult:
        async with semaphore:
            started = time.time()
            try:
                return await asyncio.to_thread(
                    run_instance,
                    instance,
                    credentials,
                    config,
                    reporter=reporter,
                    driver_factory=driver_factory,
                )
            except Exception as e:
                logger.exception("Instance crashed", instance=instance.name)
                return InstanceResult(
                    name=instance.name,
                    capability=instance.capability,
                    scenario=instance.scenario.name,
                    expected_to_pass=instance.scenario.expected_to_pass,
                    status="error",
                    duration=time.time() - started,
                    error_kind=type(e).__name__,
                    error=credentials.redact(str(e)),
                )

    results = list(await asyncio.gather(*(_guarded(i) for i in instances)))

    passed = sum(1 for r in results if r.success)
    errors = sum(1 for r in results if r.status == "error")
    logger.info(
        "Browser matrix completed",
        total=len(results),
        passed=passed,
        failed=len(results) - passed - errors,
        errors=errors,
    )
    return results
