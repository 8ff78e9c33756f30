"""JSON run reports for matrix results."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from .runner import InstanceResult

logger = structlog.get_logger(__name__)


class ReportGenerator:
    """Writes a summary plus per-instance results to the reports directory."""

    def __init__(self, reports_directory: str = "reports"):
        self.reports_dir = Path(reports_directory)

    def summarize(self, results: list[InstanceResult]) -> dict[str, Any]:
        total = len(results)
        passed = sum(1 for r in results if r.status == "pass")
        failed = sum(1 for r in results if r.status == "fail")
        errors = sum(1 for r in results if r.status == "error")
        total_duration = sum(r.duration for r in results)
        return {
            "total": total,
            "passed": passed,
            "failed": failed,
            "errors": errors,
            "unexpected": sum(1 for r in results if not r.as_expected),
            "unreported": sum(1 for r in results if r.session_id and not r.reported),
            "success_rate": (passed / total * 100) if total > 0 else 0,
            "total_duration": total_duration,
            "average_duration": total_duration / total if total > 0 else 0,
        }

    def generate(self, results: list[InstanceResult], report_name: Optional[str] = None) -> dict[str, Any]:
        """Build the report and save it as ``<report_name>.json``."""
        if report_name is None:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            report_name = f"sauce_results_{timestamp}"

        errors_by_kind: dict[str, list[str]] = {}
        for result in results:
            if result.status != "pass" and result.error_kind:
                errors_by_kind.setdefault(result.error_kind, []).append(result.name)

        report_data = {
            "report_name": report_name,
            "generation_timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": self.summarize(results),
            "results": [r.to_dict() for r in results],
            "failures_by_kind": errors_by_kind,
        }

        self.reports_dir.mkdir(parents=True, exist_ok=True)
        report_path = self.reports_dir / f"{report_name}.json"
        with open(report_path, "w") as f:
            json.dump(report_data, f, indent=2, default=str)
        report_data["report_path"] = str(report_path)

        logger.info("Saved run report", path=str(report_path))
        return report_data
