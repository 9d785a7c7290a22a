"""
Health checker — the pass/fail probes behind ``GET /api/health``.

Four checks, all must pass for the service to be healthy:

    dataFiles    <data_dir>/index.json exists (freshness reported)
    githubApi    the GitHub rate-limit endpoint answers (false offline)
    buildStatus  the build output directory exists
    memoryUsage  process RSS under MEMORY_LIMIT_MB

Used by the web endpoint and the ``aggregator health`` CLI command.
"""

from __future__ import annotations

import logging
import resource
import sys
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from aggregator import __version__
from aggregator.core.services.github_client import GitHubClient, GitHubError

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
MEMORY_LIMIT_MB = 500

_STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


def memory_usage_mb() -> float:
    """Peak resident set size of this process, in MB."""
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(rss / divisor, 1)


def hours_since(path: Path, now: float | None = None) -> float:
    return ((now or time.time()) - path.stat().st_mtime) / 3600


@dataclass
class HealthReport:
    """Result of the four health checks."""

    checks: dict[str, bool] = field(default_factory=lambda: {
        "dataFiles": False,
        "githubApi": False,
        "buildStatus": False,
        "memoryUsage": False,
    })
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def healthy(self) -> bool:
        return all(self.checks.values())

    @property
    def status(self) -> str:
        return "healthy" if self.healthy else "unhealthy"

    @property
    def http_status(self) -> int:
        return 200 if self.healthy else 503

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "timestamp": self.timestamp,
            "uptime": uptime_seconds(),
            "version": __version__,
            "checks": self.checks,
        }
        if not self.healthy:
            data["details"] = self.details
        return data


def check_data_files(data_dir: Path, report: HealthReport) -> None:
    index = data_dir / INDEX_FILE
    if not index.is_file():
        report.details["dataFiles"] = f"{index} not found"
        return
    report.checks["dataFiles"] = True
    report.details["dataFreshness"] = f"{round(hours_since(index))} hours ago"
    report.details["lastScan"] = datetime.fromtimestamp(index.stat().st_mtime, UTC).isoformat()


def check_github(client: GitHubClient | None, report: HealthReport) -> None:
    if client is None:
        report.details["githubApi"] = "offline mode"
        return
    try:
        client.rate_limit()
        report.checks["githubApi"] = True
    except GitHubError as e:
        logger.warning("GitHub API check failed: %s", e)
        report.details["githubApi"] = str(e)


def check_build(build_dir: Path, report: HealthReport) -> None:
    report.checks["buildStatus"] = build_dir.is_dir()
    if not report.checks["buildStatus"]:
        report.details["buildStatus"] = f"{build_dir} not found"


def check_memory(report: HealthReport, limit_mb: float = MEMORY_LIMIT_MB) -> None:
    used = memory_usage_mb()
    report.checks["memoryUsage"] = used < limit_mb
    report.details["memoryUsageMB"] = used


def check_health(
    data_dir: Path,
    build_dir: Path,
    github: GitHubClient | None = None,
) -> HealthReport:
    """Run every check. Never raises: failures show up as false checks."""
    report = HealthReport()
    check_data_files(data_dir, report)
    check_github(github, report)
    check_build(build_dir, report)
    check_memory(report)

    if not report.healthy:
        failed = [name for name, ok in report.checks.items() if not ok]
        logger.info("Health check failed: %s", ", ".join(failed))
    return report
