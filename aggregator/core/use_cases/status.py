"""
Status use case — per-subsystem operational status for ``GET /api/status``.

Each subsystem is operational, degraded or down:

    data         index.json age: > 12 h degraded, > 24 h or missing down
    github       rate-limit usage > 90 % degraded, unreachable down
    build        build output directory missing → down
    performance  RSS > 80 % of the memory limit degraded, > 90 % down

Overall: any down → down, else any degraded → degraded.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from aggregator import __version__
from aggregator.core.observability.health import (
    INDEX_FILE,
    MEMORY_LIMIT_MB,
    hours_since,
    memory_usage_mb,
    uptime_seconds,
)
from aggregator.core.observability.metrics import MetricsRegistry
from aggregator.core.services.catalog import MARKETPLACES_FILE
from aggregator.core.services.github_client import GitHubClient, GitHubError

logger = logging.getLogger(__name__)

OPERATIONAL = "operational"
DEGRADED = "degraded"
DOWN = "down"

DATA_DEGRADED_HOURS = 12
DATA_DOWN_HOURS = 24
GITHUB_DEGRADED_PERCENT = 90
PLUGINS_FILE = "plugins.json"


@dataclass
class SubsystemStatus:
    name: str
    status: str = OPERATIONAL
    errors: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def degrade(self, message: str) -> None:
        if self.status == OPERATIONAL:
            self.status = DEGRADED
        self.errors.append(message)

    def fail(self, message: str) -> None:
        self.status = DOWN
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, **self.details, "errors": self.errors}


@dataclass
class StatusResult:
    """Aggregated service status."""

    systems: list[SubsystemStatus] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    response_time_ms: float = 0.0

    @property
    def status(self) -> str:
        statuses = {s.status for s in self.systems}
        if DOWN in statuses:
            return DOWN
        if DEGRADED in statuses:
            return DEGRADED
        return OPERATIONAL

    @property
    def http_status(self) -> int:
        return 503 if self.status == DOWN else 200

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "uptime": uptime_seconds(),
            "version": __version__,
            "environment": os.environ.get("AGG_ENV", "development"),
            "systems": {s.name: s.to_dict() for s in self.systems},
            "metrics": self.metrics,
        }


def _count_entries(path: Path) -> int:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and isinstance(data.get("marketplaces"), list):
        return len(data["marketplaces"])
    return len(data)


def check_data(data_dir: Path) -> SubsystemStatus:
    system = SubsystemStatus(name="data", details={
        "lastUpdate": "",
        "dataFreshness": "",
        "totalMarketplaces": 0,
        "totalPlugins": 0,
    })
    index = data_dir / INDEX_FILE
    if not index.is_file():
        system.fail("Data files not found")
        return system

    try:
        age = hours_since(index)
        system.details["lastUpdate"] = datetime.fromtimestamp(index.stat().st_mtime, UTC).isoformat()
        system.details["dataFreshness"] = f"{round(age)} hours ago"

        stats = json.loads(index.read_text(encoding="utf-8")).get("stats") or {}
        system.details["totalMarketplaces"] = stats.get("totalMarketplaces", 0)
        system.details["totalPlugins"] = stats.get("totalPlugins", 0)

        for filename, key in ((MARKETPLACES_FILE, "totalMarketplaces"), (PLUGINS_FILE, "totalPlugins")):
            path = data_dir / filename
            if path.is_file():
                system.details[key] = _count_entries(path)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        system.fail(f"Data check failed: {e}")
        return system

    if age > DATA_DOWN_HOURS:
        system.fail(f"Data is more than {DATA_DOWN_HOURS} hours old")
    elif age > DATA_DEGRADED_HOURS:
        system.degrade(f"Data is more than {DATA_DEGRADED_HOURS} hours old")
    return system


def check_github(client: GitHubClient | None) -> SubsystemStatus:
    system = SubsystemStatus(name="github", details={
        "rateLimit": {"limit": 0, "remaining": 0, "reset": "", "used": 0},
        "lastCheck": datetime.now(UTC).isoformat(),
    })
    if client is None:
        system.degrade("GitHub checks disabled (offline mode)")
        return system

    try:
        rate = client.rate_limit()
    except GitHubError as e:
        system.fail(f"GitHub API check failed: {e}")
        return system

    limit = int(rate.get("limit") or 0)
    used = int(rate.get("used") or 0)
    reset = rate.get("reset")
    system.details["rateLimit"] = {
        "limit": limit,
        "remaining": int(rate.get("remaining") or 0),
        "reset": datetime.fromtimestamp(reset, UTC).isoformat() if reset else "",
        "used": used,
    }
    if limit and used / limit * 100 > GITHUB_DEGRADED_PERCENT:
        system.degrade("GitHub API rate limit nearly exhausted")
    return system


def check_build(build_dir: Path) -> SubsystemStatus:
    system = SubsystemStatus(name="build", details={"lastBuild": ""})
    if not build_dir.is_dir():
        system.fail("Build output directory not found")
        return system
    system.details["lastBuild"] = datetime.fromtimestamp(build_dir.stat().st_mtime, UTC).isoformat()
    return system


def check_performance(limit_mb: float = MEMORY_LIMIT_MB) -> SubsystemStatus:
    used = memory_usage_mb()
    percentage = round(used / limit_mb * 100)
    system = SubsystemStatus(name="performance", details={
        "memory": {"used": used, "limit": limit_mb, "percentage": percentage},
        "cpu": {"loadAverage": list(os.getloadavg()) if hasattr(os, "getloadavg") else []},
    })
    if percentage > 90:
        system.fail("Memory usage critically high")
    elif percentage > 80:
        system.degrade("Memory usage high")
    return system


def get_status(
    data_dir: Path,
    build_dir: Path,
    github: GitHubClient | None = None,
    metrics: MetricsRegistry | None = None,
) -> StatusResult:
    """Check every subsystem and aggregate the result."""
    start = time.monotonic()
    result = StatusResult(systems=[
        check_data(data_dir),
        check_github(github),
        check_build(build_dir),
        check_performance(),
    ])
    result.response_time_ms = round((time.monotonic() - start) * 1000, 2)
    result.systems[-1].details["responseTime"] = result.response_time_ms

    summary = metrics.summary() if metrics else {"requests": 0, "errors": 0, "averageResponseTime": 0.0}
    result.metrics = {
        "requestsTotal": summary["requests"],
        "errorsTotal": summary["errors"],
        "averageResponseTime": summary["averageResponseTime"],
        "uptime": uptime_seconds(),
    }
    if result.status != OPERATIONAL:
        logger.info("Service status: %s", result.status)
    return result
