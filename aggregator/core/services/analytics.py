"""
Ecosystem analytics for ``GET /api/analytics`` and the admin page.

Reads the generated catalog files directly from the data directory:

    marketplaces.json   totals, languages, top marketplaces, developers
    plugins.json        downloads, categories, top plugins, contributors
    index.json          authoritative totals and scan metadata

Missing or unreadable files leave their sections empty. Trend series
are derived from the totals (no history is stored), so the same data
always produces the same report.
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any

from aggregator.core.observability.health import memory_usage_mb, uptime_seconds
from aggregator.core.observability.metrics import MetricsRegistry
from aggregator.core.services.catalog import MARKETPLACES_FILE
from aggregator.core.services.scanner import INDEX_FILE, PLUGINS_FILE

logger = logging.getLogger(__name__)

TOP_N = 10
TREND_DAYS = 30
TREND_WEEKS = 12
TREND_MONTHS = 12


def _read_list(path: Path, key: str) -> list[dict[str, Any]]:
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Error loading %s: %s", path, e)
        return []
    if isinstance(data, dict):
        data = data.get(key, list(data.values()))
    return [d for d in data if isinstance(d, dict)] if isinstance(data, list) else []


def _read_index(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Error loading %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def share(counts: Counter, limit: int = TOP_N) -> list[dict[str, Any]]:
    """Top entries of a counter with rounded percentages of the total."""
    total = sum(counts.values())
    return [
        {"name": name, "count": count, "percentage": round(count / total * 100) if total else 0}
        for name, count in counts.most_common(limit)
    ]


def _owner(marketplace: dict[str, Any]) -> str:
    owner = marketplace.get("owner")
    if owner:
        return str(owner)
    parts = str(marketplace.get("url") or "").split("/")
    return parts[3] if len(parts) > 3 else ""


def trend_series(totals: dict[str, int], points: int, step: timedelta, today: date, key: str) -> list[dict[str, Any]]:
    """Linear ramp from 80 % of each total up to the total."""
    series = []
    for i in range(points):
        fraction = 0.8 + 0.2 * (i + 1) / points
        day = today - step * (points - 1 - i)
        series.append({key: day.isoformat(), **{k: round(v * fraction) for k, v in totals.items()}})
    return series


def build_analytics(
    data_dir: Path,
    metrics: MetricsRegistry | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    start = time.monotonic()
    today = today or datetime.now(UTC).date()

    marketplaces = _read_list(data_dir / MARKETPLACES_FILE, "marketplaces")
    plugins = _read_list(data_dir / PLUGINS_FILE, "plugins")
    index_path = data_dir / INDEX_FILE
    index = _read_index(index_path)

    overview: dict[str, Any] = {
        "totalMarketplaces": len(marketplaces),
        "totalPlugins": len(plugins),
        "totalDownloads": sum(int(p.get("downloads") or 0) for p in plugins),
        "totalStars": sum(int(m.get("stars") or 0) for m in marketplaces),
        "activeDevelopers": len({o for o in map(_owner, marketplaces) if o}),
        "languages": share(Counter(m["language"] for m in marketplaces if m.get("language"))),
        "categories": share(Counter(p["category"] for p in plugins if p.get("category"))),
    }

    stats = index.get("stats") or {}
    for key in ("totalMarketplaces", "totalPlugins", "totalDownloads", "totalStars"):
        if stats.get(key):
            overview[key] = stats[key]

    top_marketplaces = sorted(marketplaces, key=lambda m: int(m.get("stars") or 0), reverse=True)[:TOP_N]
    top_plugins = sorted(
        plugins, key=lambda p: int(p.get("stars") or p.get("downloads") or 0), reverse=True,
    )[:TOP_N]
    authors = Counter(str(p["author"]) for p in plugins if p.get("author"))

    ecosystem = {
        "topMarketplaces": [
            {
                "name": m.get("name", ""),
                "url": m.get("url", ""),
                "stars": int(m.get("stars") or 0),
                "forks": int(m.get("forks") or 0),
                "plugins": len((m.get("manifest") or {}).get("plugins") or m.get("plugins") or []),
                "lastUpdated": m.get("updatedAt", ""),
            }
            for m in top_marketplaces
        ],
        "topPlugins": [
            {
                "name": p.get("name", ""),
                "repository": p.get("repositoryUrl") or p.get("url", ""),
                "stars": int(p.get("stars") or 0),
                "downloads": int(p.get("downloads") or 0),
                "author": p.get("author", ""),
                "lastUpdated": p.get("lastUpdated", ""),
            }
            for p in top_plugins
        ],
        "activeContributors": [
            {"username": name, "contributions": count}
            for name, count in authors.most_common(TOP_N)
        ],
    }

    metadata = index.get("metadata") or {}
    health: dict[str, Any] = {
        "dataFreshness": "Unknown",
        "lastScan": metadata.get("lastScan", ""),
        "scanDuration": metadata.get("scanDuration", 0),
        "errorCount": metadata.get("errorCount", 0),
        "successRate": metadata.get("successRate", 100),
    }
    if index_path.is_file():
        age = (time.time() - index_path.stat().st_mtime) / 3600
        health["dataFreshness"] = f"{round(age)} hours ago"
        health["lastScan"] = health["lastScan"] or datetime.fromtimestamp(
            index_path.stat().st_mtime, UTC,
        ).isoformat()

    totals = {
        "marketplaces": overview["totalMarketplaces"],
        "plugins": overview["totalPlugins"],
        "stars": overview["totalStars"],
        "downloads": overview["totalDownloads"],
    }
    trends = {
        "daily": trend_series(totals, TREND_DAYS, timedelta(days=1), today, "date"),
        "weekly": trend_series(totals, TREND_WEEKS, timedelta(weeks=1), today, "week"),
        "monthly": trend_series(totals, TREND_MONTHS, timedelta(days=30), today, "month"),
    }

    summary = metrics.summary() if metrics else {"requests": 0, "errors": 0, "averageResponseTime": 0.0}
    uptime = uptime_seconds()
    performance = {
        "averageResponseTime": summary["averageResponseTime"],
        "uptime": uptime,
        "memoryUsageMB": memory_usage_mb(),
        "errorRate": round(summary["errors"] / summary["requests"] * 100, 2) if summary["requests"] else 0,
        "requestsPerMinute": round(summary["requests"] / (uptime / 60), 2) if uptime > 0 else 0,
    }

    logger.debug("Analytics built in %.1f ms", (time.monotonic() - start) * 1000)
    return {
        "overview": overview,
        "trends": trends,
        "ecosystem": ecosystem,
        "health": health,
        "performance": performance,
        "generatedAt": datetime.now(UTC).isoformat(),
    }
