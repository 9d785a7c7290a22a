"""
Ecosystem statistics — overview, quality, growth and category views.

The overview is computed from the live catalog snapshot. Category
analytics and quality indicators come from the bundled catalogs, and
growth trends are a deterministic compounding series anchored on the
overview totals. There is no historical store behind any of this.

Query parameters (all optional):
    period              7d | 30d | 90d | 1y      (default 30d)
    aggregation         daily | weekly | monthly (default weekly)
    format              json | csv | xml         (default json)
    includePredictions  "true" adds projected points to growth trends
    forceRefresh        "true" bypasses the response cache
"""

from __future__ import annotations

import csv
import io
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from aggregator.core.data import get_registry
from aggregator.core.models.stats import (
    CategoryAnalytics,
    EcosystemOverview,
    EcosystemStats,
    GrowthRate,
    GrowthTrends,
    QualityIndicators,
    TrendDataPoint,
)
from aggregator.core.services.catalog import CatalogSnapshot
from aggregator.core.services.query import QueryError

logger = logging.getLogger(__name__)

VALID_PERIODS = ("7d", "30d", "90d", "1y")
VALID_AGGREGATIONS = ("daily", "weekly", "monthly")
VALID_FORMATS = ("json", "csv", "xml")
SECTIONS = ("overview", "quality", "growth", "categories")

_PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
MAX_TREND_POINTS = 12
PREDICTION_POINTS = 3

# Annual growth (%) used for trend series; no history is stored.
GROWTH_RATES = GrowthRate(plugins=15.2, marketplaces=7.1, developers=12.8, downloads=23.4)

# period → (growth multiplier, count multiplier)
_PERIOD_ADJUSTMENTS = {"7d": (1.2, 0.95), "90d": (0.8, 1.1)}


@dataclass(frozen=True)
class StatsParams:
    period: str = "30d"
    aggregation: str = "weekly"
    format: str = "json"
    include_predictions: bool = False
    force_refresh: bool = False
    section: str | None = None

    @property
    def cache_key(self) -> str:
        return (
            f"stats:{self.section or 'all'}:{self.period}:{self.aggregation}"
            f":{int(self.include_predictions)}"
        )


def parse_params(args: Mapping[str, str]) -> StatsParams:
    """Validate ecosystem-stats query parameters.

    Raises:
        QueryError: On an unknown period, aggregation or format.
    """
    period = args.get("period") or "30d"
    aggregation = args.get("aggregation") or "weekly"
    fmt = args.get("format") or "json"

    if period not in VALID_PERIODS:
        raise QueryError("Invalid period parameter", "period")
    if aggregation not in VALID_AGGREGATIONS:
        raise QueryError("Invalid aggregation parameter", "aggregation")
    if fmt not in VALID_FORMATS:
        raise QueryError("Invalid format parameter", "format")

    return StatsParams(
        period=period,
        aggregation=aggregation,
        format=fmt,
        include_predictions=args.get("includePredictions") == "true",
        force_refresh=args.get("forceRefresh") == "true",
        section=select_section(args),
    )


def select_section(args: Mapping[str, str]) -> str | None:
    """Pick the requested section: a bare flag (``?overview``) or ``?metric=``."""
    for name in SECTIONS:
        if name in args:
            return name
    metric = args.get("metric")
    if metric in SECTIONS:
        return metric
    return None


# ── Sections ────────────────────────────────────────────────────────


def build_overview(snapshot: CatalogSnapshot) -> EcosystemOverview:
    """Headline counts computed from the catalog."""
    developers = {p.author for p in snapshot.plugins if p.author}
    developers.update(m.owner for m in snapshot.marketplaces if m.owner)

    return EcosystemOverview(
        total_plugins=len(snapshot.plugins),
        total_marketplaces=len(snapshot.marketplaces),
        total_developers=len(developers),
        total_downloads=sum(p.downloads for p in snapshot.plugins),
        last_updated=snapshot.last_updated or datetime.now(UTC).isoformat(),
        growth_rate=GROWTH_RATES,
    )


def build_category_analytics(period: str = "30d") -> CategoryAnalytics:
    """Bundled category analytics, scaled for short and long periods."""
    analytics = get_registry().category_analytics
    adjustment = _PERIOD_ADJUSTMENTS.get(period)
    if adjustment is None:
        return analytics.model_copy(deep=True)

    growth_mult, count_mult = adjustment
    categories = [
        c.model_copy(update={
            "growth_rate": round(c.growth_rate * growth_mult, 2),
            "count": int(c.count * count_mult),
        })
        for c in analytics.categories
    ]
    return analytics.model_copy(update={"categories": categories}, deep=True)


def build_quality_indicators() -> QualityIndicators:
    return get_registry().quality_indicators.model_copy(deep=True)


def _step_back(anchor: date, steps: int, aggregation: str) -> date:
    if aggregation == "daily":
        return anchor - timedelta(days=steps)
    if aggregation == "weekly":
        return anchor - timedelta(weeks=steps)
    # monthly: clamp the day so e.g. Mar 31 - 1 month → Feb 28
    month_index = anchor.year * 12 + (anchor.month - 1) - steps
    year, month = divmod(month_index, 12)
    month += 1
    for day in (anchor.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return date(year, month, 28)


def growth_series(
    current: float,
    annual_rate: float,
    points: int,
    aggregation: str,
    today: date,
) -> list[TrendDataPoint]:
    """Compounding series climbing toward ``current``, one point per step.

    Starts from ``current * (1 - rate)^points`` and grows by
    ``rate / points`` per step, so the last point stays below
    ``current`` for any positive rate. Dates run backwards from ``today``.
    """
    rate = annual_rate / 100
    value = current * (1 - rate) ** points
    series: list[TrendDataPoint] = []
    for i in range(points):
        value *= 1 + rate / points
        day = _step_back(today, points - i, aggregation)
        series.append(TrendDataPoint(date=day.isoformat(), value=round(value)))
    return series


def _project(series: list[TrendDataPoint], annual_rate: float, aggregation: str) -> list[TrendDataPoint]:
    if not series:
        return []
    step = annual_rate / 100 / max(len(series), 1)
    last = series[-1]
    value = float(last.value)
    anchor = date.fromisoformat(last.date)
    projected = []
    for i in range(1, PREDICTION_POINTS + 1):
        value *= 1 + step
        day = _step_back(anchor, -i, aggregation)
        projected.append(TrendDataPoint(date=day.isoformat(), value=round(value)))
    return projected


def build_growth_trends(
    overview: EcosystemOverview,
    period: str = "30d",
    aggregation: str = "weekly",
    include_predictions: bool = False,
    today: date | None = None,
) -> GrowthTrends:
    today = today or datetime.now(UTC).date()
    points = min(_PERIOD_DAYS[period], MAX_TREND_POINTS)

    bases = {
        "plugins": (overview.total_plugins, GROWTH_RATES.plugins),
        "marketplaces": (overview.total_marketplaces, GROWTH_RATES.marketplaces),
        "developers": (overview.total_developers, GROWTH_RATES.developers),
        "downloads": (overview.total_downloads, GROWTH_RATES.downloads),
    }
    series = {
        name: growth_series(base, rate, points, aggregation, today)
        for name, (base, rate) in bases.items()
    }

    predictions = None
    if include_predictions:
        predictions = {
            name: _project(series[name], rate, aggregation)
            for name, (_base, rate) in bases.items()
        }

    return GrowthTrends(
        **series,
        period=period,
        aggregation=aggregation,
        predictions=predictions,
    )


def compute_stats(snapshot: CatalogSnapshot, params: StatsParams, today: date | None = None) -> dict[str, Any]:
    """Build the data payload for the requested section (or everything)."""
    overview = build_overview(snapshot)

    if params.section == "overview":
        return overview.to_dict()
    if params.section == "quality":
        return build_quality_indicators().to_dict()
    if params.section == "categories":
        return build_category_analytics(params.period).to_dict()
    if params.section == "growth":
        return build_growth_trends(
            overview, params.period, params.aggregation, params.include_predictions, today,
        ).to_dict()

    return EcosystemStats(
        overview=overview,
        quality_indicators=build_quality_indicators(),
        growth_trends=build_growth_trends(
            overview, params.period, params.aggregation, params.include_predictions, today,
        ),
        category_analytics=build_category_analytics(params.period),
    ).to_dict()


# ── Rendering ───────────────────────────────────────────────────────


def _flatten(data: Any, prefix: str = "") -> list[tuple[str, Any]]:
    if isinstance(data, dict):
        rows: list[tuple[str, Any]] = []
        for key, value in data.items():
            rows.extend(_flatten(value, f"{prefix}.{key}" if prefix else str(key)))
        return rows
    if isinstance(data, list):
        rows = []
        for i, value in enumerate(data):
            rows.extend(_flatten(value, f"{prefix}[{i}]"))
        return rows
    return [(prefix, data)]


def to_csv(data: Any) -> str:
    """Flatten a payload to ``field,value`` rows."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["field", "value"])
    for key, value in _flatten(data):
        writer.writerow([key, "" if value is None else value])
    return buf.getvalue()


def _to_element(tag: str, data: Any) -> ET.Element:
    element = ET.Element(tag)
    if isinstance(data, dict):
        for key, value in data.items():
            element.append(_to_element(str(key), value))
    elif isinstance(data, list):
        for value in data:
            element.append(_to_element("item", value))
    elif data is not None:
        element.text = str(data).lower() if isinstance(data, bool) else str(data)
    return element


def to_xml(data: Any, root: str = "ecosystemStats") -> str:
    return ET.tostring(_to_element(root, data), encoding="unicode")
