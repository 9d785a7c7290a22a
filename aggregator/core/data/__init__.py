"""
Bundled catalog registry — the mock data the aggregator falls back to.

Loads the JSON catalogs in ``aggregator/core/data/catalogs/`` once at
first access and caches them for the process lifetime. The catalog
service, the stats service and the web pages all read from here when
no scanned data is available.

Usage::

    from aggregator.core.data import get_registry

    registry = get_registry()
    plugins = registry.mock_plugins          # list[Plugin]
    marketplaces = registry.mock_marketplaces
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.models.plugin import Plugin
from aggregator.core.models.stats import CategoryAnalytics, QualityIndicators

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent


def _load_json(relative_path: str) -> list | dict:
    """Load a JSON file relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return [] if relative_path.endswith("s.json") else {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class DataRegistry:
    """Registry for the bundled catalogs.

    Each property lazily loads its JSON file on first access and caches
    the result for the lifetime of the instance.
    """

    # ── Catalog ──────────────────────────────────────────────────

    @cached_property
    def mock_marketplaces(self) -> list[Marketplace]:
        data = _load_json("catalogs/mock_marketplaces.json")
        result = [Marketplace.model_validate(m) for m in data]
        logger.debug("Loaded %d mock marketplaces", len(result))
        return result

    @cached_property
    def mock_plugins(self) -> list[Plugin]:
        data = _load_json("catalogs/mock_plugins.json")
        result = [Plugin.model_validate(p) for p in data]
        logger.debug("Loaded %d mock plugins", len(result))
        return result

    @cached_property
    def categories(self) -> list[str]:
        """Category filter options, "All" first."""
        return list(_load_json("catalogs/categories.json"))

    # ── Analytics ────────────────────────────────────────────────

    @cached_property
    def category_analytics(self) -> CategoryAnalytics:
        return CategoryAnalytics.model_validate(_load_json("catalogs/category_analytics.json"))

    @cached_property
    def quality_indicators(self) -> QualityIndicators:
        return QualityIndicators.model_validate(_load_json("catalogs/quality_indicators.json"))


# ── Module-level singleton ───────────────────────────────────────

_registry: DataRegistry | None = None


def get_registry() -> DataRegistry:
    """Return the process-level DataRegistry singleton."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = DataRegistry()
    return _registry
