"""
Domain models — Pydantic types for the aggregator.

All models are re-exported here for convenient access:

    from aggregator.core.models import Plugin, Marketplace, Settings
"""

from aggregator.core.models.marketplace import Marketplace, MarketplaceCreate
from aggregator.core.models.plugin import Plugin, PluginCreate
from aggregator.core.models.settings import GitHubSettings, RateLimitSettings, Settings
from aggregator.core.models.stats import (
    CategoryAnalytics,
    CategoryData,
    EcosystemOverview,
    EcosystemStats,
    GrowthTrends,
    QualityIndicators,
    TrendDataPoint,
)

__all__ = [
    # stats.py
    "CategoryAnalytics",
    "CategoryData",
    "EcosystemOverview",
    "EcosystemStats",
    # settings.py
    "GitHubSettings",
    "GrowthTrends",
    # marketplace.py
    "Marketplace",
    "MarketplaceCreate",
    # plugin.py
    "Plugin",
    "PluginCreate",
    "QualityIndicators",
    "RateLimitSettings",
    "Settings",
    "TrendDataPoint",
]
