"""
Ecosystem statistics models — aggregate views over the catalog.

All models serialize with camelCase keys (``totalPlugins``,
``growthRate``...) to match the dashboard's JSON contract.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Period = Literal["7d", "30d", "90d", "1y"]
Aggregation = Literal["daily", "weekly", "monthly"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GrowthRate(_CamelModel):
    plugins: float = 0.0
    marketplaces: float = 0.0
    developers: float = 0.0
    downloads: float = 0.0


class EcosystemOverview(_CamelModel):
    """Headline counts for the whole catalog."""

    total_plugins: int = 0
    total_marketplaces: int = 0
    total_developers: int = 0
    total_downloads: int = 0
    last_updated: str = ""
    growth_rate: GrowthRate = Field(default_factory=GrowthRate)
    health_score: float | None = None


class TrendDataPoint(_CamelModel):
    date: str
    value: int


class GrowthTrends(_CamelModel):
    plugins: list[TrendDataPoint] = Field(default_factory=list)
    marketplaces: list[TrendDataPoint] = Field(default_factory=list)
    developers: list[TrendDataPoint] = Field(default_factory=list)
    downloads: list[TrendDataPoint] = Field(default_factory=list)
    period: Period = "30d"
    aggregation: Aggregation = "weekly"
    predictions: dict[str, list[TrendDataPoint]] | None = None


class TopPlugin(_CamelModel):
    id: str
    name: str
    downloads: int = 0
    rating: float = 0.0


class CategoryData(_CamelModel):
    id: str
    name: str
    count: int = 0
    percentage: float = 0.0
    growth_rate: float = 0.0
    top_plugins: list[TopPlugin] = Field(default_factory=list)
    trending: bool = False
    description: str | None = None


class CategoryPerformance(_CamelModel):
    best_performing: str = ""
    fastest_growing: str = ""
    most_popular: str = ""


class CategoryAnalytics(_CamelModel):
    categories: list[CategoryData] = Field(default_factory=list)
    trending: list[str] = Field(default_factory=list)
    emerging: list[str] = Field(default_factory=list)
    underserved: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    performance: CategoryPerformance | None = None


class QualityIndicators(_CamelModel):
    """Verification, maintenance, quality and security indicators.

    The sub-sections are free-form mappings; their keys are already
    camelCase in the bundled data.
    """

    verification: dict[str, Any] = Field(default_factory=dict)
    maintenance: dict[str, Any] = Field(default_factory=dict)
    quality_metrics: dict[str, Any] = Field(default_factory=dict)
    security: dict[str, Any] | None = None


class EcosystemStats(_CamelModel):
    overview: EcosystemOverview
    quality_indicators: QualityIndicators
    growth_trends: GrowthTrends
    category_analytics: CategoryAnalytics
