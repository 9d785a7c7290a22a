"""
Catalog listing — filter, sort and paginate plugins and marketplaces.

Used by ``GET /api/plugins``, ``GET /api/marketplaces``, the catalog
pages and the ``aggregator plugins list`` CLI command.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.models.plugin import Plugin
from aggregator.core.services.query import Page

# sort key → (key function, natural direction is descending)
_PLUGIN_SORTS: dict[str, tuple[Callable[[Plugin], Any], bool]] = {
    "name": (lambda p: p.name.casefold(), False),
    "stars": (lambda p: p.stars, True),
    "downloads": (lambda p: p.downloads, True),
    "updated": (lambda p: p.last_updated, True),
    "author": (lambda p: p.author.casefold(), False),
    "category": (lambda p: p.category.casefold(), False),
}

_MARKETPLACE_SORTS: dict[str, tuple[Callable[[Marketplace], Any], bool]] = {
    "name": (lambda m: m.name.casefold(), False),
    "stars": (lambda m: m.stars, True),
    "category": (lambda m: m.category.casefold(), False),
    "owner": (lambda m: m.owner.casefold(), False),
}


def _sort(items: list, sorts: dict, sort: str, order: str) -> list:
    key, natural_desc = sorts.get(sort, sorts["name"])
    reverse = natural_desc != (order == "desc")
    return sorted(items, key=key, reverse=reverse)


def _category_matches(category: str | None, value: str) -> bool:
    if not category or category.lower() == "all":
        return True
    return value.lower() == category.lower()


@dataclass
class PluginQuery:
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    author: str | None = None
    verified: bool = False
    featured: bool = False
    sort: str = "name"
    order: str = "asc"
    page: Page = field(default_factory=Page)


@dataclass
class MarketplaceQuery:
    category: str | None = None
    verified: bool = False
    featured: bool = False
    sort: str = "name"
    order: str = "asc"
    page: Page = field(default_factory=Page)


def filter_plugins(plugins: list[Plugin], query: PluginQuery) -> list[Plugin]:
    result = [p for p in plugins if _category_matches(query.category, p.category)]

    if query.tags:
        wanted = [t.lower() for t in query.tags]
        result = [
            p for p in result
            if any(w in tag.lower() for w in wanted for tag in p.tags)
        ]

    if query.author:
        needle = query.author.lower()
        result = [p for p in result if needle in p.author.lower()]

    if query.verified:
        result = [p for p in result if p.verified]

    if query.featured:
        result = [p for p in result if p.featured]

    return result


def list_plugins(plugins: list[Plugin], query: PluginQuery) -> dict[str, Any]:
    """Filter, sort and paginate plugins into the list-response shape."""
    matched = _sort(filter_plugins(plugins, query), _PLUGIN_SORTS, query.sort, query.order)

    return {
        "plugins": [p.to_dict() for p in query.page.slice(matched)],
        "pagination": query.page.to_dict(len(matched)),
        "filters": {
            "category": query.category,
            "tags": query.tags or None,
            "author": query.author,
            "verified": query.verified,
            "featured": query.featured,
        },
        "sort": {"by": query.sort, "order": query.order},
    }


def filter_marketplaces(marketplaces: list[Marketplace], query: MarketplaceQuery) -> list[Marketplace]:
    result = [m for m in marketplaces if _category_matches(query.category, m.category)]
    if query.verified:
        result = [m for m in result if m.verified]
    if query.featured:
        result = [m for m in result if m.featured]
    return result


def list_marketplaces(marketplaces: list[Marketplace], query: MarketplaceQuery) -> dict[str, Any]:
    """Filter, sort and paginate marketplaces into the list-response shape."""
    matched = _sort(
        filter_marketplaces(marketplaces, query), _MARKETPLACE_SORTS, query.sort, query.order,
    )

    return {
        "marketplaces": [m.to_dict() for m in query.page.slice(matched)],
        "pagination": query.page.to_dict(len(matched)),
        "filters": {
            "category": query.category,
            "verified": query.verified,
            "featured": query.featured,
        },
        "sort": {"by": query.sort, "order": query.order},
    }
