"""
Keyword search over the catalog.

A linear scan with fixed point weights — not a search engine. Items
match when the term is a substring of any searchable field; matches are
ranked by score (highest first, ties keep catalog order) and paginated.

Name scoring is tiered so that for otherwise identical items an exact
name match outranks a prefix match, which outranks a plain substring:

    exact name 100  >  name prefix 80  >  name substring 60
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.models.plugin import Plugin
from aggregator.core.services.query import Page, QueryError

SEARCH_TYPES = ("all", "plugins", "marketplaces")
MAX_SUGGESTIONS = 10

SCORE_NAME_EXACT = 100
SCORE_NAME_PREFIX = 80
SCORE_NAME_CONTAINS = 60
SCORE_DESCRIPTION = 40
SCORE_TAG_EXACT = 50
SCORE_TAG_CONTAINS = 30
SCORE_CATEGORY_EXACT = 45
SCORE_AUTHOR = 35


@dataclass
class SearchQuery:
    term: str
    type: str = "all"
    page: Page = field(default_factory=Page)


def normalize_query(raw: str | None, search_type: str | None = None, page: Page | None = None) -> SearchQuery:
    """Validate the raw query string and search type.

    Raises:
        QueryError: On an empty query or unknown type.
    """
    term = (raw or "").strip().lower()
    if not term:
        raise QueryError("Search query is required", "q")
    search_type = search_type or "all"
    if search_type not in SEARCH_TYPES:
        raise QueryError(
            f"Invalid type '{search_type}' (expected one of: {', '.join(SEARCH_TYPES)})", "type",
        )
    return SearchQuery(term=term, type=search_type, page=page or Page())


def _name_score(name: str, term: str) -> int:
    name = name.lower()
    if name == term:
        return SCORE_NAME_EXACT
    if name.startswith(term):
        return SCORE_NAME_PREFIX
    if term in name:
        return SCORE_NAME_CONTAINS
    return 0


def plugin_matches(plugin: Plugin, term: str) -> bool:
    return (
        term in plugin.name.lower()
        or term in plugin.description.lower()
        or term in plugin.author.lower()
        or term in plugin.category.lower()
        or any(term in tag.lower() for tag in plugin.tags)
    )


def score_plugin(plugin: Plugin, term: str) -> int:
    score = _name_score(plugin.name, term)

    if term in plugin.description.lower():
        score += SCORE_DESCRIPTION

    for tag in plugin.tags:
        tag = tag.lower()
        if tag == term:
            score += SCORE_TAG_EXACT
        elif term in tag:
            score += SCORE_TAG_CONTAINS

    if plugin.category.lower() == term:
        score += SCORE_CATEGORY_EXACT

    if term in plugin.author.lower():
        score += SCORE_AUTHOR

    return score


def marketplace_matches(marketplace: Marketplace, term: str) -> bool:
    return (
        term in marketplace.name.lower()
        or term in marketplace.description.lower()
        or term in marketplace.owner.lower()
        or term in marketplace.category.lower()
    )


def score_marketplace(marketplace: Marketplace, term: str) -> int:
    score = _name_score(marketplace.name, term)

    if term in marketplace.description.lower():
        score += SCORE_DESCRIPTION

    if marketplace.category.lower() == term:
        score += SCORE_CATEGORY_EXACT

    if term in marketplace.owner.lower():
        score += SCORE_AUTHOR

    return score


def rank_plugins(plugins: list[Plugin], term: str) -> list[tuple[Plugin, int]]:
    scored = [(p, score_plugin(p, term)) for p in plugins if plugin_matches(p, term)]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored


def rank_marketplaces(marketplaces: list[Marketplace], term: str) -> list[tuple[Marketplace, int]]:
    scored = [(m, score_marketplace(m, term)) for m in marketplaces if marketplace_matches(m, term)]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored


def _suggestions(plugins: list[Plugin], marketplaces: list[Marketplace], term: str) -> list[str]:
    """Related tags and categories that contain (but are not) the term."""
    seen: dict[str, None] = {}

    for plugin in plugins:
        for tag in plugin.tags:
            if tag.lower() != term and term in tag.lower():
                seen.setdefault(tag, None)

    for item in [*plugins, *marketplaces]:
        category = item.category
        if category and category.lower() != term and term in category.lower():
            seen.setdefault(category, None)

    return list(seen)[:MAX_SUGGESTIONS]


def search(
    plugins: list[Plugin],
    marketplaces: list[Marketplace],
    query: SearchQuery,
) -> dict[str, Any]:
    """Run a search and build the response body.

    The plugin and marketplace lists are paginated independently with the
    same window. ``results.total`` counts what is returned on this page;
    ``pagination.total`` counts every match.
    """
    term = query.term
    page = query.page

    ranked_plugins: list[tuple[Plugin, int]] = []
    ranked_marketplaces: list[tuple[Marketplace, int]] = []

    if query.type in ("all", "plugins"):
        ranked_plugins = rank_plugins(plugins, term)

    if query.type in ("all", "marketplaces"):
        ranked_marketplaces = rank_marketplaces(marketplaces, term)

    found_plugins = page.slice(ranked_plugins)
    found_marketplaces = page.slice(ranked_marketplaces)
    total = len(found_plugins) + len(found_marketplaces)
    matched = len(ranked_plugins) + len(ranked_marketplaces)

    return {
        "query": term,
        "type": query.type,
        "results": {
            "plugins": [{**p.to_dict(), "_searchScore": s} for p, s in found_plugins],
            "marketplaces": [{**m.to_dict(), "_searchScore": s} for m, s in found_marketplaces],
            "total": total,
        },
        "pagination": {
            "total": matched,
            "limit": page.limit,
            "offset": page.offset,
            "hasMore": max(len(ranked_plugins), len(ranked_marketplaces)) > page.offset + page.limit,
        },
        "suggestions": _suggestions(
            [p for p, _ in found_plugins], [m for m, _ in found_marketplaces], term,
        ),
    }
