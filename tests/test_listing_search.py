"""
Tests for query parsing, listing (filter/sort/paginate) and search ranking.
"""

from __future__ import annotations

import pytest

from aggregator.core.models.marketplace import Marketplace
from aggregator.core.models.plugin import Plugin
from aggregator.core.services.listing import (
    MarketplaceQuery,
    PluginQuery,
    filter_plugins,
    list_marketplaces,
    list_plugins,
)
from aggregator.core.services.query import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    Page,
    QueryError,
    parse_flag,
    parse_order,
    parse_page,
    split_terms,
)
from aggregator.core.services.search import (
    SCORE_NAME_CONTAINS,
    SCORE_NAME_EXACT,
    SCORE_NAME_PREFIX,
    normalize_query,
    rank_plugins,
    score_plugin,
    search,
)


def _plugin(pid: str, name: str, **kw) -> Plugin:
    return Plugin(id=pid, name=name, **kw)


PLUGINS = [
    _plugin("a", "Alpha Linter", category="Development", tags=["lint", "python"], author="Ann",
            stars=5, downloads=100, last_updated="2025-01-01", verified=True),
    _plugin("b", "beta docs", category="Documentation", tags=["docs"], author="Ben",
            stars=50, downloads=10, last_updated="2025-03-01", featured=True),
    _plugin("c", "Gamma Tester", category="Testing", tags=["pytest", "python"], author="Ann Lee",
            stars=20, downloads=1000, last_updated="2024-12-01", verified=True, featured=True),
]

MARKETPLACES = [
    Marketplace(id="m1", name="Zed Market", owner="zed", stars=3, category="Community"),
    Marketplace(id="m2", name="acme", owner="Acme", stars=30, category="Official", verified=True),
]


# ── Query parsing ───────────────────────────────────────────────────


class TestParsePage:
    def test_defaults(self):
        assert parse_page(None, None) == Page(limit=DEFAULT_LIMIT, offset=0)

    def test_clamps_limit(self):
        assert parse_page("0", None).limit == 1
        assert parse_page("-5", None).limit == 1
        assert parse_page("1000", None).limit == MAX_LIMIT

    def test_clamps_offset(self):
        assert parse_page(None, "-3").offset == 0

    def test_blank_is_default(self):
        assert parse_page("  ", "") == Page()

    def test_non_integer_rejected(self):
        with pytest.raises(QueryError) as exc:
            parse_page("ten", None)
        assert exc.value.param == "limit"

    def test_page_to_dict(self):
        assert Page(limit=2, offset=2).to_dict(5) == {"total": 5, "limit": 2, "offset": 2, "hasMore": True}
        assert Page(limit=2, offset=4).to_dict(5)["hasMore"] is False


class TestParseHelpers:
    def test_flag_literal_true_only(self):
        assert parse_flag("true") is True
        assert parse_flag("1") is False
        assert parse_flag(None) is False

    def test_order(self):
        assert parse_order("desc") == "desc"
        assert parse_order("sideways") == "asc"
        assert parse_order(None) == "asc"

    def test_split_terms(self):
        assert split_terms(["a,b", " c ", ",,"]) == ["a", "b", "c"]


# ── Listing ─────────────────────────────────────────────────────────


class TestListPlugins:
    def test_default_sort_by_name(self):
        result = list_plugins(PLUGINS, PluginQuery())
        assert [p["id"] for p in result["plugins"]] == ["a", "b", "c"]
        assert result["pagination"] == {"total": 3, "limit": 20, "offset": 0, "hasMore": False}
        assert result["sort"] == {"by": "name", "order": "asc"}

    def test_category_filter_case_insensitive(self):
        assert [p.id for p in filter_plugins(PLUGINS, PluginQuery(category="testing"))] == ["c"]

    def test_category_all(self):
        assert len(filter_plugins(PLUGINS, PluginQuery(category="All"))) == 3

    def test_tags_any_substring(self):
        assert [p.id for p in filter_plugins(PLUGINS, PluginQuery(tags=["PYTHON"]))] == ["a", "c"]
        assert [p.id for p in filter_plugins(PLUGINS, PluginQuery(tags=["doc", "test"]))] == ["b", "c"]

    def test_author_substring(self):
        assert [p.id for p in filter_plugins(PLUGINS, PluginQuery(author="ann"))] == ["a", "c"]

    def test_verified_and_featured(self):
        assert [p.id for p in filter_plugins(PLUGINS, PluginQuery(verified=True, featured=True))] == ["c"]

    def test_numeric_sort_natural_descending(self):
        result = list_plugins(PLUGINS, PluginQuery(sort="downloads"))
        assert [p["id"] for p in result["plugins"]] == ["c", "a", "b"]

    def test_numeric_sort_reversed(self):
        result = list_plugins(PLUGINS, PluginQuery(sort="stars", order="desc"))
        assert [p["id"] for p in result["plugins"]] == ["a", "c", "b"]

    def test_updated_sort(self):
        result = list_plugins(PLUGINS, PluginQuery(sort="updated"))
        assert [p["id"] for p in result["plugins"]] == ["b", "a", "c"]

    def test_unknown_sort_falls_back_to_name(self):
        result = list_plugins(PLUGINS, PluginQuery(sort="bogus"))
        assert [p["id"] for p in result["plugins"]] == ["a", "b", "c"]

    def test_pagination(self):
        result = list_plugins(PLUGINS, PluginQuery(page=Page(limit=2, offset=1)))
        assert [p["id"] for p in result["plugins"]] == ["b", "c"]
        assert result["pagination"]["total"] == 3
        assert result["pagination"]["hasMore"] is False

    def test_filters_echoed(self):
        result = list_plugins(PLUGINS, PluginQuery(category="Testing", tags=["x"]))
        assert result["filters"]["category"] == "Testing"
        assert result["filters"]["tags"] == ["x"]
        assert list_plugins(PLUGINS, PluginQuery())["filters"]["tags"] is None


class TestListMarketplaces:
    def test_sort_by_name(self):
        result = list_marketplaces(MARKETPLACES, MarketplaceQuery())
        assert [m["id"] for m in result["marketplaces"]] == ["m2", "m1"]

    def test_sort_by_stars(self):
        result = list_marketplaces(MARKETPLACES, MarketplaceQuery(sort="stars"))
        assert [m["id"] for m in result["marketplaces"]] == ["m2", "m1"]

    def test_verified(self):
        result = list_marketplaces(MARKETPLACES, MarketplaceQuery(verified=True))
        assert [m["id"] for m in result["marketplaces"]] == ["m2"]
        assert result["pagination"]["total"] == 1


# ── Search ──────────────────────────────────────────────────────────


class TestNormalizeQuery:
    def test_lowercases_and_strips(self):
        q = normalize_query("  GIT  ")
        assert q.term == "git"
        assert q.type == "all"

    def test_empty_rejected(self):
        with pytest.raises(QueryError) as exc:
            normalize_query("   ")
        assert exc.value.param == "q"

    def test_unknown_type(self):
        with pytest.raises(QueryError) as exc:
            normalize_query("x", "users")
        assert exc.value.param == "type"


class TestScoring:
    def test_exact_beats_prefix_beats_substring(self):
        exact = _plugin("1", "lint")
        prefix = _plugin("2", "linter")
        contains = _plugin("3", "autolint")
        assert score_plugin(exact, "lint") == SCORE_NAME_EXACT
        assert score_plugin(prefix, "lint") == SCORE_NAME_PREFIX
        assert score_plugin(contains, "lint") == SCORE_NAME_CONTAINS

        ranked = rank_plugins([contains, prefix, exact], "lint")
        assert [p.id for p, _ in ranked] == ["1", "2", "3"]

    def test_field_weights_add_up(self):
        p = _plugin("1", "x", description="a lint tool", tags=["lint", "linting"], category="lint", author="lint co")
        # description 40 + exact tag 50 + tag substring 30 + category 45 + author 35
        assert score_plugin(p, "lint") == 200

    def test_non_matching_excluded(self):
        assert rank_plugins(PLUGINS, "zzz") == []

    def test_ties_keep_catalog_order(self):
        ranked = rank_plugins(PLUGINS, "python")
        assert [p.id for p, _ in ranked] == ["a", "c"]


class TestSearch:
    def test_all_types(self):
        result = search(PLUGINS, MARKETPLACES, normalize_query("a"))
        assert result["query"] == "a"
        assert result["results"]["total"] == len(result["results"]["plugins"]) + len(result["results"]["marketplaces"])
        assert all("_searchScore" in p for p in result["results"]["plugins"])

    def test_type_plugins_only(self):
        result = search(PLUGINS, MARKETPLACES, normalize_query("acme", "plugins"))
        assert result["results"]["marketplaces"] == []

    def test_type_marketplaces(self):
        result = search(PLUGINS, MARKETPLACES, normalize_query("acme", "marketplaces"))
        assert [m["id"] for m in result["results"]["marketplaces"]] == ["m2"]
        assert result["results"]["marketplaces"][0]["_searchScore"] == SCORE_NAME_EXACT + 35

    def test_pagination_counts_all_matches(self):
        result = search(PLUGINS, [], normalize_query("python", "plugins", Page(limit=1)))
        assert len(result["results"]["plugins"]) == 1
        assert result["results"]["total"] == 1
        assert result["pagination"]["total"] == 2
        assert result["pagination"]["hasMore"] is True

    def test_suggestions(self):
        result = search(PLUGINS, [], normalize_query("py"))
        assert "python" in result["suggestions"]
        assert "pytest" in result["suggestions"]
