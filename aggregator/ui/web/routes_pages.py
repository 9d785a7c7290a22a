"""
Page routes — server-rendered catalog pages.

All pages read the same catalog snapshot as the JSON API.

    /                      home: overview numbers and featured plugins
    /marketplaces          marketplace list
    /marketplaces/<id>     one marketplace and its plugins
    /plugins               plugin list (?q= search, ?category= filter)
    /plugins/<id>          one plugin
    /docs, /docs/api       documentation
    /admin/analytics       analytics dashboard
"""

from __future__ import annotations

from flask import Blueprint, abort, render_template, request

from aggregator.core.data import get_registry
from aggregator.core.services import analytics, ecosystem_stats, listing, search
from aggregator.core.services.query import QueryError
from aggregator.ui.web import helpers

pages_bp = Blueprint("pages", __name__)

FEATURED_ON_HOME = 6


@pages_bp.route("/")
def home():  # type: ignore[no-untyped-def]
    snapshot = helpers.catalog()
    featured = [p for p in snapshot.plugins if p.featured][:FEATURED_ON_HOME]
    return render_template(
        "home.html",
        overview=ecosystem_stats.build_overview(snapshot),
        featured=featured or snapshot.plugins[:FEATURED_ON_HOME],
        snapshot=snapshot,
    )


@pages_bp.route("/marketplaces")
def marketplaces():  # type: ignore[no-untyped-def]
    snapshot = helpers.catalog()
    return render_template(
        "marketplaces.html",
        marketplaces=sorted(snapshot.marketplaces, key=lambda m: m.stars, reverse=True),
        snapshot=snapshot,
    )


@pages_bp.route("/marketplaces/<marketplace_id>")
def marketplace_detail(marketplace_id: str):  # type: ignore[no-untyped-def]
    snapshot = helpers.catalog()
    marketplace = snapshot.get_marketplace(marketplace_id)
    if marketplace is None:
        abort(404, description=f"Marketplace '{marketplace_id}' not found")
    return render_template(
        "marketplace_detail.html",
        marketplace=marketplace,
        plugins=snapshot.plugins_for(marketplace),
    )


@pages_bp.route("/plugins")
def plugins():  # type: ignore[no-untyped-def]
    snapshot = helpers.catalog()
    term = request.args.get("q", "").strip()
    category = request.args.get("category") or None

    items = listing.filter_plugins(snapshot.plugins, listing.PluginQuery(category=category))
    if term:
        try:
            normalized = search.normalize_query(term, "plugins")
            items = [p for p, _score in search.rank_plugins(items, normalized.term)]
        except QueryError:
            items = []

    return render_template(
        "plugins.html",
        plugins=items,
        term=term,
        category=category or "All",
        categories=get_registry().categories,
    )


@pages_bp.route("/plugins/<plugin_id>")
def plugin_detail(plugin_id: str):  # type: ignore[no-untyped-def]
    plugin = helpers.catalog().get_plugin(plugin_id)
    if plugin is None:
        abort(404, description=f"Plugin '{plugin_id}' not found")
    return render_template("plugin_detail.html", plugin=plugin)


@pages_bp.route("/docs")
def docs():  # type: ignore[no-untyped-def]
    return render_template("docs.html")


@pages_bp.route("/docs/api")
def docs_api():  # type: ignore[no-untyped-def]
    return render_template("docs_api.html")


@pages_bp.route("/admin/analytics")
def admin_analytics():  # type: ignore[no-untyped-def]
    report = analytics.build_analytics(helpers.data_dir(), helpers.metrics())
    return render_template("admin_analytics.html", report=report)
