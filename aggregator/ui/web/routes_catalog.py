"""
Catalog routes — plugin and marketplace listings, detail, and search.

Blueprint: catalog_bp
Prefix: /api

Endpoints:
    GET|POST /plugins              — list (filter/sort/paginate) or submit
    GET      /plugins/<id>         — one plugin
    GET|POST /marketplaces         — list or submit
    GET      /marketplaces/<id>    — one marketplace with its plugins
    GET      /search?q=            — keyword search

Submissions are validated and echoed back with server-assigned fields;
nothing is stored.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from aggregator.core.models import marketplace as marketplace_model
from aggregator.core.models import plugin as plugin_model
from aggregator.core.services import listing, search
from aggregator.core.services.query import QueryError, parse_page
from aggregator.ui.web import helpers

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__)


def _submit(model: type[plugin_model.PluginCreate | marketplace_model.MarketplaceCreate], kind: str, required: tuple[str, ...]):  # type: ignore[no-untyped-def]
    """Validate a POSTed plugin/marketplace and echo it with server fields."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return helpers.bad_request("Request body must be a JSON object")

    try:
        submission = model.model_validate(body)
    except ValidationError as e:
        return helpers.bad_request(f"Invalid {kind}: {e.errors()[0]['msg']}")

    if submission.missing_fields():
        return helpers.bad_request(f"Missing required fields: {', '.join(required)}")

    created = submission.build()
    logger.info("%s submitted: %s (%s)", kind.capitalize(), created["name"], created["id"])
    return jsonify({"message": f"{kind.capitalize()} created successfully", kind: created}), 201


# ── Plugins ─────────────────────────────────────────────────────────


@catalog_bp.route("/plugins", methods=helpers.ALL_METHODS)
def plugins():  # type: ignore[no-untyped-def]
    """List plugins, or accept a plugin submission."""
    if request.method == "POST":
        return _submit(plugin_model.PluginCreate, "plugin", plugin_model.REQUIRED_FIELDS)
    if request.method != "GET":
        return helpers.method_not_allowed(["GET", "POST"])

    try:
        query = helpers.plugin_query(request.args)
    except QueryError as e:
        return helpers.bad_request(str(e))

    return jsonify(listing.list_plugins(helpers.catalog().plugins, query))


@catalog_bp.route("/plugins/<plugin_id>")
def plugin_detail(plugin_id: str):  # type: ignore[no-untyped-def]
    plugin = helpers.catalog().get_plugin(plugin_id)
    if plugin is None:
        return helpers.not_found(f"Plugin '{plugin_id}' not found")
    return jsonify({"plugin": plugin.to_dict()})


# ── Marketplaces ────────────────────────────────────────────────────


@catalog_bp.route("/marketplaces", methods=helpers.ALL_METHODS)
def marketplaces():  # type: ignore[no-untyped-def]
    """List marketplaces, or accept a marketplace submission."""
    if request.method == "POST":
        return _submit(marketplace_model.MarketplaceCreate, "marketplace", marketplace_model.REQUIRED_FIELDS)
    if request.method != "GET":
        return helpers.method_not_allowed(["GET", "POST"])

    try:
        query = helpers.marketplace_query(request.args)
    except QueryError as e:
        return helpers.bad_request(str(e))

    return jsonify(listing.list_marketplaces(helpers.catalog().marketplaces, query))


@catalog_bp.route("/marketplaces/<marketplace_id>")
def marketplace_detail(marketplace_id: str):  # type: ignore[no-untyped-def]
    snapshot = helpers.catalog()
    marketplace = snapshot.get_marketplace(marketplace_id)
    if marketplace is None:
        return helpers.not_found(f"Marketplace '{marketplace_id}' not found")

    plugins = snapshot.plugins_for(marketplace)
    return jsonify({
        "marketplace": marketplace.to_dict(),
        "plugins": [p.to_dict() for p in plugins],
        "pluginCount": len(plugins),
    })


# ── Search ──────────────────────────────────────────────────────────


@catalog_bp.route("/search", methods=helpers.ALL_METHODS)
def search_catalog():  # type: ignore[no-untyped-def]
    if request.method != "GET":
        return helpers.method_not_allowed(["GET"])

    try:
        query = search.normalize_query(
            request.args.get("q"),
            request.args.get("type"),
            parse_page(request.args.get("limit"), request.args.get("offset")),
        )
    except QueryError as e:
        return helpers.bad_request(str(e))

    snapshot = helpers.catalog()
    return jsonify(search.search(snapshot.plugins, snapshot.marketplaces, query))
