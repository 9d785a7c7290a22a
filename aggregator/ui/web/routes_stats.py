"""
Stats routes — ecosystem statistics and analytics.

Blueprint: stats_bp
Prefix: /api

Endpoints:
    GET|OPTIONS /ecosystem-stats   — overview/quality/growth/categories
    GET         /analytics         — report built from the generated data files
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from aggregator.core.services import analytics, ecosystem_stats
from aggregator.core.services.data_cache import DataCache
from aggregator.core.services.query import QueryError
from aggregator.ui.web import helpers

logger = logging.getLogger(__name__)

stats_bp = Blueprint("stats", __name__)

STATS_CACHE_SECONDS = 300


def _stats_cache() -> DataCache:
    return current_app.config["STATS_CACHE"]


def _finish(response: Response, max_age: int) -> Response:
    response.headers["Cache-Control"] = f"public, max-age={max_age}"
    response.headers["X-Response-Time"] = f"{helpers.elapsed_ms()}ms"
    return helpers.with_cors(response)


@stats_bp.route("/ecosystem-stats", methods=[*helpers.ALL_METHODS, "OPTIONS"])
def ecosystem_stats_endpoint():  # type: ignore[no-untyped-def]
    """Ecosystem statistics.

    ``?overview``, ``?quality``, ``?growth`` or ``?categories`` (or
    ``?metric=quality|growth``) select one section; no selector returns
    everything. ``format=csv|xml`` renders the data instead of JSON.
    """
    if request.method == "OPTIONS":
        return helpers.with_cors(Response(status=200))

    if request.method != "GET":
        body = helpers.error_envelope("METHOD_NOT_ALLOWED", f"Method {request.method} not allowed")
        response = jsonify(body)
        response.status_code = 405
        response.headers["Allow"] = "GET, OPTIONS"
        return helpers.with_cors(response)

    try:
        params = ecosystem_stats.parse_params(request.args)
    except QueryError as e:
        body = helpers.error_envelope("INVALID_PARAMETER", str(e), {"parameter": e.param})
        response = jsonify(body)
        response.status_code = 400
        return helpers.with_cors(response)

    cache = _stats_cache()
    snapshot = helpers.catalog()
    # stats computed from superseded catalog data are never served
    key = f"{params.cache_key}:{snapshot.version}"
    if params.force_refresh:
        data, hit = ecosystem_stats.compute_stats(snapshot, params), False
        cache.set(key, data)
    else:
        data, hit = cache.get_or_compute(
            key, lambda: ecosystem_stats.compute_stats(snapshot, params),
        )

    max_age = 0 if params.force_refresh else STATS_CACHE_SECONDS

    if params.format == "csv":
        response = Response(ecosystem_stats.to_csv(data), mimetype="text/csv")
        response.headers["Content-Disposition"] = "attachment; filename=ecosystem-stats.csv"
        return _finish(response, max_age)
    if params.format == "xml":
        response = Response(ecosystem_stats.to_xml(data), mimetype="application/xml")
        return _finish(response, max_age)

    body = helpers.envelope(
        data,
        cacheStatus="hit" if hit else "miss",
        dataSource=snapshot.source,
        period=params.period,
        section=params.section or "all",
    )
    return _finish(jsonify(body), max_age)


@stats_bp.route("/analytics", methods=helpers.ALL_METHODS)
def analytics_endpoint():  # type: ignore[no-untyped-def]
    if request.method != "GET":
        return helpers.method_not_allowed(["GET"])

    report = analytics.build_analytics(helpers.data_dir(), helpers.metrics())
    response = jsonify(report)
    response.headers["Cache-Control"] = f"public, max-age={STATS_CACHE_SECONDS}"
    response.headers["X-Response-Time"] = f"{helpers.elapsed_ms()}ms"
    return response
