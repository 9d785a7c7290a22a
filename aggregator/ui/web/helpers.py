"""
Shared helpers for the route blueprints.

Accessors for the per-app services stored on ``app.config`` by
``create_app``, the JSON error/envelope shapes, and query-string
parsing into the listing/search query objects.
"""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from flask import Response, current_app, g, jsonify, request
from werkzeug.datastructures import MultiDict

from aggregator.core.models.settings import Settings
from aggregator.core.observability.metrics import MetricsRegistry
from aggregator.core.services.catalog import CatalogSnapshot, CatalogStore
from aggregator.core.services.github_client import GitHubClient
from aggregator.core.services.listing import MarketplaceQuery, PluginQuery
from aggregator.core.services.query import parse_flag, parse_order, parse_page, split_terms

# Registered on routes that answer unsupported methods themselves.
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# ── App services ────────────────────────────────────────────────────


def settings() -> Settings:
    return current_app.config["SETTINGS"]


def project_root() -> Path:
    return Path(current_app.config["PROJECT_ROOT"])


def data_dir() -> Path:
    return settings().data_path(project_root())


def build_dir() -> Path:
    return settings().build_path(project_root())


def catalog() -> CatalogSnapshot:
    store: CatalogStore = current_app.config["CATALOG"]
    return store.snapshot()


def metrics() -> MetricsRegistry:
    return current_app.config["METRICS"]


def github() -> GitHubClient | None:
    return current_app.config.get("GITHUB")


# ── Request context ─────────────────────────────────────────────────


def request_id() -> str:
    if "request_id" not in g:
        g.request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:16]}"
    return g.request_id


def elapsed_ms() -> float:
    start = g.get("start_time")
    if start is None:
        return 0.0
    return round((time.monotonic() - start) * 1000, 2)


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


# ── Response shapes ─────────────────────────────────────────────────


def error_response(status: int, error: str, message: str, headers: dict[str, str] | None = None):  # type: ignore[no-untyped-def]
    """``{"error": ..., "message": ...}`` used by the catalog routes."""
    return jsonify({"error": error, "message": message}), status, headers or {}


def bad_request(message: str):  # type: ignore[no-untyped-def]
    return error_response(400, "Bad Request", message)


def not_found(message: str):  # type: ignore[no-untyped-def]
    return error_response(404, "Not Found", message)


def method_not_allowed(allowed: list[str], body: dict[str, Any] | None = None):  # type: ignore[no-untyped-def]
    headers = {"Allow": ", ".join(allowed)}
    if body is not None:
        return jsonify(body), 405, headers
    return error_response(405, "Method Not Allowed", f"Method {request.method} not allowed", headers)


def meta(**extra: Any) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "requestId": request_id(),
        "responseTime": elapsed_ms(),
        **extra,
    }


def envelope(data: Any = None, **meta_extra: Any) -> dict[str, Any]:
    """Success envelope: ``{success, data, meta}``."""
    return {"success": True, "data": data, "meta": meta(**meta_extra)}


def error_envelope(code: str, message: str, details: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error, "meta": meta()}


def with_cors(response: Response) -> Response:
    response.headers.update(CORS_HEADERS)
    return response


# ── Query parsing ───────────────────────────────────────────────────


def plugin_query(args: MultiDict) -> PluginQuery:
    """Build a PluginQuery from request args.

    Raises:
        QueryError: If limit or offset is not an integer.
    """
    return PluginQuery(
        category=args.get("category") or None,
        tags=split_terms(args.getlist("tags")),
        author=args.get("author") or None,
        verified=parse_flag(args.get("verified")),
        featured=parse_flag(args.get("featured")),
        sort=args.get("sort") or "name",
        order=parse_order(args.get("order")),
        page=parse_page(args.get("limit"), args.get("offset")),
    )


def marketplace_query(args: MultiDict) -> MarketplaceQuery:
    return MarketplaceQuery(
        category=args.get("category") or None,
        verified=parse_flag(args.get("verified")),
        featured=parse_flag(args.get("featured")),
        sort=args.get("sort") or "name",
        order=parse_order(args.get("order")),
        page=parse_page(args.get("limit"), args.get("offset")),
    )
