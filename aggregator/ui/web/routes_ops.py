"""
Operational routes — health, status, and request metrics.

Blueprint: ops_bp
Prefix: /api

Endpoints:
    GET /health    — pass/fail checks (200 healthy, 503 unhealthy)
    GET /status    — per-subsystem status (503 when any subsystem is down)
    GET /metrics   — request metrics as JSON, or Prometheus text with
                     ``?format=prometheus`` / ``Accept: text/plain``
"""

from __future__ import annotations

import platform
import sys
from datetime import UTC, datetime

from flask import Blueprint, Response, jsonify, request

from aggregator import __version__
from aggregator.core.observability.health import check_health, memory_usage_mb
from aggregator.core.use_cases.status import get_status
from aggregator.ui.web import helpers

ops_bp = Blueprint("ops", __name__)

NO_CACHE = "no-cache, no-store, must-revalidate"


def _no_cache(response: Response) -> Response:
    response.headers["Cache-Control"] = NO_CACHE
    response.headers["X-Response-Time"] = f"{helpers.elapsed_ms()}ms"
    return response


@ops_bp.route("/health")
def health():  # type: ignore[no-untyped-def]
    report = check_health(helpers.data_dir(), helpers.build_dir(), helpers.github())
    response = jsonify(report.to_dict())
    response.status_code = report.http_status
    return _no_cache(response)


@ops_bp.route("/status")
def status():  # type: ignore[no-untyped-def]
    result = get_status(
        helpers.data_dir(),
        helpers.build_dir(),
        github=helpers.github(),
        metrics=helpers.metrics(),
    )
    response = jsonify(result.to_dict())
    response.status_code = result.http_status
    return _no_cache(response)


@ops_bp.route("/metrics", methods=helpers.ALL_METHODS)
def metrics():  # type: ignore[no-untyped-def]
    if request.method != "GET":
        return helpers.method_not_allowed(["GET"], {"error": "Method not allowed"})

    registry = helpers.metrics()
    registry.gauge("memory_usage_mb").set(memory_usage_mb())

    wants_text = request.args.get("format") == "prometheus" or "text/plain" in request.headers.get("Accept", "")
    if wants_text:
        response = Response(registry.to_prometheus(), mimetype="text/plain")
        response.headers["Content-Type"] = "text/plain; version=0.0.4"
        return _no_cache(response)

    body = {
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": registry.uptime,
        "version": __version__,
        "performance": {"report": registry.to_dict()},
        "system": {
            "pythonVersion": platform.python_version(),
            "platform": sys.platform,
            "arch": platform.machine(),
            "memoryUsageMB": memory_usage_mb(),
        },
    }
    if request.args.get("include") == "prometheus":
        body["performance"]["prometheus"] = registry.to_prometheus()
    return _no_cache(jsonify(body))
