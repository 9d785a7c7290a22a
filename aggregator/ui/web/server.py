"""
Web server — Flask app factory.

Creates the Flask application serving the catalog pages and the JSON
API under ``/api``. Per-app services (catalog store, caches, rate
limiter, metrics, feedback log, GitHub client) are built here and kept
on ``app.config`` so tests get a fresh set per app.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from flask import Flask, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException, InternalServerError

from aggregator.core.models.settings import Settings
from aggregator.core.observability.metrics import MetricsRegistry
from aggregator.core.persistence.feedback_log import FeedbackLog
from aggregator.core.reliability.rate_limiter import RateLimiter
from aggregator.core.services.catalog import CatalogStore
from aggregator.core.services.data_cache import DataCache
from aggregator.core.services.github_client import GitHubClient

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).parent


def _is_api() -> bool:
    return request.path.startswith("/api/")


def create_app(
    settings: Settings | None = None,
    project_root: Path | None = None,
    github: GitHubClient | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Loaded settings (defaults when None).
        project_root: Directory configured paths resolve against.
        github: GitHub client for health/status checks. Built from
            settings when None, unless settings say offline.

    Returns:
        Configured Flask application.
    """
    settings = settings or Settings()
    root = project_root or Path.cwd()

    app = Flask(
        __name__,
        template_folder=str(_PACKAGE_DIR / "templates"),
        static_folder=str(_PACKAGE_DIR / "static"),
    )

    app.config["SETTINGS"] = settings
    app.config["PROJECT_ROOT"] = str(root)
    app.json.sort_keys = False  # type: ignore[attr-defined]

    ttl = settings.cache_ttl_seconds
    app.config["CATALOG"] = CatalogStore(settings.data_path(root), ttl=ttl)
    app.config["STATS_CACHE"] = DataCache(default_ttl=ttl)
    app.config["METRICS"] = MetricsRegistry()
    app.config["FEEDBACK_LIMITER"] = RateLimiter(
        limit=settings.rate_limit.feedback_limit,
        window_seconds=settings.rate_limit.window_seconds,
    )
    app.config["FEEDBACK_LOG"] = FeedbackLog(state_dir=settings.state_path(root))
    if github is None and not settings.github.offline:
        github = GitHubClient.from_settings(settings.github)
    app.config["GITHUB"] = github

    from aggregator.ui.web.routes_catalog import catalog_bp
    from aggregator.ui.web.routes_feedback import feedback_bp
    from aggregator.ui.web.routes_ops import ops_bp
    from aggregator.ui.web.routes_pages import pages_bp
    from aggregator.ui.web.routes_stats import stats_bp

    app.register_blueprint(pages_bp)
    app.register_blueprint(catalog_bp, url_prefix="/api")
    app.register_blueprint(stats_bp, url_prefix="/api")
    app.register_blueprint(feedback_bp, url_prefix="/api")
    app.register_blueprint(ops_bp, url_prefix="/api")

    # ── Request timing ──────────────────────────────────────────

    @app.before_request
    def _start_timer():  # type: ignore[no-untyped-def]
        g.start_time = time.monotonic()

    @app.after_request
    def _record_request(response):  # type: ignore[no-untyped-def]
        start = g.get("start_time")
        if start is not None:
            route = request.url_rule.rule if request.url_rule else "unmatched"
            elapsed = (time.monotonic() - start) * 1000
            app.config["METRICS"].record_request(route, response.status_code, elapsed)
        return response

    # ── Errors ──────────────────────────────────────────────────

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-untyped-def]
        if _is_api():
            response = jsonify({"error": e.name, "message": e.description})
            response.status_code = e.code or 500
            for key, value in e.get_headers():
                if key != "Content-Type":
                    response.headers[key] = value
            return response
        return render_template("error.html", error=e), e.code or 500

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-untyped-def]
        if isinstance(e, HTTPException):
            return _http_error(e)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        if _is_api():
            response = jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"})
            response.status_code = 500
            return response
        return render_template("error.html", error=InternalServerError()), 500

    logger.info("Web app created (root=%s, data=%s)", root, settings.data_path(root))
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting web server on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
