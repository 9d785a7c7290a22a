"""
Feedback routes.

Blueprint: feedback_bp
Prefix: /api

Endpoints:
    POST     /feedback        — record user feedback (rate limited per client)
    GET|POST /feedback-test   — echo the request back in the standard envelope
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from aggregator.core.persistence.feedback_log import FeedbackEntry, FeedbackLog
from aggregator.core.reliability.rate_limiter import RateLimiter
from aggregator.ui.web import helpers

logger = logging.getLogger(__name__)

feedback_bp = Blueprint("feedback", __name__)


@feedback_bp.route("/feedback", methods=helpers.ALL_METHODS)
def feedback():  # type: ignore[no-untyped-def]
    if request.method != "POST":
        return helpers.method_not_allowed(["POST"], {"success": False, "message": "Method not allowed"})

    limiter: RateLimiter = current_app.config["FEEDBACK_LIMITER"]
    decision = limiter.check(helpers.client_ip())
    if not decision.allowed:
        response = jsonify({
            "success": False,
            "message": "Too many requests, please try again later",
        })
        response.status_code = 429
        response.headers.update(decision.headers())
        return response

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        response = jsonify({"success": False, "message": "Request body must be a JSON object"})
        response.status_code = 400
        response.headers.update(decision.headers())
        return response

    entry = FeedbackEntry(
        client=helpers.client_ip(),
        user_agent=request.headers.get("User-Agent", ""),
        payload=body,
    )
    log: FeedbackLog = current_app.config["FEEDBACK_LOG"]
    log.append(entry)
    logger.info("Feedback received: %s", entry.id)

    response = jsonify({
        "success": True,
        "message": "Feedback received successfully",
        "feedbackId": entry.id,
    })
    response.headers.update(decision.headers())
    return response


@feedback_bp.route("/feedback-test", methods=["GET", "POST"])
def feedback_test():  # type: ignore[no-untyped-def]
    received = request.get_json(silent=True) if request.method == "POST" else dict(request.args)
    return jsonify(helpers.envelope({"received": received, "method": request.method}))
