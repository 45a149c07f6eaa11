# Overview: Uniform JSON error answers for route handlers.

from __future__ import annotations

from flask import current_app, jsonify

from .extensions import db
from .validation import ServiceError


def error_response(exc: Exception, operation: str):
    """
    Roll back the request's session and answer {"error": message}.

    ServiceError subclasses answer their own status; store failures and
    anything unexpected are logged with context and answered with a generic 500.
    """
    db.session.rollback()

    if isinstance(exc, ServiceError) and exc.status_code < 500:
        body = {"error": str(exc)}
        if exc.details:
            body["details"] = exc.details
        return jsonify(body), exc.status_code

    current_app.logger.exception("Failed to %s", operation)
    return jsonify({"error": "Internal server error"}), 500
