# Overview: Shared mapping from service exceptions to JSON error responses.

from __future__ import annotations

from flask import current_app, jsonify

from ..validation import (
    AuthorizationError,
    ConflictError,
    InsufficientFundsError,
    LifecycleError,
    ValidationError,
)


def json_error(exc: Exception, action: str):
    """
    Map a service exception to (response, status).

    LifecycleError is checked before ValidationError (it is a subclass).
    Anything unrecognized is logged with its traceback and served as 500.
    """
    if isinstance(exc, InsufficientFundsError):
        return jsonify({
            "error": str(exc),
            "available_ugx": exc.available_ugx,
            "requested_ugx": exc.requested_ugx,
        }), 409
    if isinstance(exc, (LifecycleError, ConflictError)):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, AuthorizationError):
        return jsonify({"error": str(exc)}), 403
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
