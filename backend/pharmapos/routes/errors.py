# Overview: Maps service-layer exceptions to JSON error responses.

from flask import current_app, jsonify

from ..extensions import db
from ..validation import (
    AuthorizationError,
    ConflictError,
    ExhaustedError,
    NotFoundError,
    ValidationError,
)


SERVICE_ERRORS = (ValidationError, AuthorizationError, NotFoundError, ConflictError, ExhaustedError)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthorizationError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def service_error_response(exc: Exception):
    """Roll back and translate a known service error."""
    db.session.rollback()
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return jsonify({"error": str(exc)}), status

    # ExhaustedError: server-side condition, message is not for clients
    current_app.logger.error("Service exhausted: %s", exc)
    return jsonify({"error": "Internal server error"}), 500


def unexpected_error_response(context: str):
    """Roll back and log an unexpected failure; call from an except block."""
    db.session.rollback()
    current_app.logger.exception("Unexpected error in %s", context)
    return jsonify({"error": "Internal server error"}), 500
