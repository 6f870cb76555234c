"""JSON error envelope shared by every endpoint.

Body shape::

    {"error": "<message>", "code": "ERR_...", "details": {...}}

``details`` is only present for field-level validation failures. Blueprints
call ``api_error`` from their errorhandlers; views never build error dicts
by hand.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    NOT_FOUND = "ERR_NOT_FOUND"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


HTTP_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return body


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build a ``(response, status)`` pair for a Flask view or errorhandler.

    The status defaults to the code's entry in ``HTTP_STATUS_BY_CODE`` and
    falls back to 400 for unknown codes.
    """
    http_status = status or HTTP_STATUS_BY_CODE.get(code, 400)
    return jsonify(error_body(code, message, details)), http_status
