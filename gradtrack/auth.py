"""
Caller identity and role checks for /api/v1.

Identity is resolved once per request, in this order:

1. Bearer token (gradtrack/middleware/jwt_auth.py sets ``g.jwt_authenticated``)
2. Auth disabled: X-Role (default CGSADM), X-Student-Id and X-User-Id headers
3. API key from ``X-API-Key`` or ``?api_key=``, looked up in ``API_KEYS``

``API_KEYS`` is a comma-separated list of ``<key>:<role>[:<student_id>]``,
for example ``"k1:CGSADM,k2:SUV,k3:STU:S1001"``.

Roles:
    CGSADM  graduate school administrator
    CGSS    graduate school staff
    SUV     supervisor
    EXA     examiner
    STU     student

Views declare who may call them with ``@require_role``. Health probes and
CORS preflights bypass the hook entirely.
"""

import functools
import logging
import os
from typing import Optional

from flask import current_app, g, request

from gradtrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ROLE_ADMIN = "CGSADM"
ROLE_STAFF = "CGSS"
ROLE_SUPERVISOR = "SUV"
ROLE_EXAMINER = "EXA"
ROLE_STUDENT = "STU"

ROLES = {ROLE_ADMIN, ROLE_STAFF, ROLE_SUPERVISOR, ROLE_EXAMINER, ROLE_STUDENT}

# Catalogue and override writes
STAFF_ROLES = (ROLE_ADMIN, ROLE_STAFF)
# Catalogue reads
READER_ROLES = (ROLE_ADMIN, ROLE_STAFF, ROLE_SUPERVISOR, ROLE_EXAMINER)
# Student feed and reminders
FEED_ROLES = (ROLE_STUDENT, ROLE_SUPERVISOR, ROLE_EXAMINER, ROLE_ADMIN, ROLE_STAFF)

_FALSY = frozenset({"false", "0", "no", "off"})
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _parse_api_keys() -> dict[str, tuple[str, Optional[str]]]:
    """Return ``{key: (role, student_id)}`` from ``API_KEYS``.

    Entries with no role or an unknown role are logged and dropped.
    """
    parsed: dict[str, tuple[str, Optional[str]]] = {}
    for entry in filter(None, (e.strip() for e in os.getenv("API_KEYS", "").split(","))):
        key, _, rest = entry.partition(":")
        role, _, student_id = rest.partition(":")
        role = role.strip().upper()
        if not role:
            logger.warning("API_KEYS entry has no role; ignored")
            continue
        if role not in ROLES:
            logger.warning("API_KEYS entry has unknown role %r; ignored", role)
            continue
        parsed[key.strip()] = (role, student_id.strip() or None)
    return parsed


def _is_auth_enabled() -> bool:
    """``API_AUTH_ENABLED`` from the environment wins over app config."""
    value = os.getenv("API_AUTH_ENABLED") or current_app.config.get("API_AUTH_ENABLED", "true")
    return str(value).strip().lower() not in _FALSY


def _request_api_key() -> Optional[str]:
    key = request.headers.get("X-API-Key", "").strip() or request.args.get("api_key", "").strip()
    return key or None


def _bind_identity(role: str, user_id: str, student_id: Optional[str]) -> None:
    g.current_user_role = role
    g.current_user_id = user_id
    g.current_student_id = student_id


def _bind_header_identity() -> None:
    """Trust identity headers; only reachable with auth disabled."""
    role = request.headers.get("X-Role", "").strip().upper() or ROLE_ADMIN
    student_id = request.headers.get("X-Student-Id", "").strip() or None
    user_id = request.headers.get("X-User-Id", "").strip() or student_id or "dev-mode"
    _bind_identity(role, user_id, student_id)


def _reject_non_json_body():
    """415 for a non-empty write body that is not JSON (blocks form-post CSRF)."""
    if request.method not in _BODY_METHODS or not request.content_length:
        return None
    if "application/json" in (request.content_type or ""):
        return None
    return api_error(E.VALIDATION_INVALID, "Content-Type must be application/json", status=415)


def require_role(*allowed_roles: str):
    """Allow the view only for callers holding one of ``allowed_roles``.

    No identity gives 401; a role outside the list gives 403.
    """
    allowed = frozenset(allowed_roles)

    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            role = getattr(g, "current_user_role", None)
            if not role:
                return api_error(E.UNAUTHORIZED, "Authentication required")
            if role not in allowed:
                logger.warning("Role %s denied on %s %s", role, request.method, request.path,
                               extra={"role": role})
                return api_error(E.FORBIDDEN, "Insufficient permissions")
            return view(*args, **kwargs)
        return wrapper
    return decorator


def init_auth(app):
    @app.before_request
    def _resolve_identity():
        path = request.path
        if not path.startswith("/api/v1/") or path.startswith("/api/v1/health"):
            return None
        if request.method == "OPTIONS":
            return None

        rejected = _reject_non_json_body()
        if rejected is not None:
            return rejected

        if getattr(g, "jwt_authenticated", False):
            return None

        if not _is_auth_enabled():
            _bind_header_identity()
            return None

        api_key = _request_api_key()
        if api_key is None:
            return api_error(E.UNAUTHORIZED, "Authentication required. Send a Bearer token or X-API-Key.")

        known = _parse_api_keys()
        if not known:
            logger.error("API auth is enabled but API_KEYS is empty")
            return api_error(E.INTERNAL, "Server authentication not configured")

        if api_key not in known:
            logger.warning("Unknown API key %s...", api_key[:8])
            return api_error(E.UNAUTHORIZED, "Invalid API key")

        role, student_id = known[api_key]
        _bind_identity(role, student_id or f"apikey:{api_key[:8]}", student_id)
        return None

    with app.app_context():
        logger.info("Auth hook installed (enabled=%s)", _is_auth_enabled())
