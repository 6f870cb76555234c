"""
Bearer-token identity.

Registered before the API-key hook in gradtrack/auth.py. A verified token
fills ``g.current_user_role`` / ``current_user_id`` / ``current_student_id``
and sets ``g.jwt_authenticated``; anything else leaves ``g`` untouched and
the API-key hook decides.
"""

import logging

import jwt
from flask import g, request

from gradtrack.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

_BEARER = "Bearer "


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if header.startswith(_BEARER):
        return header[len(_BEARER):].strip() or None
    return None


def _apply_claims(claims: dict) -> bool:
    role = str(claims.get("role") or "").upper()
    if not role:
        return False
    g.current_user_role = role
    g.current_user_id = claims.get("sub")
    if role == "STU":
        g.current_student_id = claims.get("student_id") or claims.get("sub")
    else:
        g.current_student_id = claims.get("student_id")
    return True


def init_jwt_middleware(app):
    @app.before_request
    def _authenticate_bearer():
        g.jwt_authenticated = False
        if not request.path.startswith("/api/v1/") or request.path.startswith("/api/v1/health"):
            return

        token = _bearer_token()
        if token is None:
            return

        try:
            claims = decode_access_token(token)
        except jwt.ExpiredSignatureError:
            logger.info("Expired bearer token on %s", request.path)
            return
        except jwt.InvalidTokenError as exc:
            logger.warning("Rejected bearer token on %s: %s", request.path, exc)
            return

        g.jwt_authenticated = _apply_claims(claims)
