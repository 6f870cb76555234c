"""
Bearer token codec (PyJWT, HS256).

GradTrack does not log anyone in; access tokens are minted by the
university identity service with a shared secret. Claims read here:

    sub         staff or student id
    role        CGSADM | CGSS | SUV | EXA | STU
    student_id  STU tokens only (falls back to ``sub``)
    type        must be "access"

``generate_access_token`` exists for seed scripts and the test suite.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def _signing_key() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def generate_access_token(user_id: str, role: str, student_id: str | None = None) -> str:
    """Mint an access token valid for ``JWT_ACCESS_EXPIRES`` seconds."""
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(seconds=current_app.config.get("JWT_ACCESS_EXPIRES", 900))
    claims = {
        "sub": user_id,
        "role": role,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + lifetime,
        "jti": uuid.uuid4().hex,
    }
    if student_id is not None:
        claims["student_id"] = student_id
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and token type; return the claims.

    Raises:
        jwt.ExpiredSignatureError: Token past ``exp``.
        jwt.InvalidTokenError: Bad signature, malformed, or wrong ``type``.
    """
    claims = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("not an access token")
    return claims
