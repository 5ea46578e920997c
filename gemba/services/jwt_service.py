"""
JWT Service: access-token generation and verification.

Access token:  15 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": <user_id>,
    "username": <username>,
    "role": "team_lead",
    "role_level": 2,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Tokens are normally issued by the login service; generate_access_token is
used by the CLI, the seed script and tests.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(
    user_id: str,
    role_level: int,
    *,
    username: str = "",
    role: str = "",
    expires_in: int | None = None,
) -> str:
    """Generate a short-lived access token."""
    now = datetime.now(timezone.utc)
    ttl = expires_in if expires_in is not None else _get_access_expires()
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "role_level": int(role_level),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.InvalidTokenError (incl. ExpiredSignatureError) on failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    if not isinstance(payload.get("role_level"), int):
        raise jwt.InvalidTokenError("Token is missing role_level")

    return payload
