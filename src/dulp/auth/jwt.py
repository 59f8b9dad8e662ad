"""
HS256 access tokens issued by the identity provider.

The rewards service only needs the stable user id carried in ``sub``;
``create_access_token`` exists for signup responses and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from dulp.config import get_settings


def create_access_token(user_id: int, expires_in: timedelta | None = None) -> str:
    """
    Create an access token for ``user_id``.

    Args:
        user_id: The account id.
        expires_in: Lifetime override; defaults to jwt_access_token_expire_minutes.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_in is None:
        expires_in = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or of the wrong type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.isdigit():
        msg = "Token subject is not a user id"
        raise jwt.InvalidTokenError(msg)

    return payload
