"""
JWT token management.

Access tokens are short-lived and carry the account id; refresh tokens carry a
``jti`` that is tracked in the database for rotation and revocation. RS* algorithms
sign with the PEM key pair on disk, HS* algorithms with the shared secret.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from psyd.config import get_settings

_signing_key: str | None = None
_verify_key: str | None = None


def _load_keys() -> tuple[str, str]:
    """Load signing and verification keys (cached after first call)."""
    global _signing_key, _verify_key  # noqa: PLW0603
    if _signing_key is None or _verify_key is None:
        settings = get_settings()
        if settings.jwt_algorithm.upper().startswith("HS"):
            if not settings.jwt_secret_key:
                msg = "PSYD_JWT_SECRET_KEY must be set for HMAC JWT algorithms"
                raise RuntimeError(msg)
            _signing_key = _verify_key = settings.jwt_secret_key
        else:
            _signing_key = Path(settings.jwt_private_key_path).read_text()
            _verify_key = Path(settings.jwt_public_key_path).read_text()
    return _signing_key, _verify_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _signing_key, _verify_key  # noqa: PLW0603
    _signing_key = None
    _verify_key = None


def create_access_token(user_id: uuid.UUID) -> str:
    """Create a short-lived access token for an account."""
    signing_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: uuid.UUID, *, token_id: uuid.UUID) -> str:
    """
    Create a long-lived refresh token.

    Args:
        user_id: The account id.
        token_id: Unique token identifier (JTI) for revocation tracking.
    """
    signing_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "jti": str(token_id),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_refresh_token_expire_days),
        "iss": settings.jwt_issuer,
        "type": "refresh",
    }
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or of the wrong type.
    """
    _, verify_key = _load_keys()
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            verify_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
