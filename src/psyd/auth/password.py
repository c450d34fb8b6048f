"""
Password hashing and validation using argon2id.
"""

from __future__ import annotations

import argon2

from psyd.config import get_settings

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet the password policy."""


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns False on mismatch, on a malformed hash, and for accounts that have
    no password yet (pending invites). Never raises.
    """
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """Check if the hash needs to be updated (parameters changed)."""
    return _hasher.check_needs_rehash(password_hash)


def validate_new_password(password: str, confirm: str) -> None:
    """
    Validate a new password and its confirmation.

    Raises PasswordStrengthError with a user-facing message.
    """
    settings = get_settings()
    if not password or len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters."
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters."
        raise PasswordStrengthError(msg)
    if password != confirm:
        msg = "Passwords do not match."
        raise PasswordStrengthError(msg)
