"""
Account business logic.

Handles sign-in, account lockout, refresh-token rotation, and the one-time link
tokens used for password resets and invite acceptance.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Literal

import structlog
from redis.exceptions import RedisError
from sqlalchemy import func, select, update

from psyd.auth.password import check_needs_rehash, hash_password, verify_password
from psyd.config import get_settings
from psyd.db.models import AuthToken, Profile, RefreshToken, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

TokenPurpose = Literal["reset", "invite"]


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest used to store tokens at rest."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Account queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Fetch an account by id."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch an account by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile | None:
    """Fetch the profile attached to an account."""
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Redis | None,
    email: str,
    password: str,
) -> User:
    """
    Authenticate an account with email + password.

    Raises:
        ValueError: If credentials are invalid. The message never says which part was wrong.
        PermissionError: If the account is temporarily locked.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password."
        raise ValueError(msg)

    if await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash):
        await increment_failed_login(redis, user.id)
        msg = "Invalid email or password."
        raise ValueError(msg)

    await clear_failed_login(redis, user.id)

    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    if user.password_hash and check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=str(user.id))
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Account lockout (skipped when Redis is not configured)
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Redis | None, user_id: uuid.UUID) -> bool:
    """Check if the account is locked due to too many failed login attempts."""
    if redis is None:
        return False
    settings = get_settings()
    try:
        count_str = await redis.get(f"login_attempts:{user_id}")
    except RedisError:
        logger.warning("lockout_check_unavailable", user_id=str(user_id))
        return False
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis | None, user_id: uuid.UUID) -> int:
    """Increment failed login counter. Returns the new count (0 without Redis)."""
    if redis is None:
        return 0
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    except RedisError:
        logger.warning("lockout_increment_unavailable", user_id=str(user_id))
        return 0
    return int(count)


async def clear_failed_login(redis: Redis | None, user_id: uuid.UUID) -> None:
    """Clear the failed login counter after a successful login."""
    if redis is None:
        return
    try:
        await redis.delete(f"login_attempts:{user_id}")
    except RedisError:
        logger.warning("lockout_clear_unavailable", user_id=str(user_id))


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


async def store_refresh_token(
    db: AsyncSession,
    user_id: uuid.UUID,
    token_id: uuid.UUID,
    token_hash: str,
    expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Store a refresh token hash in the database."""
    token = RefreshToken(
        id=token_id,
        user_id=user_id,
        token_hash=token_hash,
        issued_at=datetime.now(timezone.utc),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(token)
    await db.flush()
    return token


async def get_refresh_token(db: AsyncSession, token_id: uuid.UUID) -> RefreshToken | None:
    """Look up a refresh token by its JTI."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.id == token_id))
    return result.scalar_one_or_none()


async def rotate_refresh_token(
    db: AsyncSession,
    old_token: RefreshToken,
    new_token_id: uuid.UUID,
    new_token_hash: str,
    new_expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Revoke the old token and store its replacement."""
    old_token.is_revoked = True
    old_token.revoked_at = datetime.now(timezone.utc)
    old_token.replaced_by = new_token_id

    return await store_refresh_token(
        db,
        user_id=old_token.user_id,
        token_id=new_token_id,
        token_hash=new_token_hash,
        expires_at=new_expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )


async def revoke_refresh_token(db: AsyncSession, token_id: uuid.UUID) -> bool:
    """Revoke a specific refresh token. Returns True if found."""
    token = await get_refresh_token(db, token_id)
    if token is None:
        return False
    token.is_revoked = True
    token.revoked_at = datetime.now(timezone.utc)
    await db.flush()
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Revoke all refresh tokens for an account. Returns count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# One-time link tokens (password reset, invite)
# ---------------------------------------------------------------------------


async def create_link_token(
    db: AsyncSession,
    user_id: uuid.UUID,
    purpose: TokenPurpose,
    ip_address: str | None = None,
) -> str:
    """
    Create a one-time link token and invalidate earlier unused ones of the same purpose.

    Returns the raw token to embed in the emailed link. Only its hash is stored.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    ttl = (
        timedelta(hours=settings.invite_token_ttl_hours)
        if purpose == "invite"
        else timedelta(minutes=settings.password_reset_token_ttl_minutes)
    )
    raw_token = secrets.token_urlsafe(48)

    await db.execute(
        update(AuthToken)
        .where(AuthToken.user_id == user_id)
        .where(AuthToken.purpose == purpose)
        .where(AuthToken.used_at == None)  # noqa: E711
        .values(used_at=now)
    )
    db.add(
        AuthToken(
            user_id=user_id,
            purpose=purpose,
            token_hash=hash_token(raw_token),
            created_at=now,
            expires_at=now + ttl,
            ip_address=ip_address,
        )
    )
    await db.flush()
    return raw_token


async def consume_link_token(db: AsyncSession, raw_token: str) -> uuid.UUID:
    """
    Validate a reset or invite token and mark it used.

    Returns the account id.

    Raises:
        ValueError: If the token is unknown, used, or expired.
    """
    result = await db.execute(select(AuthToken).where(AuthToken.token_hash == hash_token(raw_token)))
    token = result.scalar_one_or_none()
    if token is None or token.used_at is not None:
        msg = "This link is invalid or has already been used."
        raise ValueError(msg)
    if _as_utc(token.expires_at) < datetime.now(timezone.utc):
        msg = "This link has expired."
        raise ValueError(msg)

    token.used_at = datetime.now(timezone.utc)
    await db.flush()
    return token.user_id


async def set_password(db: AsyncSession, user: User, password: str) -> None:
    """Replace an account's password and sign out its other sessions."""
    user.password_hash = hash_password(password)
    await revoke_all_tokens(db, user.id)
    await db.flush()


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


async def ensure_super_admin(db: AsyncSession, email: str, password: str) -> User:
    """Create the first super_admin account if it does not exist yet (idempotent)."""
    user = await get_user_by_email(db, email)
    if user is None:
        user = User(email=email.lower().strip(), password_hash=hash_password(password))
        db.add(user)
        await db.flush()
        logger.info("super_admin_bootstrapped", user_id=str(user.id))

    profile = await get_profile(db, user.id)
    if profile is None:
        db.add(Profile(id=user.id, role="super_admin"))
    else:
        profile.role = "super_admin"
    await db.flush()
    return user
