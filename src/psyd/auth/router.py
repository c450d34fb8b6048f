"""Authentication router — all /api/v1/auth/* endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from psyd.auth.dependencies import RequestContext, require_user
from psyd.auth.jwt import create_access_token, create_refresh_token, verify_token
from psyd.auth.password import PasswordStrengthError, validate_new_password
from psyd.auth.schemas import (
    AccountResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from psyd.auth.service import (
    authenticate_user,
    consume_link_token,
    create_link_token,
    get_profile,
    get_refresh_token,
    get_user_by_email,
    get_user_by_id,
    hash_token,
    revoke_all_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    set_password,
    store_refresh_token,
)
from psyd.config import get_settings
from psyd.database import get_session
from psyd.db.models import User
from psyd.notifications.service import send_password_reset
from psyd.redis_client import get_optional_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

FORGOT_PASSWORD_RESPONSE = {"status": "If that email exists, a reset link has been sent."}


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def _issue_tokens(db: AsyncSession, user: User, request: Request) -> TokenResponse:
    """Create access + refresh tokens and store the refresh token hash."""
    settings = get_settings()
    token_id = uuid.uuid4()
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id, token_id=token_id)

    await store_refresh_token(
        db,
        user_id=user.id,
        token_id=token_id,
        token_hash=hash_token(refresh_token),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    profile = await get_profile(db, user.id)
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        account=AccountResponse.from_models(user, profile),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_optional_redis),
) -> TokenResponse:
    """Sign in with email + password."""
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required.")
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid email or password.") from e
    except PermissionError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e

    logger.info("user_signed_in", user_id=str(user.id))
    return await _issue_tokens(db, user, request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate a refresh token."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        jti = uuid.UUID(payload["jti"])
    except (pyjwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid refresh token") from e

    old_token = await get_refresh_token(db, jti)
    if old_token is None:
        raise HTTPException(status_code=401, detail="Refresh token not found")
    if old_token.is_revoked:
        # Reuse of a rotated token: treat the whole session family as compromised
        await revoke_all_tokens(db, old_token.user_id)
        await db.commit()
        logger.warning("refresh_token_reuse", user_id=str(old_token.user_id))
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = await get_user_by_id(db, old_token.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Account not found")

    settings = get_settings()
    new_token_id = uuid.uuid4()
    new_refresh = create_refresh_token(user.id, token_id=new_token_id)
    await rotate_refresh_token(
        db,
        old_token=old_token,
        new_token_id=new_token_id,
        new_token_hash=hash_token(new_refresh),
        new_expires_at=datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    profile = await get_profile(db, user.id)
    await db.commit()

    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=new_refresh,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        account=AccountResponse.from_models(user, profile),
    )


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke a refresh token. Always succeeds."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        jti = uuid.UUID(payload["jti"])
    except (pyjwt.InvalidTokenError, KeyError, ValueError):
        return {"status": "logged_out"}

    await revoke_refresh_token(db, jti)
    await db.commit()
    return {"status": "logged_out"}


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Request a password reset email. The response never reveals whether the address is known."""
    if not body.email:
        raise HTTPException(status_code=400, detail="Please enter your email address.")

    user = await get_user_by_email(db, body.email)
    if user is not None:
        try:
            raw_token = await create_link_token(db, user.id, "reset", ip_address=_client_ip(request))
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("password_reset_token_failed", user_id=str(user.id))
        else:
            await send_password_reset(user.email, raw_token)

    return FORGOT_PASSWORD_RESPONSE


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Set a new password from a reset or invite link."""
    try:
        validate_new_password(body.password, body.confirm)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        user_id = await consume_link_token(db, body.token)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=400, detail="This link is invalid or has already been used.")

    await set_password(db, user, body.password)
    await db.commit()
    logger.info("password_reset_complete", user_id=str(user.id))
    return {"status": "password_reset_complete"}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    ctx: RequestContext = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change the signed-in account's password."""
    try:
        validate_new_password(body.password, body.confirm)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    user = await get_user_by_id(db, ctx.user_id)  # type: ignore[arg-type]
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    await set_password(db, user, body.password)
    await db.commit()
    return {"status": "password_changed"}
