"""User routers — /api/v1/admin/users/* (account administration) and /api/v1/users/me (self settings)."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from psyd.auth.dependencies import RequestContext, require_role, require_user
from psyd.auth.schemas import AccountResponse
from psyd.database import get_session
from psyd.db.models import Profile
from psyd.notifications.service import send_invite
from psyd.users.schemas import (
    InviteRequest,
    InviteResponse,
    ManagedUserResponse,
    NotificationPreferencesUpdate,
    RoleUpdateRequest,
    ThemeUpdate,
)
from psyd.users.service import (
    invite_user,
    list_managed_users,
    remove_user,
    set_role,
    set_theme,
    update_notification_preferences,
)

logger = structlog.get_logger()

admin_router = APIRouter(prefix="/api/v1/admin/users", tags=["User Administration"])
router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@admin_router.get("", response_model=list[ManagedUserResponse])
async def list_users(
    _ctx: RequestContext = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_session),
) -> list[ManagedUserResponse]:
    """All accounts with their roles."""
    return [
        ManagedUserResponse(
            id=user.id,
            email=user.email,
            role=profile.role if profile else None,
            created_at=user.created_at,
            invited_at=user.invited_at,
            last_login=user.last_login,
            has_password=bool(user.password_hash),
        )
        for user, profile in await list_managed_users(db)
    ]


@admin_router.post("/invite", response_model=InviteResponse)
async def invite(
    body: InviteRequest,
    request: Request,
    ctx: RequestContext = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_session),
) -> InviteResponse:
    """Invite an account by email; the link lets them set a password."""
    try:
        user, raw_token = await invite_user(
            db,
            caller_id=ctx.user_id,
            caller_role=ctx.role,
            email=body.email,
            role=body.role,
            ip_address=request.client.host if request.client else None,
        )
        await db.commit()
    except (ValueError, PermissionError) as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("user_invite_failed")
        raise HTTPException(status_code=500, detail="Failed to invite user.") from e

    email_sent = await send_invite(user.email, body.role, raw_token)
    return InviteResponse(id=user.id, email=user.email, role=body.role, email_sent=email_sent)


@admin_router.put("/{user_id}/role")
async def update_role(
    user_id: uuid.UUID,
    body: RoleUpdateRequest,
    ctx: RequestContext = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change another account's role."""
    try:
        profile = await set_role(db, caller_id=ctx.user_id, caller_role=ctx.role, target_id=user_id, role=body.role)
        if profile is None:
            raise HTTPException(status_code=404, detail="User not found")
        await db.commit()
    except PermissionError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("user_role_change_failed", target_id=str(user_id))
        raise HTTPException(status_code=500, detail="Failed to update role.") from e

    return {"id": str(user_id), "role": profile.role}


@admin_router.delete("/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    ctx: RequestContext = Depends(require_role("super_admin")),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Remove an account. Super admins only."""
    try:
        removed = await remove_user(db, caller_id=ctx.user_id, target_id=user_id)
        if not removed:
            raise HTTPException(status_code=404, detail="User not found")
        await db.commit()
    except PermissionError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("user_remove_failed", target_id=str(user_id))
        raise HTTPException(status_code=500, detail="Failed to remove user.") from e

    return {"id": str(user_id)}


# ---------------------------------------------------------------------------
# Self settings
# ---------------------------------------------------------------------------


def _own_profile(ctx: RequestContext) -> Profile:
    if ctx.profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ctx.profile


@router.get("/me", response_model=AccountResponse)
async def me(ctx: RequestContext = Depends(require_user)) -> AccountResponse:
    """The signed-in account and its settings."""
    return AccountResponse.from_models(ctx.user, ctx.profile)  # type: ignore[arg-type]


@router.patch("/me/notifications", response_model=AccountResponse)
async def update_notifications(
    body: NotificationPreferencesUpdate,
    ctx: RequestContext = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> AccountResponse:
    """Update email notification preferences."""
    profile = _own_profile(ctx)
    try:
        await update_notification_preferences(db, profile, body)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("notification_settings_failed")
        raise HTTPException(status_code=500, detail="Failed to save settings.") from e

    return AccountResponse.from_models(ctx.user, profile)  # type: ignore[arg-type]


@router.put("/me/theme")
async def update_theme(
    body: ThemeUpdate,
    ctx: RequestContext = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Store the caller's theme preference."""
    profile = _own_profile(ctx)
    try:
        await set_theme(db, profile, body.theme)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("theme_update_failed")
        raise HTTPException(status_code=500, detail="Failed to save theme.") from e

    return {"theme": profile.theme}
