"""
Account administration and self-service settings.

Role-ceiling and self-action guards raise ``PermissionError``; invalid setting values
raise ``ValueError``. Missing targets are a None/False return.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, get_args

import structlog
from sqlalchemy import delete, select

from psyd.auth.roles import can_assign, role_level
from psyd.auth.schemas import NotificationFrequency, Theme
from psyd.auth.service import create_link_token, get_profile, get_user_by_email, get_user_by_id
from psyd.db.models import Profile, User

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from psyd.users.schemas import NotificationPreferencesUpdate

logger = structlog.get_logger()

VALID_THEMES: tuple[str, ...] = get_args(Theme)
VALID_FREQUENCIES: tuple[str, ...] = get_args(NotificationFrequency)

ROLE_CEILING_MESSAGE = "You cannot assign that role."
SELF_ROLE_MESSAGE = "You cannot change your own role."


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


async def list_managed_users(db: AsyncSession) -> Sequence[tuple[User, Profile | None]]:
    """Every account with its profile, by email."""
    result = await db.execute(
        select(User, Profile).outerjoin(Profile, Profile.id == User.id).order_by(User.email)
    )
    return [(user, profile) for user, profile in result.all()]


async def invite_user(
    db: AsyncSession,
    *,
    caller_id: uuid.UUID | None,
    caller_role: str | None,
    email: str,
    role: str,
    ip_address: str | None = None,
) -> tuple[User, str]:
    """
    Create (or reuse) an account, set its role and issue an invite link token.

    Returns the account and the raw token for the emailed link.

    Raises:
        ValueError: If the email is empty.
        PermissionError: If the caller may not grant ``role`` or targets their own account.
    """
    if not email:
        msg = "Email is required."
        raise ValueError(msg)
    if not can_assign(caller_role, role):
        raise PermissionError(ROLE_CEILING_MESSAGE)

    user = await get_user_by_email(db, email)
    if user is not None and caller_id is not None and user.id == caller_id:
        raise PermissionError(SELF_ROLE_MESSAGE)
    if user is None:
        user = User(email=email, invited_at=datetime.now(timezone.utc))
        db.add(user)
        await db.flush()
    else:
        user.invited_at = datetime.now(timezone.utc)

    profile = await get_profile(db, user.id)
    if profile is None:
        db.add(Profile(id=user.id, role=role))
    else:
        # Re-inviting must not demote an account the caller could not otherwise touch
        if role_level(profile.role) > role_level(caller_role):
            raise PermissionError(ROLE_CEILING_MESSAGE)
        profile.role = role

    raw_token = await create_link_token(db, user.id, "invite", ip_address=ip_address)
    await db.flush()
    logger.info("user_invited", user_id=str(user.id), role=role)
    return user, raw_token


async def set_role(
    db: AsyncSession,
    *,
    caller_id: uuid.UUID | None,
    caller_role: str | None,
    target_id: uuid.UUID,
    role: str,
) -> Profile | None:
    """
    Change another account's role within the caller's ceiling.

    Raises:
        PermissionError: On self-change, a role above the ceiling, or a target ranked
            above the caller.
    """
    if caller_id is not None and target_id == caller_id:
        raise PermissionError(SELF_ROLE_MESSAGE)
    if not can_assign(caller_role, role):
        raise PermissionError(ROLE_CEILING_MESSAGE)

    user = await get_user_by_id(db, target_id)
    if user is None:
        return None

    profile = await get_profile(db, target_id)
    if profile is None:
        profile = Profile(id=target_id, role=role)
        db.add(profile)
    else:
        if role_level(profile.role) > role_level(caller_role):
            raise PermissionError(ROLE_CEILING_MESSAGE)
        profile.role = role
    await db.flush()
    logger.info("user_role_changed", target_id=str(target_id), role=role)
    return profile


async def remove_user(db: AsyncSession, *, caller_id: uuid.UUID | None, target_id: uuid.UUID) -> bool:
    """
    Delete an account and, through the cascade, its profile and tokens.

    Raises:
        PermissionError: If the caller targets their own account.
    """
    if caller_id is not None and target_id == caller_id:
        msg = "You cannot remove your own account."
        raise PermissionError(msg)

    if await get_user_by_id(db, target_id) is None:
        return False

    await db.execute(delete(Profile).where(Profile.id == target_id))
    await db.execute(delete(User).where(User.id == target_id))
    await db.flush()
    logger.info("user_removed", target_id=str(target_id))
    return True


# ---------------------------------------------------------------------------
# Self settings
# ---------------------------------------------------------------------------


async def update_notification_preferences(
    db: AsyncSession, profile: Profile, payload: NotificationPreferencesUpdate
) -> Profile:
    """
    Apply the provided notification settings.

    Raises:
        ValueError: If the frequency is not one of instant, daily or none.
    """
    if payload.notification_frequency is not None and payload.notification_frequency not in VALID_FREQUENCIES:
        msg = "Invalid notification frequency."
        raise ValueError(msg)

    if payload.email_on_new_submission is not None:
        profile.email_on_new_submission = payload.email_on_new_submission
    if payload.email_on_approval is not None:
        profile.email_on_approval = payload.email_on_approval
    if payload.notification_frequency is not None:
        profile.notification_frequency = payload.notification_frequency
    await db.flush()
    return profile


async def set_theme(db: AsyncSession, profile: Profile, theme: str) -> Profile:
    """
    Store the caller's theme.

    Raises:
        ValueError: If ``theme`` is not light, dark or system.
    """
    if theme not in VALID_THEMES:
        msg = "Invalid theme"
        raise ValueError(msg)
    profile.theme = theme
    await db.flush()
    return profile
