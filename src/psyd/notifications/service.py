"""
Notification dispatch.

Every helper here is awaited by the triggering request but never raises: delivery
failures are logged and reported as a False return so the primary write's outcome
is decided by the data mutation alone. There is no retry and no queue.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from psyd.auth.roles import ALL_ROLES, meets_minimum
from psyd.config import get_settings
from psyd.db.models import House, Profile, User
from psyd.email.service import EmailService
from psyd.email.service import get_email_service as _get_email_service
from psyd.redis_client import get_optional_redis

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

MODERATOR_ROLES: tuple[str, ...] = tuple(r for r in ALL_ROLES if meets_minimum(r, "admin"))


def get_email_service() -> EmailService:
    """The shared email service, throttled per recipient when Redis is available."""
    return _get_email_service(redis=get_optional_redis())


async def get_submission_recipients(db: AsyncSession) -> list[str]:
    """Addresses of moderators who opted in to new-submission alerts."""
    result = await db.execute(
        select(User.email)
        .join(Profile, Profile.id == User.id)
        .where(Profile.role.in_(MODERATOR_ROLES))
        .where(Profile.email_on_new_submission == True)  # noqa: E712
        .order_by(User.email)
    )
    return [email for email in result.scalars().all() if email]


async def notify_new_submission(db: AsyncSession, house: House) -> bool:
    """Send one new-submission alert to every subscribed moderator."""
    try:
        recipients = await get_submission_recipients(db)
        if not recipients:
            return False
        sent = await get_email_service().send_template(
            to=recipients,
            template_name="new_submission",
            context={
                "address": house.address_street,
                "suburb": house.address_suburb,
                "site_url": get_settings().site_url,
            },
        )
    except Exception:
        logger.exception("new_submission_email_failed", house_id=str(house.id))
        return False
    if not sent:
        logger.warning("new_submission_email_not_sent", house_id=str(house.id))
    return sent


async def notify_status_update(house: House, status: str, notes: str | None) -> bool:
    """Tell the submitter, if they left an address, how their listing was moderated."""
    if not house.submitter_email:
        return False
    try:
        sent = await get_email_service().send_template(
            to=house.submitter_email,
            template_name="status_update",
            context={
                "address": house.address_street,
                "suburb": house.address_suburb,
                "status": status,
                "notes": notes,
                "site_url": get_settings().site_url,
                "house_id": str(house.id),
            },
        )
    except Exception:
        logger.exception("status_update_email_failed", house_id=str(house.id), status=status)
        return False
    if not sent:
        logger.warning("status_update_email_not_sent", house_id=str(house.id), status=status)
    return sent


async def send_invite(email: str, role: str, raw_token: str) -> bool:
    """Email an invite link that lands on the set-password page."""
    settings = get_settings()
    try:
        return await get_email_service().send_template(
            to=email,
            template_name="invite",
            context={
                "invite_url": f"{settings.site_url}/admin/reset-password?token={raw_token}",
                "role": role,
                "site_url": settings.site_url,
                "expires_hours": settings.invite_token_ttl_hours,
            },
        )
    except Exception:
        logger.exception("invite_email_failed")
        return False


async def send_password_reset(email: str, raw_token: str) -> bool:
    """Email a password reset link."""
    settings = get_settings()
    try:
        return await get_email_service().send_template(
            to=email,
            template_name="password_reset",
            context={
                "reset_url": f"{settings.site_url}/admin/reset-password?token={raw_token}",
                "site_url": settings.site_url,
                "expires_minutes": settings.password_reset_token_ttl_minutes,
            },
        )
    except Exception:
        logger.exception("password_reset_email_failed")
        return False
