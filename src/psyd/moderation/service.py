"""
Moderation business logic.

Listings move only out of ``pending``: ``pending -> published`` or ``pending -> rejected``.
Callers are expected to have passed the role check before calling in here; functions
return None for a missing target and raise ``ValueError`` subclasses for conflicts.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select, update

from psyd.db.models import FeaturedHouse, House, HouseStyle, Image, PropertyStory
from psyd.houses.service import REQUIRED_ADDRESS_FIELDS, get_house

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from psyd.moderation.schemas import HouseEdit

logger = structlog.get_logger()

VALID_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("published", "rejected"),
    "published": (),
    "rejected": (),
}

EDITABLE_FIELDS = (
    "address_street",
    "address_suburb",
    "address_state",
    "address_postcode",
    "style",
    "year_built",
    "builder_name",
    "condition",
    "description",
    "latitude",
    "longitude",
    "listing_url",
    "sold_listing_url",
)


class InvalidTransitionError(ValueError):
    """Raised when a listing cannot move from its current status to the requested one."""


class StyleInUseError(ValueError):
    """Raised when deleting a style that listings still reference."""

    def __init__(self, name: str, count: int) -> None:
        self.name = name
        self.count = count
        noun = "house uses" if count == 1 else "houses use"
        super().__init__(f'Cannot delete "{name}": {count} {noun} this style.')


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------


async def list_pending_houses(db: AsyncSession) -> Sequence[House]:
    """Pending listings, newest first."""
    result = await db.execute(select(House).where(House.status == "pending").order_by(House.created_at.desc()))
    return result.scalars().all()


async def list_published_for_review(db: AsyncSession) -> Sequence[House]:
    """Published listings ordered by suburb."""
    result = await db.execute(select(House).where(House.status == "published").order_by(House.address_suburb))
    return result.scalars().all()


async def images_by_house(db: AsyncSession, house_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, list[Image]]:
    """Images grouped by listing, each group in ``sort_order``."""
    grouped: dict[uuid.UUID, list[Image]] = defaultdict(list)
    if not house_ids:
        return grouped
    result = await db.execute(select(Image).where(Image.house_id.in_(house_ids)).order_by(Image.sort_order))
    for image in result.scalars().all():
        grouped[image.house_id].append(image)
    return grouped


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


async def change_status(
    db: AsyncSession,
    house_id: uuid.UUID,
    target: str,
    moderator_id: uuid.UUID | None,
    notes: str | None,
) -> House | None:
    """
    Move a listing to ``target`` and record who reviewed it.

    Raises:
        InvalidTransitionError: If the listing's current status does not allow ``target``.
    """
    house = await get_house(db, house_id)
    if house is None:
        return None

    if target not in VALID_TRANSITIONS.get(house.status, ()):
        msg = f"Cannot change a {house.status} listing to {target}."
        raise InvalidTransitionError(msg)

    previous = house.status
    house.status = target
    house.verification_notes = notes
    house.verified_by = moderator_id
    await db.flush()
    logger.info(
        "house_status_changed",
        house_id=str(house.id),
        previous=previous,
        status=target,
        moderator_id=str(moderator_id) if moderator_id else None,
    )
    return house


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------


async def update_house(db: AsyncSession, house_id: uuid.UUID, payload: HouseEdit) -> House | None:
    """
    Replace every editable attribute of a listing.

    Raises:
        ValueError: If a required address part is empty.
    """
    if any(not getattr(payload, name) for name in REQUIRED_ADDRESS_FIELDS):
        msg = "Street, suburb, state and postcode are required."
        raise ValueError(msg)

    house = await get_house(db, house_id)
    if house is None:
        return None

    for name in EDITABLE_FIELDS:
        setattr(house, name, getattr(payload, name))
    await db.flush()
    logger.info("house_edited", house_id=str(house.id))
    return house


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def get_image(db: AsyncSession, image_id: uuid.UUID) -> Image | None:
    result = await db.execute(select(Image).where(Image.id == image_id))
    return result.scalar_one_or_none()


async def delete_image_record(db: AsyncSession, image: Image) -> None:
    await db.delete(image)
    await db.flush()
    logger.info("image_deleted", image_id=str(image.id), house_id=str(image.house_id))


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


async def add_style(db: AsyncSession, name: str) -> HouseStyle:
    """
    Append a style to the taxonomy.

    Raises:
        ValueError: If the name is empty or already exists (exact match).
    """
    if not name:
        msg = "Style name is required."
        raise ValueError(msg)

    existing = await db.execute(select(HouseStyle.id).where(HouseStyle.name == name))
    if existing.scalar_one_or_none() is not None:
        msg = f'Style "{name}" already exists.'
        raise ValueError(msg)

    max_order = (await db.execute(select(func.max(HouseStyle.sort_order)))).scalar_one_or_none()
    style = HouseStyle(name=name, sort_order=(max_order or 0) + 1)
    db.add(style)
    await db.flush()
    logger.info("style_added", style=name, sort_order=style.sort_order)
    return style


async def count_style_usage(db: AsyncSession, name: str) -> int:
    result = await db.execute(select(func.count()).select_from(House).where(House.style == name))
    return result.scalar_one()


async def delete_style(db: AsyncSession, style_id: uuid.UUID) -> HouseStyle | None:
    """
    Remove a style that no listing references.

    Raises:
        StyleInUseError: If any listing still uses the style name.
    """
    result = await db.execute(select(HouseStyle).where(HouseStyle.id == style_id))
    style = result.scalar_one_or_none()
    if style is None:
        return None

    count = await count_style_usage(db, style.name)
    if count > 0:
        raise StyleInUseError(style.name, count)

    await db.delete(style)
    await db.flush()
    logger.info("style_deleted", style=style.name)
    return style


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


async def list_stories(db: AsyncSession, status: str = "pending") -> Sequence[tuple[PropertyStory, House]]:
    """Stories in ``status`` with their listing, oldest first."""
    result = await db.execute(
        select(PropertyStory, House)
        .join(House, House.id == PropertyStory.house_id)
        .where(PropertyStory.status == status)
        .order_by(PropertyStory.created_at)
    )
    return [(story, house) for story, house in result.all()]


async def approve_story(db: AsyncSession, story_id: uuid.UUID) -> PropertyStory | None:
    """Publish a story. Approval is one-way."""
    result = await db.execute(select(PropertyStory).where(PropertyStory.id == story_id))
    story = result.scalar_one_or_none()
    if story is None:
        return None
    if story.status != "approved":
        story.status = "approved"
        await db.flush()
        logger.info("story_approved", story_id=str(story.id), house_id=str(story.house_id))
    return story


# ---------------------------------------------------------------------------
# Featured
# ---------------------------------------------------------------------------


async def set_featured(db: AsyncSession, house_id: uuid.UUID, moderator_id: uuid.UUID | None) -> House | None:
    """
    Make ``house_id`` the only featured listing.

    The singleton ``featured_house`` row is locked first so concurrent callers queue
    behind each other, then a single UPDATE sets the flag on the target and clears it
    everywhere else.
    """
    house = await get_house(db, house_id)
    if house is None:
        return None

    result = await db.execute(select(FeaturedHouse).where(FeaturedHouse.id == 1).with_for_update())
    singleton = result.scalar_one_or_none()
    if singleton is None:
        singleton = FeaturedHouse(id=1)
        db.add(singleton)

    await db.execute(
        update(House)
        .where(or_(House.is_featured == True, House.id == house_id))  # noqa: E712
        .values(is_featured=House.id == house_id)
        .execution_options(synchronize_session=False)
    )
    singleton.house_id = house_id
    singleton.updated_by = moderator_id
    await db.flush()
    await db.refresh(house)
    logger.info("featured_house_set", house_id=str(house_id))
    return house
