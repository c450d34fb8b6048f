"""Public listing business logic: submission intake, published reads, stories, image records."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from psyd.db.models import House, HouseStyle, Image, PropertyStory

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from psyd.houses.schemas import HouseSubmission, StorySubmission

logger = structlog.get_logger()

REQUIRED_ADDRESS_FIELDS = ("address_street", "address_suburb", "address_state", "address_postcode")


def missing_address_fields(payload: HouseSubmission) -> list[str]:
    """Names of required address parts that are absent or blank."""
    return [name for name in REQUIRED_ADDRESS_FIELDS if not getattr(payload, name)]


# ---------------------------------------------------------------------------
# Submission intake
# ---------------------------------------------------------------------------


async def submit_house(
    db: AsyncSession,
    payload: HouseSubmission,
    contributor_id: uuid.UUID | None = None,
) -> House:
    """
    Insert a new listing in the ``pending`` state.

    Raises:
        ValueError: If any required address part is missing. Nothing is written.
    """
    missing = missing_address_fields(payload)
    if missing:
        msg = "Missing required fields"
        raise ValueError(msg)

    house = House(
        address_street=payload.address_street,
        address_suburb=payload.address_suburb,
        address_state=payload.address_state,
        address_postcode=payload.address_postcode,
        style=payload.style,
        year_built=payload.year_built,
        builder_name=payload.builder_name,
        condition=payload.condition,
        description=payload.description,
        latitude=payload.latitude,
        longitude=payload.longitude,
        listing_url=payload.listing_url,
        sold_listing_url=payload.sold_listing_url,
        submitter_email=payload.submitter_email,
        contributor_id=contributor_id,
        status="pending",
    )
    db.add(house)
    await db.flush()
    logger.info("house_submitted", house_id=str(house.id), suburb=house.address_suburb)
    return house


# ---------------------------------------------------------------------------
# Published reads
# ---------------------------------------------------------------------------


async def get_house(db: AsyncSession, house_id: uuid.UUID) -> House | None:
    """Fetch a listing in any state."""
    result = await db.execute(select(House).where(House.id == house_id))
    return result.scalar_one_or_none()


async def get_published_house(db: AsyncSession, house_id: uuid.UUID) -> House | None:
    """Fetch a listing only if it is published."""
    result = await db.execute(select(House).where(House.id == house_id).where(House.status == "published"))
    return result.scalar_one_or_none()


async def list_published_houses(db: AsyncSession) -> Sequence[House]:
    """Published listings ordered by suburb."""
    result = await db.execute(
        select(House).where(House.status == "published").order_by(House.address_suburb, House.address_street)
    )
    return result.scalars().all()


async def get_featured_house(db: AsyncSession) -> House | None:
    """The featured listing, if one is set and published."""
    result = await db.execute(
        select(House).where(House.is_featured == True).where(House.status == "published").limit(1)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def primary_image_paths(db: AsyncSession) -> dict[uuid.UUID, str]:
    """Map of house id -> storage path of its primary image."""
    result = await db.execute(
        select(Image.house_id, Image.storage_path).where(Image.is_primary == True).order_by(Image.sort_order)  # noqa: E712
    )
    primary: dict[uuid.UUID, str] = {}
    for house_id, path in result.all():
        primary.setdefault(house_id, path)
    return primary


async def list_images(db: AsyncSession, house_ids: Sequence[uuid.UUID]) -> Sequence[Image]:
    """Images for the given listings, in display order."""
    if not house_ids:
        return []
    result = await db.execute(
        select(Image).where(Image.house_id.in_(house_ids)).order_by(Image.sort_order, Image.created_at)
    )
    return result.scalars().all()


async def list_styles(db: AsyncSession) -> Sequence[HouseStyle]:
    """Style taxonomy in display order."""
    result = await db.execute(select(HouseStyle).order_by(HouseStyle.sort_order, HouseStyle.name))
    return result.scalars().all()


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def add_image(
    db: AsyncSession,
    house_id: uuid.UUID,
    storage_path: str,
    *,
    is_primary: bool = False,
    sort_order: int = 0,
    caption: str | None = None,
    contributor_id: uuid.UUID | None = None,
) -> Image | None:
    """Record a stored image against a listing. Returns None if the listing does not exist."""
    if await get_house(db, house_id) is None:
        return None
    image = Image(
        house_id=house_id,
        storage_path=storage_path,
        is_primary=is_primary,
        sort_order=sort_order,
        caption=caption,
        contributor_id=contributor_id,
    )
    db.add(image)
    await db.flush()
    logger.info("image_saved", house_id=str(house_id), image_id=str(image.id))
    return image


async def next_image_sort_order(db: AsyncSession, house_id: uuid.UUID) -> tuple[int, bool]:
    """(sort_order for a new image, whether it should be primary) for a listing."""
    result = await db.execute(select(Image.sort_order).where(Image.house_id == house_id))
    orders = list(result.scalars().all())
    if not orders:
        return 0, True
    return max(orders) + 1, False


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


async def submit_story(db: AsyncSession, house_id: uuid.UUID, payload: StorySubmission) -> PropertyStory | None:
    """
    Store a pending story against a published listing.

    Returns None if the listing is absent or unpublished.

    Raises:
        ValueError: If the author name or story text is missing.
    """
    if not payload.author_name or not payload.story:
        msg = "Your name and a story are required."
        raise ValueError(msg)
    if await get_published_house(db, house_id) is None:
        return None

    story = PropertyStory(
        house_id=house_id,
        author_name=payload.author_name,
        story=payload.story,
        period_or_context=payload.period_or_context,
        status="pending",
    )
    db.add(story)
    await db.flush()
    logger.info("story_submitted", house_id=str(house_id), story_id=str(story.id))
    return story


async def list_approved_stories(db: AsyncSession, house_id: uuid.UUID) -> Sequence[PropertyStory]:
    """Approved stories for a listing, oldest first."""
    result = await db.execute(
        select(PropertyStory)
        .where(PropertyStory.house_id == house_id)
        .where(PropertyStory.status == "approved")
        .order_by(PropertyStory.created_at)
    )
    return result.scalars().all()
