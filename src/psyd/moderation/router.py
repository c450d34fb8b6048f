"""Moderation router — all /api/v1/admin/* listing, image, style, story and featured endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from psyd.auth.dependencies import RequestContext, require_role
from psyd.database import get_session
from psyd.db.models import House
from psyd.houses.router import image_response
from psyd.moderation.schemas import (
    DeleteImageRequest,
    FeaturedRequest,
    HouseEdit,
    ModerationHouseResponse,
    ModerationNotes,
    OverviewResponse,
    PendingStoryResponse,
    StatusChangeResponse,
    StyleCreate,
    StyleCreatedResponse,
)
from psyd.moderation.service import (
    InvalidTransitionError,
    add_style,
    approve_story,
    change_status,
    delete_image_record,
    delete_style,
    get_image,
    images_by_house,
    list_pending_houses,
    list_published_for_review,
    list_stories,
    set_featured,
    update_house,
)
from psyd.notifications.service import notify_status_update
from psyd.storage.service import BaseStorageProvider, get_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Moderation"])

require_superuser = require_role("superuser")
require_admin = require_role("admin")


def _moderation_response(house: House) -> ModerationHouseResponse:
    return ModerationHouseResponse.model_validate(house, from_attributes=True)


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    _ctx: RequestContext = Depends(require_superuser),
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> OverviewResponse:
    """Pending and published listings with their images."""
    pending = await list_pending_houses(db)
    published = await list_published_for_review(db)
    grouped = await images_by_house(db, [h.id for h in (*pending, *published)])
    return OverviewResponse(
        pending=[_moderation_response(h) for h in pending],
        published=[_moderation_response(h) for h in published],
        images_by_house={
            str(house_id): [image_response(img, storage) for img in images] for house_id, images in grouped.items()
        },
    )


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


async def _transition(
    house_id: uuid.UUID,
    target: str,
    body: ModerationNotes,
    ctx: RequestContext,
    db: AsyncSession,
    action: str,
) -> StatusChangeResponse:
    try:
        house = await change_status(db, house_id, target, ctx.user_id, body.notes)
        if house is None:
            raise HTTPException(status_code=404, detail="House not found")
        await db.commit()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("house_status_change_failed", house_id=str(house_id), status=target)
        raise HTTPException(status_code=500, detail=f"Failed to {action} submission.") from e

    email_sent = await notify_status_update(house, target, body.notes)
    return StatusChangeResponse(id=house.id, status=house.status, email_sent=email_sent)


@router.post("/houses/{house_id}/approve", response_model=StatusChangeResponse)
async def approve(
    house_id: uuid.UUID,
    body: ModerationNotes | None = None,
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> StatusChangeResponse:
    """Publish a pending listing."""
    return await _transition(house_id, "published", body or ModerationNotes(), ctx, db, "approve")


@router.post("/houses/{house_id}/reject", response_model=StatusChangeResponse)
async def reject(
    house_id: uuid.UUID,
    body: ModerationNotes | None = None,
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> StatusChangeResponse:
    """Reject a pending listing."""
    return await _transition(house_id, "rejected", body or ModerationNotes(), ctx, db, "reject")


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------


@router.put("/houses/{house_id}")
async def edit_house(
    house_id: uuid.UUID,
    body: HouseEdit,
    _ctx: RequestContext = Depends(require_superuser),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Replace a listing's editable attributes."""
    try:
        house = await update_house(db, house_id, body)
        if house is None:
            raise HTTPException(status_code=404, detail="House not found")
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("house_edit_failed", house_id=str(house_id))
        raise HTTPException(status_code=500, detail="Failed to save changes.") from e

    return {"id": str(house.id)}


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


@router.delete("/images/{image_id}")
async def remove_image(
    image_id: uuid.UUID,
    body: DeleteImageRequest | None = None,
    _ctx: RequestContext = Depends(require_superuser),
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> dict[str, str]:
    """Delete an image: the stored object first (best-effort), then the record."""
    image = await get_image(db, image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")

    if body is not None and body.storage_path and body.storage_path != image.storage_path:
        raise HTTPException(status_code=400, detail="Storage path does not match the image.")
    await storage.remove([image.storage_path])

    try:
        await delete_image_record(db, image)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("image_delete_failed", image_id=str(image_id))
        raise HTTPException(status_code=500, detail="Failed to delete image.") from e

    return {"id": str(image_id)}


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


@router.post("/styles", response_model=StyleCreatedResponse)
async def create_style(
    body: StyleCreate,
    _ctx: RequestContext = Depends(require_superuser),
    db: AsyncSession = Depends(get_session),
) -> StyleCreatedResponse:
    """Add a style to the taxonomy."""
    try:
        style = await add_style(db, body.name)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("style_add_failed", style=body.name)
        raise HTTPException(status_code=500, detail="Failed to add style.") from e

    return StyleCreatedResponse(id=style.id, name=style.name, sort_order=style.sort_order)


@router.delete("/styles/{style_id}")
async def remove_style(
    style_id: uuid.UUID,
    _ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Delete a style that no listing uses."""
    try:
        style = await delete_style(db, style_id)
        if style is None:
            raise HTTPException(status_code=404, detail="Style not found")
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("style_delete_failed", style_id=str(style_id))
        raise HTTPException(status_code=500, detail="Failed to delete style.") from e

    return {"id": str(style_id)}


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


@router.get("/stories", response_model=list[PendingStoryResponse])
async def stories(
    status: str = "pending",
    _ctx: RequestContext = Depends(require_superuser),
    db: AsyncSession = Depends(get_session),
) -> list[PendingStoryResponse]:
    """Stories awaiting review, with their listing's address."""
    if status not in ("pending", "approved"):
        raise HTTPException(status_code=400, detail="Invalid status")
    return [
        PendingStoryResponse(
            id=story.id,
            created_at=story.created_at,
            house_id=story.house_id,
            author_name=story.author_name,
            story=story.story,
            period_or_context=story.period_or_context,
            status=story.status,
            address_street=house.address_street,
            address_suburb=house.address_suburb,
        )
        for story, house in await list_stories(db, status)
    ]


@router.post("/stories/{story_id}/approve")
async def approve_story_endpoint(
    story_id: uuid.UUID,
    _ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Publish a community story."""
    try:
        story = await approve_story(db, story_id)
        if story is None:
            raise HTTPException(status_code=404, detail="Story not found")
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("story_approve_failed", story_id=str(story_id))
        raise HTTPException(status_code=500, detail="Failed to approve story.") from e

    return {"id": str(story_id), "status": story.status}


# ---------------------------------------------------------------------------
# Featured
# ---------------------------------------------------------------------------


@router.put("/featured")
async def update_featured(
    body: FeaturedRequest,
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Make a listing the featured one."""
    try:
        house = await set_featured(db, body.house_id, ctx.user_id)
        if house is None:
            raise HTTPException(status_code=404, detail="House not found")
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("featured_update_failed", house_id=str(body.house_id))
        raise HTTPException(status_code=500, detail="Failed to set featured house.") from e

    return {"id": str(house.id)}
