"""Public listings router — /api/v1/houses, /api/v1/images, /api/v1/styles."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from psyd.auth.dependencies import RequestContext, get_request_context
from psyd.database import get_session
from psyd.db.models import Image
from psyd.houses.schemas import (
    HouseDetailResponse,
    HouseResponse,
    HouseSubmission,
    HouseSummaryResponse,
    ImageResponse,
    SaveImageRequest,
    StoryResponse,
    StorySubmission,
    StyleResponse,
    SubmissionResponse,
    UploadedImageResponse,
)
from psyd.houses.service import (
    add_image,
    get_featured_house,
    get_house,
    get_published_house,
    list_approved_stories,
    list_images,
    list_published_houses,
    list_styles,
    next_image_sort_order,
    primary_image_paths,
    submit_house,
    submit_story,
)
from psyd.images.normalizer import OUTPUT_EXTENSION, ImageDecodeError, format_bytes, normalize_image
from psyd.notifications.service import notify_new_submission
from psyd.storage.service import BaseStorageProvider, get_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Listings"])

MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def image_response(image: Image, storage: BaseStorageProvider) -> ImageResponse:
    """Build an ImageResponse with its public URL."""
    return ImageResponse(
        id=image.id,
        house_id=image.house_id,
        storage_path=image.storage_path,
        caption=image.caption,
        is_primary=image.is_primary,
        sort_order=image.sort_order,
        created_at=image.created_at,
        url=storage.public_url(image.storage_path),
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("/houses", response_model=list[HouseSummaryResponse])
async def houses_index(
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> list[HouseSummaryResponse]:
    """Published listings for the map, ordered by suburb."""
    houses = await list_published_houses(db)
    primary = await primary_image_paths(db)
    return [
        HouseSummaryResponse.build(
            house, storage.public_url(primary[house.id]) if house.id in primary else None
        )
        for house in houses
    ]


@router.get("/houses/featured", response_model=HouseDetailResponse)
async def featured_house(
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> HouseDetailResponse:
    """The featured listing with its images."""
    house = await get_featured_house(db)
    if house is None:
        raise HTTPException(status_code=404, detail="No featured house")
    images = await list_images(db, [house.id])
    return HouseDetailResponse(
        house=HouseResponse.model_validate(house),
        images=[image_response(img, storage) for img in images],
    )


@router.get("/houses/{house_id}", response_model=HouseDetailResponse)
async def house_detail(
    house_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> HouseDetailResponse:
    """A published listing with its images."""
    house = await get_published_house(db, house_id)
    if house is None:
        raise HTTPException(status_code=404, detail="House not found")
    images = await list_images(db, [house.id])
    return HouseDetailResponse(
        house=HouseResponse.model_validate(house),
        images=[image_response(img, storage) for img in images],
    )


@router.post("/houses", response_model=SubmissionResponse)
async def submit(
    body: HouseSubmission,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    """Submit a new listing for review."""
    try:
        house = await submit_house(db, body, contributor_id=ctx.user_id)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("house_submit_failed")
        raise HTTPException(status_code=500, detail="Failed to save house") from e

    await notify_new_submission(db, house)
    return SubmissionResponse(id=house.id)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


@router.post("/houses/{house_id}/images", response_model=UploadedImageResponse)
async def upload_image(
    house_id: uuid.UUID,
    file: UploadFile = File(...),
    caption: str | None = Form(None),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> UploadedImageResponse:
    """Normalize an uploaded photo, store it and attach it to a listing."""
    if await get_house(db, house_id) is None:
        raise HTTPException(status_code=404, detail="House not found")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        normalized = normalize_image(data, file.filename or "image")
    except ImageDecodeError as e:
        raise HTTPException(status_code=400, detail="Could not read image") from e

    path = f"houses/{house_id}/{uuid.uuid4()}{OUTPUT_EXTENSION}"
    try:
        await storage.upload(path, normalized.data, normalized.content_type)
    except Exception as e:
        logger.exception("image_upload_failed", house_id=str(house_id))
        raise HTTPException(status_code=500, detail="Failed to upload image") from e

    sort_order, is_primary = await next_image_sort_order(db, house_id)
    try:
        image = await add_image(
            db,
            house_id,
            path,
            is_primary=is_primary,
            sort_order=sort_order,
            caption=caption or None,
            contributor_id=ctx.user_id,
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("image_record_failed", house_id=str(house_id))
        await storage.remove([path])
        raise HTTPException(status_code=500, detail="Failed to save image") from e

    logger.info(
        "image_normalized",
        house_id=str(house_id),
        original=format_bytes(normalized.original_size),
        compressed=format_bytes(normalized.compressed_size),
        quality=normalized.quality,
    )
    return UploadedImageResponse(
        image=image_response(image, storage),  # type: ignore[arg-type]
        original_size=normalized.original_size,
        compressed_size=normalized.compressed_size,
        original_size_display=format_bytes(normalized.original_size),
        compressed_size_display=format_bytes(normalized.compressed_size),
    )


@router.post("/images", response_model=ImageResponse)
async def save_image(
    body: SaveImageRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_session),
    storage: BaseStorageProvider = Depends(get_storage),
) -> ImageResponse:
    """Record an image that was uploaded to storage directly."""
    if body.house_id is None or not body.storage_path:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        image = await add_image(
            db,
            body.house_id,
            body.storage_path,
            is_primary=body.is_primary,
            sort_order=body.sort_order,
            caption=body.caption,
            contributor_id=ctx.user_id,
        )
        if image is None:
            raise HTTPException(status_code=404, detail="House not found")
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("image_record_failed", house_id=str(body.house_id))
        raise HTTPException(status_code=500, detail="Failed to save image") from e

    return image_response(image, storage)


# ---------------------------------------------------------------------------
# Styles & stories
# ---------------------------------------------------------------------------


@router.get("/styles", response_model=list[StyleResponse])
async def styles(db: AsyncSession = Depends(get_session)) -> list[StyleResponse]:
    """Style taxonomy in display order."""
    return [StyleResponse.model_validate(s) for s in await list_styles(db)]


@router.get("/houses/{house_id}/stories", response_model=list[StoryResponse])
async def house_stories(
    house_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
) -> list[StoryResponse]:
    """Approved stories for a published listing."""
    if await get_published_house(db, house_id) is None:
        raise HTTPException(status_code=404, detail="House not found")
    return [StoryResponse.model_validate(s) for s in await list_approved_stories(db, house_id)]


@router.post("/houses/{house_id}/stories", response_model=SubmissionResponse)
async def create_story(
    house_id: uuid.UUID,
    body: StorySubmission,
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    """Share a story about a published listing. Stories are held for moderation."""
    try:
        story = await submit_story(db, house_id, body)
        if story is None:
            raise HTTPException(status_code=404, detail="House not found")
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("story_submit_failed", house_id=str(house_id))
        raise HTTPException(status_code=500, detail="Failed to save story") from e

    return SubmissionResponse(id=story.id)
