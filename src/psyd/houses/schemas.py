"""Request/response schemas for public listing endpoints."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from psyd.houses.address import strip_street_number

OPTIONAL_TEXT_FIELDS = (
    "style",
    "builder_name",
    "condition",
    "description",
    "listing_url",
    "sold_listing_url",
    "submitter_email",
)


def blank_to_none(value: Any) -> Any:  # noqa: ANN401
    """Collapse empty or whitespace-only strings to None; strip the rest."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def parse_int(value: Any) -> int | None:  # noqa: ANN401
    """Parse an integer from form text; anything unparseable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_float(value: Any) -> float | None:  # noqa: ANN401
    """Parse a finite float from form text; anything unparseable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class HouseSubmission(BaseModel):
    """
    A public listing submission.

    Required address parts are checked by the service (so a missing one is a 400
    before any write), everything else is optional and normalized here.
    """

    address_street: str | None = None
    address_suburb: str | None = None
    address_state: str | None = None
    address_postcode: str | None = None
    style: str | None = None
    year_built: int | None = None
    builder_name: str | None = None
    condition: str | None = None
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    listing_url: str | None = None
    sold_listing_url: str | None = None
    submitter_email: str | None = Field(None, max_length=320)

    @field_validator(
        "address_street", "address_suburb", "address_state", "address_postcode", *OPTIONAL_TEXT_FIELDS, mode="before"
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # noqa: ANN401
        if v is not None and not isinstance(v, str):
            return None
        return blank_to_none(v)

    @field_validator("year_built", mode="before")
    @classmethod
    def _parse_year(cls, v: Any) -> int | None:  # noqa: ANN401
        return parse_int(blank_to_none(v))

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _numeric_only(cls, v: Any) -> float | None:  # noqa: ANN401
        # Coordinates come from the geocoder as numbers; text is ignored
        if isinstance(v, bool) or not isinstance(v, int | float):
            return None
        return parse_float(v)

    @field_validator("submitter_email")
    @classmethod
    def _normalize_email(cls, v: str | None) -> str | None:
        return v.lower() if v else None


class SubmissionResponse(BaseModel):
    id: uuid.UUID


class SaveImageRequest(BaseModel):
    """Register an object that was already uploaded to storage."""

    house_id: uuid.UUID | None = None
    storage_path: str | None = None
    is_primary: bool = False
    sort_order: int = 0
    caption: str | None = None

    @field_validator("storage_path", "caption", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # noqa: ANN401
        return blank_to_none(v)


class StorySubmission(BaseModel):
    """A community story about a published listing."""

    author_name: str | None = Field(None, max_length=128)
    story: str | None = None
    period_or_context: str | None = Field(None, max_length=255)

    @field_validator("author_name", "story", "period_or_context", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # noqa: ANN401
        return blank_to_none(v)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    house_id: uuid.UUID
    storage_path: str
    caption: str | None
    is_primary: bool
    sort_order: int
    created_at: datetime | None
    url: str


class HouseResponse(BaseModel):
    """Public view of a listing. Moderation fields and the submitter's address are omitted."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime | None
    address_street: str
    address_suburb: str
    address_state: str
    address_postcode: str
    latitude: float | None
    longitude: float | None
    style: str | None
    year_built: int | None
    builder_name: str | None
    description: str | None
    condition: str | None
    status: str
    listing_url: str | None
    sold_listing_url: str | None
    is_featured: bool


class HouseSummaryResponse(HouseResponse):
    """Map/list entry: the street without its number, plus the primary image thumbnail."""

    street_name: str
    thumbnail: str | None

    @classmethod
    def build(cls, house: Any, thumbnail: str | None) -> HouseSummaryResponse:  # noqa: ANN401
        base = HouseResponse.model_validate(house).model_dump()
        return cls(**base, street_name=strip_street_number(house.address_street), thumbnail=thumbnail)


class HouseDetailResponse(BaseModel):
    house: HouseResponse
    images: list[ImageResponse]


class UploadedImageResponse(BaseModel):
    image: ImageResponse
    original_size: int
    compressed_size: int
    original_size_display: str
    compressed_size_display: str


class StyleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    sort_order: int


class StoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime | None
    house_id: uuid.UUID
    author_name: str
    story: str
    period_or_context: str | None
    status: str
