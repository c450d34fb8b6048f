"""Request/response schemas for moderation endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from psyd.houses.schemas import HouseResponse, ImageResponse, blank_to_none, parse_float, parse_int


class ModerationNotes(BaseModel):
    notes: str | None = Field(None, max_length=4000)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # noqa: ANN401
        return blank_to_none(v)


class HouseEdit(BaseModel):
    """
    Full replacement of a listing's mutable attributes.

    Numbers arrive as form text: unparseable or empty values become None rather than
    a validation error.
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

    @field_validator(
        "address_street",
        "address_suburb",
        "address_state",
        "address_postcode",
        "style",
        "builder_name",
        "condition",
        "description",
        "listing_url",
        "sold_listing_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # noqa: ANN401
        return blank_to_none(v)

    @field_validator("year_built", mode="before")
    @classmethod
    def _parse_year(cls, v: Any) -> int | None:  # noqa: ANN401
        return parse_int(blank_to_none(v))

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _parse_coordinate(cls, v: Any) -> float | None:  # noqa: ANN401
        return parse_float(blank_to_none(v))


class DeleteImageRequest(BaseModel):
    storage_path: str | None = None


class StyleCreate(BaseModel):
    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:  # noqa: ANN401
        return v.strip() if isinstance(v, str) else v


class FeaturedRequest(BaseModel):
    house_id: uuid.UUID


class ModerationHouseResponse(HouseResponse):
    """Moderator view of a listing, including review metadata and submitter contact."""

    verification_notes: str | None
    verified_by: uuid.UUID | None
    contributor_id: uuid.UUID | None
    submitter_email: str | None


class OverviewResponse(BaseModel):
    pending: list[ModerationHouseResponse]
    published: list[ModerationHouseResponse]
    images_by_house: dict[str, list[ImageResponse]]


class StatusChangeResponse(BaseModel):
    id: uuid.UUID
    status: str
    email_sent: bool


class StyleCreatedResponse(BaseModel):
    id: uuid.UUID
    name: str
    sort_order: int


class PendingStoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime | None
    house_id: uuid.UUID
    author_name: str
    story: str
    period_or_context: str | None
    status: str
    address_street: str | None = None
    address_suburb: str | None = None
