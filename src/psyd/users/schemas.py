"""Request/response schemas for account administration and self settings."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class InviteRequest(BaseModel):
    """Invite an account by email with an initial role."""

    email: str = Field("", max_length=320)
    role: str = "superuser"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class RoleUpdateRequest(BaseModel):
    role: str


class ManagedUserResponse(BaseModel):
    """An account as listed on the user management page."""

    id: uuid.UUID
    email: str
    role: str | None
    created_at: datetime | None
    invited_at: datetime | None
    last_login: datetime | None
    has_password: bool


class InviteResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    email_sent: bool


class NotificationPreferencesUpdate(BaseModel):
    """Partial update of the caller's notification settings. Omitted fields are unchanged."""

    email_on_new_submission: bool | None = None
    email_on_approval: bool | None = None
    notification_frequency: str | None = None


class ThemeUpdate(BaseModel):
    theme: str = ""
