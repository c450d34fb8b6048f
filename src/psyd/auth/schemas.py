"""Request/response schemas for authentication and account endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from psyd.db.models import Profile, User

NotificationFrequency = Literal["instant", "daily", "none"]
Theme = Literal["light", "dark", "system"]


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Sign in with email + password."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class ForgotPasswordRequest(BaseModel):
    """Request a password reset email. Not validated as an address so every input gets the same answer."""

    email: str = Field("", max_length=320)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class ResetPasswordRequest(BaseModel):
    """Set a password from an emailed reset or invite link."""

    token: str = Field(..., min_length=1)
    password: str = Field(..., max_length=256)
    confirm: str = Field(..., max_length=256)


class ChangePasswordRequest(BaseModel):
    """Change the signed-in account's password."""

    password: str = Field(..., max_length=256)
    confirm: str = Field(..., max_length=256)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class RefreshRequest(BaseModel):
    """Refresh token rotation request."""

    refresh_token: str


class LogoutRequest(BaseModel):
    """Sign out (revoke refresh token)."""

    refresh_token: str


class AccountResponse(BaseModel):
    """The signed-in account with its profile."""

    id: uuid.UUID
    email: str
    role: str | None
    email_on_new_submission: bool
    email_on_approval: bool
    notification_frequency: NotificationFrequency
    theme: Theme
    created_at: datetime | None
    last_login: datetime | None

    @classmethod
    def from_models(cls, user: User, profile: Profile | None) -> AccountResponse:
        """Build from an account and its (possibly missing) profile."""
        return cls(
            id=user.id,
            email=user.email,
            role=profile.role if profile else None,
            email_on_new_submission=profile.email_on_new_submission if profile else True,
            email_on_approval=profile.email_on_approval if profile else True,
            notification_frequency=profile.notification_frequency if profile else "instant",  # type: ignore[arg-type]
            theme=profile.theme if profile else "system",  # type: ignore[arg-type]
            created_at=user.created_at,
            last_login=user.last_login,
        )


class TokenResponse(BaseModel):
    """Issued tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountResponse
