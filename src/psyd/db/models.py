"""ORM models for accounts, listings and their moderation metadata.

Column types are kept portable (generic ``Uuid``, timezone-aware ``DateTime``) so the
same metadata runs against PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from psyd.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class User(Base):
    """An authenticated account. Invited accounts have no password until they accept."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    login_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    profile: Mapped[Profile | None] = relationship(
        "Profile", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    auth_tokens: Mapped[list[AuthToken]] = relationship(
        "AuthToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Profile(Base):
    """Role and preferences attached one-to-one to an account."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('superuser', 'admin', 'super_admin')", name="ck_profiles_role"),
        CheckConstraint("notification_frequency IN ('instant', 'daily', 'none')", name="ck_profiles_frequency"),
        CheckConstraint("theme IN ('light', 'dark', 'system')", name="ck_profiles_theme"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="superuser")
    email_on_new_submission: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    email_on_approval: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    notification_frequency: Mapped[str] = mapped_column(String(16), default="instant", server_default="instant")
    theme: Mapped[str] = mapped_column(String(16), default="system", server_default="system")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    user: Mapped[User] = relationship("User", back_populates="profile")


class RefreshToken(Base):
    """JWT refresh token tracking for revocation and rotation."""

    __tablename__ = "refresh_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    replaced_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="refresh_tokens")


class AuthToken(Base):
    """One-time emailed link token: password reset or invite acceptance. Only the hash is stored."""

    __tablename__ = "auth_tokens"
    __table_args__ = (CheckConstraint("purpose IN ('reset', 'invite')", name="ck_auth_tokens_purpose"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose: Mapped[str] = mapped_column(String(16), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="auth_tokens")


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class House(Base):
    """A submitted property listing moving through pending -> published | rejected."""

    __tablename__ = "houses"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'published', 'rejected')", name="ck_houses_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    address_street: Mapped[str] = mapped_column(String(255), nullable=False)
    address_suburb: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    address_state: Mapped[str] = mapped_column(String(16), nullable=False)
    address_postcode: Mapped[str] = mapped_column(String(8), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    style: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    builder_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    contributor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verified_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    listing_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    sold_listing_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitter_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    images: Mapped[list[Image]] = relationship(
        "Image", back_populates="house", cascade="all, delete-orphan", passive_deletes=True
    )
    stories: Mapped[list[PropertyStory]] = relationship(
        "PropertyStory", back_populates="house", cascade="all, delete-orphan", passive_deletes=True
    )


class Image(Base):
    """A stored photo of a listing."""

    __tablename__ = "images"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    house_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    storage_path: Mapped[str] = mapped_column(String(512), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    contributor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    house: Mapped[House] = relationship("House", back_populates="images")


class HouseStyle(Base):
    """Style taxonomy entry referenced by ``House.style`` (by name)."""

    __tablename__ = "house_styles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class PropertyStory(Base):
    """Community-submitted history of a listing, moderated independently."""

    __tablename__ = "property_stories"
    __table_args__ = (CheckConstraint("status IN ('pending', 'approved')", name="ck_property_stories_status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    house_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_name: Mapped[str] = mapped_column(String(128), nullable=False)
    story: Mapped[str] = mapped_column(Text, nullable=False)
    period_or_context: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    house: Mapped[House] = relationship("House", back_populates="stories")


class FeaturedHouse(Base):
    """Singleton row (id=1) naming the featured listing; locked while the featured flag moves."""

    __tablename__ = "featured_house"
    __table_args__ = (CheckConstraint("id = 1", name="ck_featured_house_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    house_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("houses.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
