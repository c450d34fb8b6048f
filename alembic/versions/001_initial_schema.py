"""Initial schema: accounts, profiles, tokens, listings, images, styles, stories, featured singleton.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create every table."""
    # --- Accounts ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_count", sa.Integer(), server_default="0", nullable=False),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.String(16), server_default="superuser", nullable=False),
        sa.Column("email_on_new_submission", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("email_on_approval", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("notification_frequency", sa.String(16), server_default="instant", nullable=False),
        sa.Column("theme", sa.String(16), server_default="system", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("role IN ('superuser', 'admin', 'super_admin')", name="ck_profiles_role"),
        sa.CheckConstraint("notification_frequency IN ('instant', 'daily', 'none')", name="ck_profiles_frequency"),
        sa.CheckConstraint("theme IN ('light', 'dark', 'system')", name="ck_profiles_theme"),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"])

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("replaced_by", sa.Uuid(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    op.create_table(
        "auth_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("purpose", sa.String(16), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.CheckConstraint("purpose IN ('reset', 'invite')", name="ck_auth_tokens_purpose"),
    )
    op.create_index("ix_auth_tokens_user_purpose", "auth_tokens", ["user_id", "purpose"])

    # --- Listings ---
    op.create_table(
        "houses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("address_street", sa.String(255), nullable=False),
        sa.Column("address_suburb", sa.String(128), nullable=False),
        sa.Column("address_state", sa.String(16), nullable=False),
        sa.Column("address_postcode", sa.String(8), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("style", sa.String(128), nullable=True),
        sa.Column("year_built", sa.Integer(), nullable=True),
        sa.Column("builder_name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("condition", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("contributor_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("verified_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("listing_url", sa.Text(), nullable=True),
        sa.Column("sold_listing_url", sa.Text(), nullable=True),
        sa.Column("submitter_email", sa.String(320), nullable=True),
        sa.Column("is_featured", sa.Boolean(), server_default="false", nullable=False),
        sa.CheckConstraint("status IN ('pending', 'published', 'rejected')", name="ck_houses_status"),
    )
    op.create_index("ix_houses_address_suburb", "houses", ["address_suburb"])
    op.create_index("ix_houses_style", "houses", ["style"])
    op.create_index("ix_houses_status", "houses", ["status"])

    op.create_table(
        "images",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("house_id", sa.Uuid(), sa.ForeignKey("houses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("storage_path", sa.String(512), nullable=False),
        sa.Column("caption", sa.String(512), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("contributor_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_images_house_id", "images", ["house_id"])

    op.create_table(
        "house_styles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("sort_order", sa.Integer(), server_default="1", nullable=False),
    )

    op.create_table(
        "property_stories",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("house_id", sa.Uuid(), sa.ForeignKey("houses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_name", sa.String(128), nullable=False),
        sa.Column("story", sa.Text(), nullable=False),
        sa.Column("period_or_context", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.CheckConstraint("status IN ('pending', 'approved')", name="ck_property_stories_status"),
    )
    op.create_index("ix_property_stories_house_id", "property_stories", ["house_id"])

    op.create_table(
        "featured_house",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("house_id", sa.Uuid(), sa.ForeignKey("houses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.CheckConstraint("id = 1", name="ck_featured_house_singleton"),
    )
    op.execute("INSERT INTO featured_house (id) VALUES (1)")


def downgrade() -> None:
    """Drop every table."""
    op.drop_table("featured_house")
    op.drop_index("ix_property_stories_house_id", table_name="property_stories")
    op.drop_table("property_stories")
    op.drop_table("house_styles")
    op.drop_index("ix_images_house_id", table_name="images")
    op.drop_table("images")
    op.drop_index("ix_houses_status", table_name="houses")
    op.drop_index("ix_houses_style", table_name="houses")
    op.drop_index("ix_houses_address_suburb", table_name="houses")
    op.drop_table("houses")
    op.drop_index("ix_auth_tokens_user_purpose", table_name="auth_tokens")
    op.drop_table("auth_tokens")
    op.drop_index("ix_refresh_tokens_user_id", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_index("ix_profiles_role", table_name="profiles")
    op.drop_table("profiles")
    op.drop_table("users")
