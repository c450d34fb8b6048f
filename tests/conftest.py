"""Shared test fixtures."""

from __future__ import annotations

import io
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image as PILImage

from psyd.auth.jwt import create_access_token, reset_keys
from psyd.auth.password import hash_password
from psyd.config import get_settings
from psyd.database import close_db, create_all, get_session, init_db
from psyd.db.models import House, HouseStyle, Profile, User
from psyd.email.service import reset_email_service
from psyd.storage.service import reset_storage

TEST_PASSWORD = "CorrectHorse9"


@pytest_asyncio.fixture
async def app_env(tmp_path, monkeypatch) -> AsyncGenerator[None, None]:
    """Point settings at a throwaway SQLite database and local storage, then create the schema."""
    monkeypatch.setenv("PSYD_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("PSYD_REDIS_URL", "")
    monkeypatch.setenv("PSYD_JWT_ALGORITHM", "HS256")
    monkeypatch.setenv("PSYD_JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256-signing")
    monkeypatch.setenv("PSYD_LOG_FORMAT", "console")
    monkeypatch.setenv("PSYD_STORAGE_PROVIDER", "local")
    monkeypatch.setenv("PSYD_STORAGE_LOCAL_ROOT", str(tmp_path / "media"))
    monkeypatch.setenv("PSYD_STORAGE_PUBLIC_BASE_URL", "/media")
    monkeypatch.setenv("PSYD_SITE_URL", "https://example.test")
    monkeypatch.setenv("PSYD_PASSWORD_MIN_LENGTH", "8")
    get_settings.cache_clear()
    reset_keys()
    reset_storage()
    reset_email_service()

    await init_db(get_settings().database_url)
    await create_all()
    yield
    await close_db()

    get_settings.cache_clear()
    reset_keys()
    reset_storage()
    reset_email_service()


@pytest.fixture
def mock_email_service(monkeypatch) -> MagicMock:
    """Replace the email service used by notification dispatch."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("psyd.notifications.service.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


@pytest_asyncio.fixture
async def client(app_env, mock_email_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the ASGI app (no lifespan; the database is set up by ``app_env``)."""
    from psyd.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def run_in_session(fn: Callable[[Any], Awaitable[Any]]) -> Any:  # noqa: ANN401
    """Run ``fn(session)`` in a fresh session and commit."""
    async for db in get_session():
        result = await fn(db)
        await db.commit()
        return result
    return None


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_account(app_env) -> Callable[..., Awaitable[tuple[uuid.UUID, dict[str, str]]]]:
    """Factory: create an account (optionally with a role) and return (id, auth headers)."""

    async def _make(
        email: str,
        role: str | None = "superuser",
        *,
        password: str | None = TEST_PASSWORD,
        email_on_new_submission: bool = True,
    ) -> tuple[uuid.UUID, dict[str, str]]:
        async def _create(db):  # noqa: ANN001, ANN202
            user = User(email=email, password_hash=hash_password(password) if password else None)
            db.add(user)
            await db.flush()
            if role is not None:
                db.add(Profile(id=user.id, role=role, email_on_new_submission=email_on_new_submission))
            return user.id

        user_id = await run_in_session(_create)
        return user_id, auth_headers(create_access_token(user_id))

    return _make


@pytest.fixture
def make_house(app_env) -> Callable[..., Awaitable[uuid.UUID]]:
    """Factory: insert a listing directly and return its id."""

    async def _make(
        street: str = "37 Gould Ave",
        suburb: str = "Lewisham",
        *,
        status: str = "pending",
        style: str | None = None,
        submitter_email: str | None = None,
        is_featured: bool = False,
    ) -> uuid.UUID:
        async def _create(db):  # noqa: ANN001, ANN202
            house = House(
                address_street=street,
                address_suburb=suburb,
                address_state="NSW",
                address_postcode="2049",
                status=status,
                style=style,
                submitter_email=submitter_email,
                is_featured=is_featured,
            )
            db.add(house)
            await db.flush()
            return house.id

        return await run_in_session(_create)

    return _make


@pytest.fixture
def make_style(app_env) -> Callable[..., Awaitable[uuid.UUID]]:
    async def _make(name: str, sort_order: int = 1) -> uuid.UUID:
        async def _create(db):  # noqa: ANN001, ANN202
            style = HouseStyle(name=name, sort_order=sort_order)
            db.add(style)
            await db.flush()
            return style.id

        return await run_in_session(_create)

    return _make


async def load(model: type, pk: Any) -> Any:  # noqa: ANN401
    """Fetch a row by primary key in a fresh session."""
    async for db in get_session():
        return await db.get(model, pk)
    return None


def jpeg_bytes(width: int = 640, height: int = 480, color: tuple[int, int, int] = (180, 120, 60)) -> bytes:
    """A small solid-colour JPEG."""
    buffer = io.BytesIO()
    PILImage.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()
