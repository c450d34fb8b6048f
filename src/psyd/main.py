"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from psyd.auth.router import router as auth_router
from psyd.auth.service import ensure_super_admin
from psyd.config import get_settings
from psyd.database import close_db, get_session, init_db
from psyd.health.router import router as health_router
from psyd.houses.router import router as houses_router
from psyd.middleware import setup_middleware
from psyd.moderation.router import router as moderation_router
from psyd.redis_client import close_redis, init_redis
from psyd.users.router import admin_router as user_admin_router
from psyd.users.router import router as users_router

logger = structlog.get_logger()


async def bootstrap_super_admin(email: str, password: str) -> None:
    """Create the configured first super_admin account, if any (idempotent)."""
    if not email or not password:
        return
    async for db in get_session():
        await ensure_super_admin(db, email, password)
        await db.commit()
        break


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)

    try:
        await bootstrap_super_admin(settings.bootstrap_admin_email, settings.bootstrap_admin_password)
    except Exception:
        logger.exception("super_admin_bootstrap_failed")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Project Sydney API",
        description="Community directory of historic houses: listings, moderation and accounts",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(houses_router)
    app.include_router(moderation_router)
    app.include_router(user_admin_router)
    app.include_router(users_router)

    return app


app = create_app()
