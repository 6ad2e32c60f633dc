"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import FastAPI

from dancehub.achievements.catalog import seed_achievements
from dancehub.achievements.router import router as achievements_router
from dancehub.config import get_settings
from dancehub.database import close_db, get_session, init_db
from dancehub.health.router import router as health_router
from dancehub.middleware import setup_middleware
from dancehub.notifications.router import router as notifications_router
from dancehub.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_enabled:
        await init_redis(settings.redis_url)

    # Seed achievement definitions (idempotent)
    try:
        async for db in get_session():
            await seed_achievements(db)
            break
    except Exception:
        logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    app.state.arq = None
    if not settings.evaluate_inline:
        app.state.arq = await create_pool(RedisSettings.from_dsn(settings.arq_redis_url))

    yield

    if app.state.arq is not None:
        await app.state.arq.aclose()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="DanceHub Achievements API",
        description="Activity tracking, achievements, and badge notifications for the DanceHub platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(achievements_router)
    app.include_router(notifications_router)

    return app


app = create_app()
