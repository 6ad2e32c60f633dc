"""arq worker for achievement evaluation.

Runs as a separate process. Handles evaluations the API hands off when
``evaluate_inline`` is disabled, and the daily catalog sweep.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from dancehub.achievements.engine import AchievementEngine
from dancehub.achievements.sweep import sweep_all_users
from dancehub.config import get_settings
from dancehub.database import close_db, get_session_factory, init_db
from dancehub.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB and Redis connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    ctx["redis"] = None
    if settings.redis_enabled:
        ctx["redis"] = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )
    ctx["settings"] = settings
    logger.info("Achievement worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Achievement worker shut down")


async def evaluate_user_achievements(ctx: dict, user_id: str) -> list[str]:  # type: ignore[type-arg]
    """Run the award pipeline for one user. Returns ids awarded by this run."""
    async with get_session_factory()() as db:
        engine = AchievementEngine(db, ctx.get("redis"), ctx.get("settings"))
        awarded = await engine.evaluate_user(user_id)
    return [a.id for a in awarded]


async def daily_achievement_sweep(ctx: dict) -> dict[str, object]:  # type: ignore[type-arg]
    """Re-evaluate every user against the current catalog."""
    result = await sweep_all_users(get_session_factory(), ctx.get("redis"), ctx.get("settings"))
    return {
        "processed_count": result.processed_count,
        "failed_user_ids": result.failed_user_ids,
        "awarded_count": result.awarded_count,
        "duration_seconds": result.duration_seconds,
    }


class WorkerSettings:
    """arq worker settings for achievement evaluation."""

    functions = [evaluate_user_achievements, daily_achievement_sweep]
    cron_jobs = [
        cron(
            daily_achievement_sweep,
            hour={get_settings().sweep_hour_utc},
            minute={0},
            run_at_startup=False,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 10
    job_timeout = 3600
