"""Scheduled sweep — re-runs the award pipeline for every known user."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dancehub.achievements.engine import AchievementEngine
from dancehub.config import Settings, get_settings
from dancehub.db.models import User

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep. processed + failed always covers every user at sweep start."""

    processed_count: int = 0
    failed_user_ids: list[str] = field(default_factory=list)
    awarded_count: int = 0
    duration_seconds: float = 0.0

    @property
    def total_users(self) -> int:
        return self.processed_count + len(self.failed_user_ids)


async def _snapshot_user_ids(session_factory: async_sessionmaker[AsyncSession]) -> list[str]:
    async with session_factory() as db:
        result = await db.execute(select(User.id).order_by(User.id))
        return list(result.scalars().all())


async def sweep_all_users(
    session_factory: async_sessionmaker[AsyncSession],
    redis: object | None = None,
    settings: Settings | None = None,
) -> SweepResult:
    """Evaluate achievements for all users; one user's failure never stops the rest.

    Users are processed in parallel up to ``sweep_concurrency``, each in its
    own session. Undelivered badge notifications are re-emitted on the way.
    """
    settings = settings or get_settings()
    started = time.monotonic()
    user_ids = await _snapshot_user_ids(session_factory)
    semaphore = asyncio.Semaphore(max(settings.sweep_concurrency, 1))

    async def _process(user_id: str) -> int:
        async with semaphore:
            async with session_factory() as db:
                engine = AchievementEngine(db, redis, settings)
                awarded = await engine.evaluate_user(user_id, redeliver_notifications=True)
                return len(awarded)

    outcomes = await asyncio.gather(*(_process(uid) for uid in user_ids), return_exceptions=True)

    result = SweepResult()
    for user_id, outcome in zip(user_ids, outcomes):
        if isinstance(outcome, BaseException):
            result.failed_user_ids.append(user_id)
            logger.error(
                "Achievement sweep failed for user %s: %r", user_id, outcome,
                exc_info=(type(outcome), outcome, outcome.__traceback__),
            )
            continue
        result.processed_count += 1
        result.awarded_count += outcome

    result.duration_seconds = time.monotonic() - started
    logger.info(
        "Achievement sweep done: %d processed, %d failed, %d awarded in %.2fs",
        result.processed_count, len(result.failed_user_ids), result.awarded_count, result.duration_seconds,
    )
    return result
