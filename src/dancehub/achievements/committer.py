"""Award committer — the only writer of ``user_progress``.

Every write is a compare-and-swap on ``user_progress.version`` (SQLAlchemy
``version_id_col``): the UPDATE matches only the version that was read, so
two pipelines racing on the same user cannot both apply their points. A
lost race surfaces as ``CommitConflict`` and nothing from the batch is kept.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from dancehub.achievements.errors import CommitConflict
from dancehub.achievements.levels import level_for_points
from dancehub.db.models import AchievementDefinition, UserProgress

logger = logging.getLogger(__name__)


def _zero_progress(user_id: str) -> UserProgress:
    return UserProgress(
        user_id=user_id,
        earned_achievement_ids=[],
        points=0,
        level=1,
        platform_stats={},
        updated_at=datetime.now(timezone.utc),
    )


async def get_user_progress(db: AsyncSession, user_id: str) -> UserProgress:
    """Read path: the stored progress, or an unsaved zero-value record."""
    result = await db.execute(select(UserProgress).where(UserProgress.user_id == user_id))
    progress = result.scalar_one_or_none()
    return progress if progress is not None else _zero_progress(user_id)


async def load_progress(db: AsyncSession, user_id: str) -> UserProgress:
    """Load the baseline for a read-modify-write cycle.

    A missing row yields an unsaved zero-value record that INSERTs when a
    write is committed; if another writer creates the row first the insert
    fails and the cycle is reported as a conflict.
    """
    progress = await db.get(UserProgress, user_id)
    return progress if progress is not None else _zero_progress(user_id)


async def _commit(db: AsyncSession, progress: UserProgress) -> None:
    if progress not in db:
        db.add(progress)
    user_id = progress.user_id
    try:
        await db.commit()
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        raise CommitConflict(user_id) from exc


async def commit_awards(
    db: AsyncSession,
    progress: UserProgress,
    definitions: Sequence[AchievementDefinition],
    points_per_level: int | None = None,
) -> list[AchievementDefinition]:
    """Merge newly satisfied achievements into ``progress`` in one atomic write.

    ``progress`` must be the baseline the definitions were evaluated
    against (from ``load_progress`` in the same session). Returns the
    achievements actually added; an empty batch writes nothing.
    """
    earned = list(progress.earned_achievement_ids or [])
    seen = set(earned)
    added: list[AchievementDefinition] = []
    for definition in definitions:
        if definition.id in seen:
            continue
        seen.add(definition.id)
        added.append(definition)

    if not added:
        return []

    new_points = (progress.points or 0) + sum(max(d.points or 0, 0) for d in added)
    new_level = max(progress.level or 1, level_for_points(new_points, points_per_level))

    progress.earned_achievement_ids = earned + [d.id for d in added]
    progress.points = new_points
    progress.level = new_level
    progress.updated_at = datetime.now(timezone.utc)

    await _commit(db, progress)
    logger.info(
        "Committed %d achievement(s) for user %s: %s (points=%d level=%d)",
        len(added), progress.user_id, [d.id for d in added], new_points, new_level,
    )
    return added


async def increment_platform_stat(
    db: AsyncSession,
    progress: UserProgress,
    stat: str,
    amount: int = 1,
) -> int:
    """Bump a platform_stats counter through the same versioned write path."""
    stats = dict(progress.platform_stats or {})
    stats[stat] = int(stats.get(stat, 0)) + amount
    progress.platform_stats = stats
    progress.updated_at = datetime.now(timezone.utc)

    await _commit(db, progress)
    return stats[stat]


async def get_user_achievements(
    db: AsyncSession,
    user_id: str,
    catalog: Sequence[AchievementDefinition],
) -> list[AchievementDefinition]:
    """Earned achievements resolved against ``catalog``, in earn order.

    Ids no longer in the catalog are skipped with a warning.
    """
    progress = await get_user_progress(db, user_id)
    by_id = {d.id: d for d in catalog}
    earned = []
    for achievement_id in progress.earned_achievement_ids or []:
        definition = by_id.get(achievement_id)
        if definition is None:
            logger.warning("Skipping orphaned achievement %s for user %s", achievement_id, user_id)
            continue
        earned.append(definition)
    return earned
