"""Badge notification emitter.

Runs only after an award commit has been accepted. One ``badge_earned``
notification per achievement, keyed by (user, achievement) so re-delivery
after a failure never duplicates. A failed notification is logged and left
for the next sweep; it never undoes the award.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.db.models import AchievementDefinition, Notification
from dancehub.notifications.service import create_notification

logger = logging.getLogger(__name__)

BADGE_EARNED = "badge_earned"


def badge_dedup_key(user_id: str, achievement_id: str) -> str:
    return f"{BADGE_EARNED}:{user_id}:{achievement_id}"


def _badge_details(achievement: AchievementDefinition) -> dict[str, Any]:
    return {
        "badgeId": achievement.id,
        "badgeName": achievement.name,
        "iconUrl": achievement.icon_url,
        "points": achievement.points,
    }


async def emit_badge_notifications(
    db: AsyncSession,
    redis: Any | None,
    user_id: str,
    awarded: Sequence[AchievementDefinition],
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    timeout_seconds: float | None = None,
) -> list[Notification]:
    """Create one notification per committed achievement. Returns those created now.

    Each insert is bounded by ``timeout_seconds``; a timed-out attempt is
    retried like a store error.
    """
    # Plain values up front: a rollback below expires the ORM instances
    pending = [_badge_details(a) for a in awarded]
    created: list[Notification] = []
    for details in pending:
        for attempt in range(1, max_attempts + 1):
            try:
                async with asyncio.timeout(timeout_seconds):
                    notification = await create_notification(
                        db,
                        user_id,
                        BADGE_EARNED,
                        title="New Badge Earned!",
                        message=f'Congratulations! You earned the "{details["badgeName"]}" badge.',
                        details=details,
                        dedup_key=badge_dedup_key(user_id, details["badgeId"]),
                        redis=redis,
                    )
            except (SQLAlchemyError, TimeoutError):
                await db.rollback()
                if attempt == max_attempts:
                    logger.exception(
                        "Giving up on badge notification %s for user %s after %d attempts",
                        details["badgeId"], user_id, attempt,
                    )
                    break
                await asyncio.sleep(backoff_seconds * attempt)
                continue
            if notification is not None:
                created.append(notification)
            break
    return created


async def pending_badge_notifications(
    db: AsyncSession,
    user_id: str,
    earned_ids: Iterable[str],
    catalog: Iterable[AchievementDefinition],
) -> list[AchievementDefinition]:
    """Earned achievements whose notification was never stored."""
    earned = set(earned_ids)
    if not earned:
        return []
    result = await db.execute(
        select(Notification.dedup_key).where(
            Notification.user_id == user_id,
            Notification.type == BADGE_EARNED,
        )
    )
    delivered = {key for key in result.scalars() if key}
    return [
        d for d in catalog
        if d.id in earned and badge_dedup_key(user_id, d.id) not in delivered
    ]
