"""Achievement engine — runs the award pipeline for one user.

catalog -> progress baseline -> activity summary -> rule evaluation ->
versioned commit -> notifications.

Nothing is written until the commit, and the commit is all-or-nothing. A
conflict or store failure before it abandons the cycle; the engine then
retries the whole cycle from a fresh read, a bounded number of times.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.achievements.activity import PLATFORM_COUNTERS, record_activity
from dancehub.achievements.aggregator import aggregate_activity
from dancehub.achievements.catalog import list_achievements
from dancehub.achievements.committer import commit_awards, increment_platform_stat, load_progress
from dancehub.achievements.errors import AchievementError, CommitConflict, StoreUnavailable
from dancehub.achievements.notifier import emit_badge_notifications, pending_badge_notifications
from dancehub.achievements.rules import select_newly_earned
from dancehub.config import Settings, get_settings
from dancehub.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AwardedAchievement:
    """Detached snapshot of an achievement granted by one pipeline run."""

    id: str
    name: str
    points: int
    icon_url: str | None = None

    @classmethod
    def from_definition(cls, definition: AchievementDefinition) -> AwardedAchievement:
        return cls(definition.id, definition.name, definition.points, definition.icon_url)


@dataclass
class ActivityOutcome:
    """Result of recording one activity and evaluating achievements inline."""

    activity_id: int
    action_type: str
    recorded_at: datetime
    awarded: list[AwardedAchievement] = field(default_factory=list)
    evaluation: str = "completed"  # completed | queued | failed | skipped


class AchievementEngine:
    """Evaluates and awards achievements for users, one session per engine."""

    def __init__(self, db: AsyncSession, redis: object | None = None, settings: Settings | None = None) -> None:
        self.db = db
        self.redis = redis
        self.settings = settings or get_settings()

    async def _io(self, step: str, user_id: str, aw: Awaitable[T]) -> T:
        """Bound one store round-trip by the I/O timeout; map driver failures to StoreUnavailable."""
        try:
            async with asyncio.timeout(self.settings.io_timeout_seconds):
                return await aw
        except TimeoutError as exc:
            raise StoreUnavailable(f"{step} timed out for user {user_id}") from exc
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(f"{step} failed for user {user_id}: {exc}") from exc

    async def _with_retries(self, user_id: str, op: Callable[[], Awaitable[T]]) -> T:
        """Run ``op`` until it succeeds or retryable failures exhaust the attempt budget."""
        attempts = max(self.settings.award_max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                return await op()
            except AchievementError as exc:
                await self.db.rollback()
                if not exc.retryable:
                    raise
                if attempt == attempts:
                    if isinstance(exc, CommitConflict):
                        raise CommitConflict(user_id, attempt) from exc
                    raise
                logger.info(
                    "Retrying achievement cycle for user %s (attempt %d/%d): %s",
                    user_id, attempt, attempts, exc,
                )
                await asyncio.sleep(self.settings.award_retry_backoff_seconds * attempt)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _evaluate_once(self, user_id: str) -> list[AchievementDefinition]:
        catalog = await self._io("catalog fetch", user_id, list_achievements(self.db, include_inactive=True))
        progress = await self._io("progress fetch", user_id, load_progress(self.db, user_id))

        earned = set(progress.earned_achievement_ids or [])
        orphaned = earned - {d.id for d in catalog}
        if orphaned:
            logger.warning("User %s holds achievements missing from catalog: %s", user_id, sorted(orphaned))

        candidates = [d for d in catalog if d.is_active and d.id not in earned]
        if not candidates:
            return []

        summary = await self._io(
            "activity fetch", user_id,
            aggregate_activity(self.db, user_id, progress.platform_stats or {}),
        )
        newly_earned = select_newly_earned(candidates, summary, earned)
        if not newly_earned:
            return []

        return await self._io(
            "progress commit", user_id,
            commit_awards(self.db, progress, newly_earned, self.settings.points_per_level),
        )

    async def evaluate_user(self, user_id: str, redeliver_notifications: bool = False) -> list[AwardedAchievement]:
        """Run the full pipeline for one user. Returns achievements awarded by this call.

        Raises ``CommitConflict`` or ``StoreUnavailable`` when retries are
        exhausted; nothing has been recorded in that case.
        """
        committed = await self._with_retries(user_id, lambda: self._evaluate_once(user_id))
        awarded = [AwardedAchievement.from_definition(d) for d in committed]

        to_notify = list(committed)
        if redeliver_notifications:
            to_notify += await self._undelivered(user_id, exclude={a.id for a in awarded})

        if to_notify:
            await emit_badge_notifications(
                self.db,
                self.redis,
                user_id,
                to_notify,
                max_attempts=self.settings.notification_max_attempts,
                backoff_seconds=self.settings.award_retry_backoff_seconds,
                timeout_seconds=self.settings.io_timeout_seconds,
            )
        if awarded:
            logger.info("Awarded achievements %s to user %s", [a.id for a in awarded], user_id)
        return awarded

    async def _undelivered(self, user_id: str, exclude: set[str]) -> list[AchievementDefinition]:
        """Earned achievements still missing their notification (e.g. after a failed emit)."""
        try:
            catalog = await self._io("catalog fetch", user_id, list_achievements(self.db))
            progress = await self._io("progress fetch", user_id, load_progress(self.db, user_id))
            pending = await self._io(
                "notification fetch", user_id,
                pending_badge_notifications(self.db, user_id, progress.earned_achievement_ids or [], catalog),
            )
        except StoreUnavailable:
            logger.warning("Could not check undelivered notifications for user %s", user_id, exc_info=True)
            return []
        return [d for d in pending if d.id not in exclude]

    async def increment_stat(self, user_id: str, stat: str, amount: int = 1) -> int:
        """Bump a platform_stats counter with the same conflict retry as awards."""

        async def op() -> int:
            progress = await self._io("progress fetch", user_id, load_progress(self.db, user_id))
            return await self._io(
                "progress commit", user_id,
                increment_platform_stat(self.db, progress, stat, amount),
            )

        return await self._with_retries(user_id, op)

    async def record_activity(
        self,
        user_id: str,
        action_type: str,
        details: dict[str, Any] | None = None,
        evaluate: bool = True,
    ) -> ActivityOutcome:
        """Append an activity, bump platform counters, and evaluate achievements.

        The activity write is the only part that can fail this call. Counter
        and badge failures are logged; a qualifying badge then appears on a
        later trigger or the next sweep.
        """
        event = await self._io("activity write", user_id, record_activity(self.db, user_id, action_type, details))
        outcome = ActivityOutcome(
            activity_id=event.id,
            action_type=event.type,
            recorded_at=event.created_at,
            evaluation="completed" if evaluate else "skipped",
        )

        stat = PLATFORM_COUNTERS.get(action_type)
        if stat is not None:
            try:
                await self.increment_stat(user_id, stat)
            except AchievementError:
                logger.warning("Failed to bump %s for user %s", stat, user_id, exc_info=True)

        if not evaluate:
            return outcome

        try:
            outcome.awarded = await self.evaluate_user(user_id)
        except Exception:
            outcome.evaluation = "failed"
            logger.exception("Achievement evaluation failed for user %s after %s", user_id, action_type)
        return outcome
