"""Activity aggregator — condenses a user's history into an ActivitySummary."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.achievements.activity import PLATFORM_COUNTERS, fetch_activity, fetch_course_progress
from dancehub.db.models import ActivityEvent, CourseProgress

# Styles recognised inside course ids when no explicit dance type is stored.
# Substring matching misses ids that don't spell the style out (e.g. "sbk-101").
KNOWN_DANCE_TYPES = ("salsa", "bachata", "kizomba")
OTHER_DANCE_TYPE = "other"


@dataclass(frozen=True)
class ActivitySummary:
    """Compact, read-only view of everything the rule evaluator needs."""

    action_counts: Mapping[str, int] = field(default_factory=dict)
    explored_dance_styles: frozenset[str] = frozenset()
    completed_lessons_by_dance_type: Mapping[str, bool] = field(default_factory=dict)
    platform_stats: Mapping[str, int] = field(default_factory=dict)

    def count(self, action: str) -> int:
        return self.action_counts.get(action, 0)

    def stat(self, name: str) -> int:
        value = self.platform_stats.get(name, 0)
        return value if isinstance(value, int) else 0


def infer_dance_type(course_id: str) -> str:
    """Guess the dance type from a course id, bucketing misses as "other"."""
    lowered = course_id.lower()
    for dance_type in KNOWN_DANCE_TYPES:
        if dance_type in lowered:
            return dance_type
    return OTHER_DANCE_TYPE


def _course_style(details: Mapping[str, Any]) -> str | None:
    explicit = details.get("course_type") or details.get("dance_type")
    if explicit:
        return str(explicit).lower()
    course_id = details.get("course_id")
    if course_id:
        return infer_dance_type(str(course_id))
    return None


def build_summary(
    events: Iterable[ActivityEvent],
    course_progress: Iterable[CourseProgress],
    platform_stats: Mapping[str, int] | None = None,
) -> ActivitySummary:
    """Single pass over the event history plus the course progress rows.

    Counters in ``platform_stats`` never read lower than the number of logged
    events that bump them, so a lost counter write is recovered on the next
    evaluation.
    """
    counts: Counter[str] = Counter()
    styles: set[str] = set()

    for event in events:
        counts[event.type] += 1
        if event.type == "view_course":
            style = _course_style(event.details or {})
            if style:
                styles.add(style)

    completed: dict[str, bool] = {}
    for progress in course_progress:
        if progress.course_id and progress.completed_lessons > 0:
            dance_type = (progress.dance_type or infer_dance_type(progress.course_id)).lower()
            completed[dance_type] = True

    stats = dict(platform_stats or {})
    for action, stat in PLATFORM_COUNTERS.items():
        stored = stats.get(stat, 0)
        stats[stat] = max(stored if isinstance(stored, int) else 0, counts[action])

    return ActivitySummary(
        action_counts=MappingProxyType(dict(counts)),
        explored_dance_styles=frozenset(styles),
        completed_lessons_by_dance_type=MappingProxyType(completed),
        platform_stats=MappingProxyType(stats),
    )


async def aggregate_activity(
    db: AsyncSession,
    user_id: str,
    platform_stats: Mapping[str, int] | None = None,
) -> ActivitySummary:
    """Load a user's history and summarise it. Any read failure propagates; no partial summary."""
    events = await fetch_activity(db, user_id)
    course_progress = await fetch_course_progress(db, user_id)
    return build_summary(events, course_progress, platform_stats)
