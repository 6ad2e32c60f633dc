"""Rule evaluator — one pure predicate per rule kind.

``evaluate`` has no side effects besides a data-quality warning for catalog
entries whose required action is not a known rule kind; those never pass.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable

from dancehub.achievements.aggregator import ActivitySummary
from dancehub.achievements.catalog import RequiredAction
from dancehub.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

Predicate = Callable[[AchievementDefinition, ActivitySummary], bool]

# Rule kind -> activity type it counts
COUNTED_ACTIONS: dict[RequiredAction, str] = {
    RequiredAction.VIEW_COURSES: "view_course",
    RequiredAction.VIEW_INSTRUCTORS: "view_instructor",
    RequiredAction.VIEW_SCHOOLS: "view_school",
    RequiredAction.SEARCH_PARTNERS: "search_partners",
    RequiredAction.SEND_PARTNER_REQUEST: "send_partner_request",
    RequiredAction.PLAN_DANCE_EVENT: "plan_dance_event",
    RequiredAction.REGISTER_EVENT: "register_event",
}


def required_count(definition: AchievementDefinition) -> int:
    return max(definition.required_count or 1, 1)


def _counted(action: str) -> Predicate:
    def predicate(definition: AchievementDefinition, summary: ActivitySummary) -> bool:
        return summary.count(action) >= required_count(definition)

    return predicate


def _signup(_definition: AchievementDefinition, _summary: ActivitySummary) -> bool:
    # Every evaluated user has signed up
    return True


def _complete_profile(_definition: AchievementDefinition, summary: ActivitySummary) -> bool:
    return summary.count("complete_profile") > 0


def _total_logins(definition: AchievementDefinition, summary: ActivitySummary) -> bool:
    return summary.stat("totalLogins") >= required_count(definition)


def _complete_first_lesson(definition: AchievementDefinition, summary: ActivitySummary) -> bool:
    completed = summary.completed_lessons_by_dance_type
    if definition.dance_type:
        return completed.get(definition.dance_type.lower()) is True
    return any(completed.values())


def _explore_dance_styles(definition: AchievementDefinition, summary: ActivitySummary) -> bool:
    return len(summary.explored_dance_styles) >= required_count(definition)


def _share_platform(_definition: AchievementDefinition, summary: ActivitySummary) -> bool:
    return summary.stat("referrals") > 0


def _unknown(definition: AchievementDefinition, _summary: ActivitySummary) -> bool:
    logger.warning(
        "Achievement %s has unknown required_action %r; treating as not earned",
        definition.id, definition.required_action,
    )
    return False


PREDICATES: dict[RequiredAction, Predicate] = {
    RequiredAction.SIGNUP: _signup,
    RequiredAction.COMPLETE_PROFILE: _complete_profile,
    **{kind: _counted(action) for kind, action in COUNTED_ACTIONS.items()},
    RequiredAction.ACTIVE_DAYS: _total_logins,
    RequiredAction.REGULAR_VISITS: _total_logins,
    RequiredAction.COMPLETE_FIRST_LESSON: _complete_first_lesson,
    RequiredAction.EXPLORE_DANCE_STYLES: _explore_dance_styles,
    RequiredAction.SHARE_PLATFORM: _share_platform,
    RequiredAction.UNKNOWN: _unknown,
}

_missing = set(RequiredAction) - set(PREDICATES)
if _missing:  # pragma: no cover - import-time guard
    msg = f"No predicate for rule kinds: {sorted(k.value for k in _missing)}"
    raise RuntimeError(msg)


def evaluate(
    definition: AchievementDefinition,
    summary: ActivitySummary,
    already_earned: Collection[str] = (),
) -> bool:
    """Return True if ``definition`` is newly satisfied by ``summary``."""
    if definition.id in already_earned:
        return False
    kind = RequiredAction.parse(definition.required_action)
    return PREDICATES[kind](definition, summary)


def select_newly_earned(
    catalog: Iterable[AchievementDefinition],
    summary: ActivitySummary,
    already_earned: Collection[str] = (),
) -> list[AchievementDefinition]:
    """Catalog entries not yet earned whose rule is now satisfied."""
    return [d for d in catalog if evaluate(d, summary, already_earned)]
