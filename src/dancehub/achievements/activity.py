"""Activity ingestion — typed payloads per action, append-only event log.

Every action type maps to a pydantic model; payloads are validated here so
the aggregator never has to guess at optional fields. Keys are accepted in
either snake_case or the web client's camelCase.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.achievements.errors import InvalidActivity
from dancehub.db.models import ActivityEvent, CourseProgress, User

logger = logging.getLogger(__name__)

# Activity types that bump a platform_stats counter instead of (only) being counted
PLATFORM_COUNTERS: dict[str, str] = {
    "login": "totalLogins",
    "share_platform": "referrals",
}


# --- Payloads ---


class ActivityDetails(BaseModel):
    """Base payload: unknown keys are kept as free-form context."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", str_strip_whitespace=True)


class GenericDetails(ActivityDetails):
    """Payload for tags without structured details (search_partners, login, ...)."""


class ViewCourseDetails(ActivityDetails):
    course_id: str = Field(alias="courseId", min_length=1)
    course_type: str | None = Field(default=None, alias="courseType")


class ViewInstructorDetails(ActivityDetails):
    instructor_id: str = Field(alias="instructorId", min_length=1)


class ViewSchoolDetails(ActivityDetails):
    school_id: str = Field(alias="schoolId", min_length=1)


class CompleteProfileDetails(ActivityDetails):
    completion_rate: int = Field(default=100, alias="completionRate", ge=0, le=100)


class PartnerRequestDetails(ActivityDetails):
    partner_id: str = Field(alias="partnerId", min_length=1)
    message: str | None = None


class DanceEventDetails(ActivityDetails):
    partner_id: str = Field(alias="partnerId", min_length=1)
    event_type: str | None = Field(default=None, alias="eventType")
    location: str | None = None
    date: str | None = None


class RegisterEventDetails(ActivityDetails):
    event_id: str = Field(alias="eventId", min_length=1)


class SharePlatformDetails(ActivityDetails):
    method: str = "link"


class CompleteLessonDetails(ActivityDetails):
    course_id: str = Field(alias="courseId", min_length=1)
    lesson_id: str | None = Field(default=None, alias="lessonId")
    dance_type: str | None = Field(default=None, alias="danceType")
    total_lessons: int | None = Field(default=None, alias="totalLessons", ge=1)


DETAILS_MODELS: dict[str, type[ActivityDetails]] = {
    "view_course": ViewCourseDetails,
    "view_instructor": ViewInstructorDetails,
    "view_school": ViewSchoolDetails,
    "complete_profile": CompleteProfileDetails,
    "send_partner_request": PartnerRequestDetails,
    "plan_dance_event": DanceEventDetails,
    "register_event": RegisterEventDetails,
    "share_platform": SharePlatformDetails,
    "complete_lesson": CompleteLessonDetails,
}


def validate_details(action_type: str, details: dict[str, Any] | None) -> dict[str, Any]:
    """Validate a payload against its action's model and return the normalized dict."""
    model = DETAILS_MODELS.get(action_type, GenericDetails)
    try:
        parsed = model.model_validate(details or {})
    except ValidationError as exc:
        raise InvalidActivity(
            action_type,
            exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
    return parsed.model_dump(exclude_none=True)


# --- Writes ---


def _dialect_insert(db: AsyncSession):
    return sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert


async def ensure_user(db: AsyncSession, user_id: str) -> None:
    """Insert the user mirror row if the auth store's user is not known yet."""
    insert = _dialect_insert(db)
    stmt = insert(User).values(id=user_id, created_at=datetime.now(timezone.utc))
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))


async def _record_lesson(db: AsyncSession, user_id: str, details: dict[str, Any], now: datetime) -> None:
    """Bump lesson progress for the course named in a complete_lesson payload.

    A single upsert, so concurrent lessons for the same course neither collide
    on the (user, course) key nor lose increments.
    """
    dance_type = details.get("dance_type")
    stmt = _dialect_insert(db)(CourseProgress).values(
        user_id=user_id,
        course_id=details["course_id"],
        dance_type=dance_type.lower() if dance_type else None,
        completed_lessons=1,
        total_lessons=details.get("total_lessons") or 0,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "course_id"],
        set_={
            "completed_lessons": CourseProgress.completed_lessons + 1,
            "dance_type": func.coalesce(stmt.excluded.dance_type, CourseProgress.dance_type),
            "total_lessons": case(
                (stmt.excluded.total_lessons > CourseProgress.total_lessons, stmt.excluded.total_lessons),
                else_=CourseProgress.total_lessons,
            ),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)


async def record_activity(
    db: AsyncSession,
    user_id: str,
    action_type: str,
    details: dict[str, Any] | None = None,
) -> ActivityEvent:
    """Append one activity event and commit it.

    The write stands on its own: achievement evaluation runs afterwards and
    its failures never roll this back.
    """
    normalized = validate_details(action_type, details)
    now = datetime.now(timezone.utc)

    await ensure_user(db, user_id)
    event = ActivityEvent(user_id=user_id, type=action_type, details=normalized, created_at=now)
    db.add(event)

    if action_type == "complete_lesson":
        await _record_lesson(db, user_id, normalized, now)

    await db.commit()
    logger.debug("Recorded activity %s for user %s", action_type, user_id)
    return event


# --- Reads ---


async def fetch_activity(db: AsyncSession, user_id: str) -> list[ActivityEvent]:
    """Full activity history for a user, oldest first."""
    result = await db.execute(
        select(ActivityEvent)
        .where(ActivityEvent.user_id == user_id)
        .order_by(ActivityEvent.created_at.asc(), ActivityEvent.id.asc())
    )
    return list(result.scalars().all())


async def fetch_course_progress(db: AsyncSession, user_id: str) -> list[CourseProgress]:
    """All course progress rows for a user."""
    result = await db.execute(
        select(CourseProgress)
        .where(CourseProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def course_totals(rows: list[CourseProgress]) -> dict[str, int]:
    """Lesson and course totals for progress displays. Each lesson counts as one dance hour."""
    completed_lessons = sum(row.completed_lessons for row in rows)
    completed_courses = sum(
        1 for row in rows if row.total_lessons > 0 and row.completed_lessons >= row.total_lessons
    )
    return {
        "completed_lessons": completed_lessons,
        "completed_courses": completed_courses,
        "total_dance_hours": completed_lessons,
    }
