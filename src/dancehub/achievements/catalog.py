"""Achievement catalog — rule kinds, seed data, and read-only access."""

from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.db.models import AchievementDefinition

logger = logging.getLogger(__name__)


class RequiredAction(str, Enum):
    """Closed set of rule kinds an achievement can require.

    Adding a kind means adding a predicate in ``dancehub.achievements.rules``.
    """

    SIGNUP = "signup"
    COMPLETE_PROFILE = "complete_profile"
    VIEW_COURSES = "view_courses"
    VIEW_INSTRUCTORS = "view_instructors"
    VIEW_SCHOOLS = "view_schools"
    SEARCH_PARTNERS = "search_partners"
    SEND_PARTNER_REQUEST = "send_partner_request"
    PLAN_DANCE_EVENT = "plan_dance_event"
    REGISTER_EVENT = "register_event"
    ACTIVE_DAYS = "active_days"
    REGULAR_VISITS = "regular_visits"
    COMPLETE_FIRST_LESSON = "complete_first_lesson"
    EXPLORE_DANCE_STYLES = "explore_dance_styles"
    SHARE_PLATFORM = "share_platform"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> RequiredAction:
        """Map a stored action string to a rule kind (UNKNOWN if unrecognised)."""
        try:
            action = cls(value)
        except ValueError:
            return cls.UNKNOWN
        return action


ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Getting started
    {
        "id": "welcome-dancer",
        "name": "Welcome Dancer",
        "description": "You joined the platform and took the first step on your dance journey!",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge1.jpg",
        "required_action": "signup",
        "points": 10,
        "sort_order": 1,
    },
    {
        "id": "profile-completed",
        "name": "Nice to Meet You",
        "description": "You filled in your profile completely",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge2.jpg",
        "required_action": "complete_profile",
        "points": 15,
        "sort_order": 2,
    },
    # Exploration
    {
        "id": "course-explorer",
        "name": "Curious Dancer",
        "description": "You explored your options by viewing at least 5 dance courses",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge3.jpg",
        "required_action": "view_courses",
        "required_count": 5,
        "points": 20,
        "sort_order": 3,
    },
    {
        "id": "instructor-researcher",
        "name": "Instructor Researcher",
        "description": "You visited at least 3 instructor profiles",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge4.jpg",
        "required_action": "view_instructors",
        "required_count": 3,
        "points": 20,
        "sort_order": 4,
    },
    {
        "id": "school-visitor",
        "name": "School Wanderer",
        "description": "You visited at least 3 dance school profiles",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge5.jpg",
        "required_action": "view_schools",
        "required_count": 3,
        "points": 20,
        "sort_order": 5,
    },
    # Social
    {
        "id": "social-butterfly",
        "name": "Social Butterfly",
        "description": "You used partner search to look for potential dance partners",
        "dance_style": "all",
        "level": "beginner",
        "icon_url": "/assets/images/badge6.jpg",
        "required_action": "search_partners",
        "points": 25,
        "sort_order": 6,
    },
    {
        "id": "connection-maker",
        "name": "First Move",
        "description": "You sent your first dance partner request",
        "dance_style": "all",
        "level": "intermediate",
        "icon_url": "/assets/images/badge7.jpg",
        "required_action": "send_partner_request",
        "points": 30,
        "sort_order": 7,
    },
    {
        "id": "dancing-duo",
        "name": "Dancing Duo",
        "description": "You planned a dance night with a partner",
        "dance_style": "all",
        "level": "intermediate",
        "icon_url": "/assets/images/badge8.jpg",
        "required_action": "plan_dance_event",
        "points": 40,
        "sort_order": 8,
    },
    # Loyalty
    {
        "id": "active-member",
        "name": "Active Member",
        "description": "You stayed active on the platform for 30 days",
        "dance_style": "all",
        "level": "intermediate",
        "icon_url": "/assets/images/badge9.jpg",
        "required_action": "active_days",
        "required_count": 30,
        "points": 35,
        "sort_order": 9,
    },
    {
        "id": "dance-enthusiast",
        "name": "Dance Enthusiast",
        "description": "You visit regularly and are an active part of the community",
        "dance_style": "all",
        "level": "intermediate",
        "icon_url": "/assets/images/badge10.jpg",
        "required_action": "regular_visits",
        "required_count": 10,
        "points": 45,
        "sort_order": 10,
    },
    # Lessons
    {
        "id": "salsa-beginner",
        "name": "Salsa Starter",
        "description": "You completed your first salsa lesson",
        "dance_style": "salsa",
        "level": "intermediate",
        "icon_url": "/assets/images/badge11.jpg",
        "required_action": "complete_first_lesson",
        "dance_type": "salsa",
        "points": 50,
        "sort_order": 11,
    },
    {
        "id": "bachata-beginner",
        "name": "Bachata Starter",
        "description": "You completed your first bachata lesson",
        "dance_style": "bachata",
        "level": "intermediate",
        "icon_url": "/assets/images/badge12.jpg",
        "required_action": "complete_first_lesson",
        "dance_type": "bachata",
        "points": 50,
        "sort_order": 12,
    },
    {
        "id": "multi-dancer",
        "name": "Versatile Dancer",
        "description": "You broadened your range by exploring different dance styles",
        "dance_style": "all",
        "level": "advanced",
        "icon_url": "/assets/images/badge13.jpg",
        "required_action": "explore_dance_styles",
        "required_count": 3,
        "points": 75,
        "sort_order": 13,
    },
    # Community
    {
        "id": "dance-promoter",
        "name": "Dance Ambassador",
        "description": "You shared the platform with friends and helped the community grow",
        "dance_style": "all",
        "level": "advanced",
        "icon_url": "/assets/images/badge14.jpg",
        "required_action": "share_platform",
        "points": 60,
        "sort_order": 14,
    },
    {
        "id": "event-participant",
        "name": "Event Goer",
        "description": "You registered for a dance event through the platform",
        "dance_style": "all",
        "level": "advanced",
        "icon_url": "/assets/images/badge15.jpg",
        "required_action": "register_event",
        "points": 55,
        "sort_order": 15,
    },
]

_UPSERT_COLUMNS = (
    "name",
    "description",
    "dance_style",
    "level",
    "icon_url",
    "required_action",
    "required_count",
    "dance_type",
    "points",
    "sort_order",
)


def _insert_for(db: AsyncSession):
    """Pick the dialect-specific INSERT that supports ON CONFLICT."""
    return sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the built-in achievement definitions. Returns number seeded."""
    insert = _insert_for(db)
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        values = {"required_count": 1, "dance_type": None, **data}
        stmt = insert(AchievementDefinition).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS},
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded


async def list_achievements(db: AsyncSession, include_inactive: bool = False) -> list[AchievementDefinition]:
    """Return the catalog ordered for display. The engine never writes it."""
    stmt = select(AchievementDefinition).order_by(
        AchievementDefinition.sort_order, AchievementDefinition.points
    )
    if not include_inactive:
        stmt = stmt.where(AchievementDefinition.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_achievement(db: AsyncSession, achievement_id: str) -> AchievementDefinition | None:
    """Fetch one catalog entry by id."""
    return await db.get(AchievementDefinition, achievement_id)
