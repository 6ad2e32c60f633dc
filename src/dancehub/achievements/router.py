"""Achievement API endpoints.

Authentication lives in front of this service; user ids arrive in the path.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.achievements.activity import course_totals, fetch_course_progress
from dancehub.achievements.catalog import get_achievement, list_achievements
from dancehub.achievements.committer import get_user_achievements, get_user_progress
from dancehub.achievements.engine import AchievementEngine
from dancehub.achievements.errors import InvalidActivity
from dancehub.achievements.levels import compute_level
from dancehub.achievements.schemas import (
    AchievementResponse,
    ActivityRecordedResponse,
    ActivityRequest,
    AllAchievementsResponse,
    AwardedAchievementResponse,
    SweepResponse,
    UserAchievementsResponse,
    UserProgressResponse,
)
from dancehub.achievements.sweep import sweep_all_users
from dancehub.config import get_settings
from dancehub.database import get_session, get_session_factory
from dancehub.redis_client import get_redis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


# ── Catalog ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_all_achievements(db: AsyncSession = Depends(get_session)):  # noqa: B008
    """Get all active achievement definitions."""
    achievements = await list_achievements(db)
    return AllAchievementsResponse(
        achievements=[AchievementResponse.model_validate(a) for a in achievements]
    )


@router.get("/achievements/{achievement_id}", response_model=AchievementResponse)
async def get_single_achievement(achievement_id: str, db: AsyncSession = Depends(get_session)):  # noqa: B008
    achievement = await get_achievement(db, achievement_id)
    if achievement is None:
        raise HTTPException(status_code=404, detail="Achievement not found")
    return AchievementResponse.model_validate(achievement)


@router.post("/achievements/sweep", response_model=SweepResponse)
async def run_sweep():
    """Run the achievement sweep now (normally triggered by the worker cron)."""
    result = await sweep_all_users(get_session_factory(), get_redis(), get_settings())
    return SweepResponse(
        processed_count=result.processed_count,
        failed_user_ids=result.failed_user_ids,
        awarded_count=result.awarded_count,
        duration_seconds=result.duration_seconds,
    )


# ── Per-user ──


@router.post(
    "/users/{user_id}/activities",
    response_model=ActivityRecordedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_activity(
    user_id: str,
    body: ActivityRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """Record a user activity and evaluate achievements.

    Evaluation runs inline unless the service is configured to hand it to
    the worker; its failures never fail this request.
    """
    settings = get_settings()
    arq_pool = getattr(request.app.state, "arq", None)
    evaluate_inline = settings.evaluate_inline or arq_pool is None

    engine = AchievementEngine(db, get_redis(), settings)
    try:
        outcome = await engine.record_activity(user_id, body.type, body.details, evaluate=evaluate_inline)
    except InvalidActivity as exc:
        raise HTTPException(status_code=422, detail={"message": str(exc), "errors": exc.errors}) from exc

    if not evaluate_inline:
        try:
            await arq_pool.enqueue_job(
                "evaluate_user_achievements", user_id, _job_id=f"achievements:{user_id}"
            )
            outcome.evaluation = "queued"
        except Exception:
            logger.warning("Failed to enqueue achievement evaluation for %s", user_id, exc_info=True)
            outcome.evaluation = "failed"

    return ActivityRecordedResponse(
        activity_id=outcome.activity_id,
        type=outcome.action_type,
        recorded_at=outcome.recorded_at,
        evaluation=outcome.evaluation,
        awarded=[AwardedAchievementResponse.model_validate(a) for a in outcome.awarded],
    )


@router.get("/users/{user_id}/progress", response_model=UserProgressResponse)
async def get_progress(user_id: str, db: AsyncSession = Depends(get_session)):  # noqa: B008
    """Points, level, earned achievement ids, and lesson totals (zero values for new users)."""
    progress = await get_user_progress(db, user_id)
    level_info = compute_level(progress.points, get_settings().points_per_level, progress.level)
    totals = course_totals(await fetch_course_progress(db, user_id))
    return UserProgressResponse(
        user_id=user_id,
        points=progress.points,
        level=level_info["level"],
        next_level=level_info["next_level"],
        next_level_points=level_info["next_level_points"],
        points_to_next_level=level_info["points_to_next_level"],
        progress_percentage=level_info["progress_percentage"],
        earned_achievement_ids=list(progress.earned_achievement_ids or []),
        platform_stats=dict(progress.platform_stats or {}),
        completed_lessons=totals["completed_lessons"],
        completed_courses=totals["completed_courses"],
        total_dance_hours=totals["total_dance_hours"],
        updated_at=progress.updated_at,
    )


@router.get("/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def get_earned_achievements(user_id: str, db: AsyncSession = Depends(get_session)):  # noqa: B008
    """Achievements a user has earned, in the order they were earned."""
    catalog = await list_achievements(db, include_inactive=True)
    earned = await get_user_achievements(db, user_id, catalog)
    return UserAchievementsResponse(
        earned=[AchievementResponse.model_validate(a) for a in earned],
        total_available=sum(1 for a in catalog if a.is_active),
        total_earned=len(earned),
    )
