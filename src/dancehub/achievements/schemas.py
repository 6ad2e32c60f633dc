"""Pydantic request/response models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Catalog ---


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    required_action: str
    required_count: int = 1
    dance_type: str | None = None
    dance_style: str = "all"
    level: str = "beginner"
    points: int
    icon_url: str | None = None


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]


# --- Activities ---


class ActivityRequest(BaseModel):
    type: str = Field(min_length=1, max_length=64, pattern=r"^[a-z][a-z0-9_]*$")
    details: dict[str, Any] = Field(default_factory=dict)


class AwardedAchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    points: int
    icon_url: str | None = None


class ActivityRecordedResponse(BaseModel):
    activity_id: int
    type: str
    recorded_at: datetime
    evaluation: str
    awarded: list[AwardedAchievementResponse] = []


# --- Progress ---


class UserProgressResponse(BaseModel):
    user_id: str
    points: int
    level: int
    next_level: int
    next_level_points: int
    points_to_next_level: int
    progress_percentage: int
    earned_achievement_ids: list[str]
    platform_stats: dict[str, int] = {}
    completed_lessons: int = 0
    completed_courses: int = 0
    total_dance_hours: int = 0
    updated_at: datetime | None = None


class UserAchievementsResponse(BaseModel):
    earned: list[AchievementResponse]
    total_available: int
    total_earned: int


# --- Sweep ---


class SweepResponse(BaseModel):
    processed_count: int
    failed_user_ids: list[str]
    awarded_count: int
    duration_seconds: float
