"""Activity store tests: event log and course progress writes."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from dancehub.achievements.activity import course_totals, fetch_course_progress, record_activity
from dancehub.db.models import ActivityEvent, CourseProgress


class TestLessonProgress:
    @pytest.mark.asyncio
    async def test_repeat_lessons_bump_one_row(self, db_session):
        await record_activity(db_session, "student-1", "complete_lesson", {"courseId": "salsa-101", "danceType": "Salsa"})
        await record_activity(db_session, "student-1", "complete_lesson", {"courseId": "salsa-101"})

        rows = await fetch_course_progress(db_session, "student-1")
        assert len(rows) == 1
        assert rows[0].completed_lessons == 2
        assert rows[0].dance_type == "salsa"

    @pytest.mark.asyncio
    async def test_total_lessons_only_grows(self, db_session):
        await record_activity(
            db_session, "student-2", "complete_lesson", {"courseId": "bachata-101", "totalLessons": 4}
        )
        await record_activity(db_session, "student-2", "complete_lesson", {"courseId": "bachata-101"})

        rows = await fetch_course_progress(db_session, "student-2")
        assert rows[0].total_lessons == 4
        assert rows[0].completed_lessons == 2

    @pytest.mark.asyncio
    async def test_concurrent_lessons_keep_every_increment(self, session_factory):
        async def complete() -> None:
            async with session_factory() as db:
                await record_activity(db, "student-3", "complete_lesson", {"courseId": "kizomba-101"})

        await asyncio.gather(*(complete() for _ in range(5)))

        async with session_factory() as db:
            rows = (await db.execute(
                select(CourseProgress).where(CourseProgress.user_id == "student-3")
            )).scalars().all()
            assert len(rows) == 1
            assert rows[0].completed_lessons == 5
            events = (await db.execute(
                select(ActivityEvent).where(ActivityEvent.user_id == "student-3")
            )).scalars().all()
            assert len(events) == 5


class TestCourseTotals:
    def test_empty(self):
        assert course_totals([]) == {"completed_lessons": 0, "completed_courses": 0, "total_dance_hours": 0}

    def test_finished_courses_counted(self):
        rows = [
            CourseProgress(user_id="u", course_id="salsa-101", completed_lessons=4, total_lessons=4),
            CourseProgress(user_id="u", course_id="bachata-101", completed_lessons=1, total_lessons=6),
            CourseProgress(user_id="u", course_id="kizomba-101", completed_lessons=2, total_lessons=0),
        ]
        assert course_totals(rows) == {"completed_lessons": 7, "completed_courses": 1, "total_dance_hours": 7}
