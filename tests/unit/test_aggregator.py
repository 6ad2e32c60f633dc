"""Activity aggregator unit tests (pure summary building)."""

from __future__ import annotations

import pytest

from dancehub.achievements.aggregator import build_summary, infer_dance_type
from dancehub.db.models import ActivityEvent, CourseProgress


def _event(type_: str, **details) -> ActivityEvent:
    return ActivityEvent(user_id="u1", type=type_, details=details)


class TestInferDanceType:
    def test_known_styles(self):
        assert infer_dance_type("salsa-101") == "salsa"
        assert infer_dance_type("Intro-Bachata") == "bachata"
        assert infer_dance_type("kizomba_basics") == "kizomba"

    def test_unknown_is_other(self):
        assert infer_dance_type("tango-nights") == "other"


class TestBuildSummary:
    def test_empty_history(self):
        summary = build_summary([], [])
        assert summary.count("view_course") == 0
        assert summary.explored_dance_styles == frozenset()
        assert dict(summary.completed_lessons_by_dance_type) == {}

    def test_counts_by_type(self):
        events = [_event("view_course", course_id="salsa-1"), _event("view_course", course_id="salsa-2"), _event("login")]
        summary = build_summary(events, [])
        assert summary.count("view_course") == 2
        assert summary.count("login") == 1

    def test_course_views_across_styles(self):
        course_ids = ["salsa-101", "bachata-101", "kizomba-101", "salsa-201", "tango-101"]
        summary = build_summary([_event("view_course", course_id=c) for c in course_ids], [])
        assert summary.count("view_course") == 5
        assert summary.explored_dance_styles == {"salsa", "bachata", "kizomba", "other"}

    def test_explicit_course_type_wins(self):
        summary = build_summary([_event("view_course", course_id="beginners-1", course_type="Bachata")], [])
        assert summary.explored_dance_styles == {"bachata"}

    def test_view_without_course_id_adds_no_style(self):
        summary = build_summary([_event("view_course")], [])
        assert summary.count("view_course") == 1
        assert summary.explored_dance_styles == frozenset()

    def test_only_course_views_contribute_styles(self):
        summary = build_summary([_event("complete_lesson", course_id="salsa-101")], [])
        assert summary.explored_dance_styles == frozenset()

    def test_completed_lessons_by_dance_type(self):
        progress = [
            CourseProgress(user_id="u1", course_id="salsa-101", dance_type=None, completed_lessons=2),
            CourseProgress(user_id="u1", course_id="beginners", dance_type="Bachata", completed_lessons=1),
            CourseProgress(user_id="u1", course_id="kizomba-101", dance_type=None, completed_lessons=0),
        ]
        summary = build_summary([], progress)
        assert dict(summary.completed_lessons_by_dance_type) == {"salsa": True, "bachata": True}

    def test_platform_stats_carried(self):
        summary = build_summary([], [], {"totalLogins": 4})
        assert summary.stat("totalLogins") == 4
        assert summary.stat("referrals") == 0

    def test_summary_is_read_only(self):
        summary = build_summary([_event("login")], [])
        with pytest.raises(TypeError):
            summary.action_counts["login"] = 99  # type: ignore[index]
        assert summary.count("login") == 1

    def test_counters_never_below_logged_events(self):
        events = [_event("login"), _event("login"), _event("login"), _event("share_platform")]
        summary = build_summary(events, [], {"totalLogins": 1})
        assert summary.stat("totalLogins") == 3
        assert summary.stat("referrals") == 1

    def test_stored_counter_above_log_is_kept(self):
        summary = build_summary([_event("login")], [], {"totalLogins": 7})
        assert summary.stat("totalLogins") == 7
