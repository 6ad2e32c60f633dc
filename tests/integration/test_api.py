"""HTTP API tests for achievements, progress, notifications, and health."""

from __future__ import annotations

import pytest

COURSE_VIEWS = ["salsa-101", "bachata-101", "kizomba-101", "salsa-201", "tango-101"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_ready_without_redis(self, client):
        response = await client.get("/ready")
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"] == {"database": "ok", "catalog": "ok", "redis": "disabled"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "req-42"})
        assert response.headers["X-Request-Id"] == "req-42"


class TestCatalogEndpoints:
    @pytest.mark.asyncio
    async def test_list_achievements(self, client):
        response = await client.get("/api/v1/achievements")
        assert response.status_code == 200
        achievements = response.json()["achievements"]
        assert len(achievements) == 15
        assert achievements[0]["id"] == "welcome-dancer"
        assert achievements[0]["required_action"] == "signup"

    @pytest.mark.asyncio
    async def test_get_single_achievement(self, client):
        response = await client.get("/api/v1/achievements/multi-dancer")
        assert response.status_code == 200
        assert response.json()["required_count"] == 3

    @pytest.mark.asyncio
    async def test_unknown_achievement_404(self, client):
        response = await client.get("/api/v1/achievements/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"detail": "Achievement not found"}


class TestActivityEndpoint:
    @pytest.mark.asyncio
    async def test_record_and_award(self, client):
        response = await client.post(
            "/api/v1/users/web-1/activities",
            json={"type": "view_course", "details": {"courseId": "salsa-101"}},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "view_course"
        assert data["evaluation"] == "completed"
        assert [a["id"] for a in data["awarded"]] == ["welcome-dancer"]

    @pytest.mark.asyncio
    async def test_invalid_details_422(self, client):
        response = await client.post(
            "/api/v1/users/web-1/activities",
            json={"type": "view_course", "details": {}},
        )
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["errors"]

    @pytest.mark.asyncio
    async def test_malformed_type_422(self, client):
        response = await client.post("/api/v1/users/web-1/activities", json={"type": "View Course"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_full_journey(self, client):
        for course_id in COURSE_VIEWS:
            response = await client.post(
                "/api/v1/users/web-2/activities",
                json={"type": "view_course", "details": {"courseId": course_id}},
            )
            assert response.status_code == 201

        progress = (await client.get("/api/v1/users/web-2/progress")).json()
        assert progress["points"] == 105
        assert progress["level"] == 1
        assert progress["next_level_points"] == 200
        assert progress["points_to_next_level"] == 95
        assert sorted(progress["earned_achievement_ids"]) == ["course-explorer", "multi-dancer", "welcome-dancer"]

        earned = (await client.get("/api/v1/users/web-2/achievements")).json()
        assert earned["total_earned"] == 3
        assert earned["total_available"] == 15

        feed = (await client.get("/api/v1/users/web-2/notifications")).json()
        assert feed["total"] == 3
        badge_ids = [n["details"]["badgeId"] for n in feed["notifications"]]
        assert badge_ids.count("multi-dancer") == 1
        assert all(n["type"] == "badge_earned" for n in feed["notifications"])


class TestProgressEndpoint:
    @pytest.mark.asyncio
    async def test_unknown_user_zero_values(self, client):
        response = await client.get("/api/v1/users/ghost/progress")
        assert response.status_code == 200
        data = response.json()
        assert data["points"] == 0
        assert data["level"] == 1
        assert data["earned_achievement_ids"] == []

    @pytest.mark.asyncio
    async def test_unknown_user_no_achievements(self, client):
        data = (await client.get("/api/v1/users/ghost/achievements")).json()
        assert data["earned"] == []
        assert data["total_earned"] == 0


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_mark_read_flow(self, client):
        await client.post("/api/v1/users/web-3/activities", json={"type": "search_partners"})

        count = (await client.get("/api/v1/users/web-3/notifications/unread-count")).json()
        assert count["unread_count"] == 2

        feed = (await client.get("/api/v1/users/web-3/notifications")).json()
        first_id = feed["notifications"][0]["id"]
        response = await client.post(f"/api/v1/users/web-3/notifications/{first_id}/read")
        assert response.status_code == 200

        count = (await client.get("/api/v1/users/web-3/notifications/unread-count")).json()
        assert count["unread_count"] == 1

        response = await client.post("/api/v1/users/web-3/notifications/read-all")
        assert response.status_code == 200
        unread = (await client.get("/api/v1/users/web-3/notifications?unread_only=true")).json()
        assert unread["total"] == 0

    @pytest.mark.asyncio
    async def test_mark_missing_notification_404(self, client):
        response = await client.post("/api/v1/users/web-4/notifications/9999/read")
        assert response.status_code == 404


class TestSweepEndpoint:
    @pytest.mark.asyncio
    async def test_sweep(self, client):
        await client.post("/api/v1/users/web-5/activities", json={"type": "login"})
        response = await client.post("/api/v1/achievements/sweep")
        assert response.status_code == 200
        data = response.json()
        assert data["processed_count"] == 1
        assert data["failed_user_ids"] == []
        assert data["awarded_count"] == 0


class TestStoreOutage:
    @pytest.mark.asyncio
    async def test_activity_store_down_returns_503(self, client, monkeypatch):
        from sqlalchemy.exc import OperationalError

        from dancehub.achievements import engine as engine_module

        async def broken_record(db, user_id, action_type, details=None):
            raise OperationalError("INSERT", {}, Exception("connection refused"))

        monkeypatch.setattr(engine_module, "record_activity", broken_record)
        response = await client.post("/api/v1/users/web-6/activities", json={"type": "login"})
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"


class TestProgressSummary:
    @pytest.mark.asyncio
    async def test_lesson_totals(self, client):
        for _ in range(2):
            await client.post(
                "/api/v1/users/web-7/activities",
                json={"type": "complete_lesson", "details": {"courseId": "salsa-101", "totalLessons": 2}},
            )
        await client.post(
            "/api/v1/users/web-7/activities",
            json={"type": "complete_lesson", "details": {"courseId": "bachata-101"}},
        )

        data = (await client.get("/api/v1/users/web-7/progress")).json()
        assert data["completed_lessons"] == 3
        assert data["completed_courses"] == 1
        assert data["total_dance_hours"] == 3

    @pytest.mark.asyncio
    async def test_level_fields_agree_with_stored_level(self, client, db_session):
        from datetime import datetime, timezone

        from dancehub.achievements.activity import ensure_user
        from dancehub.db.models import UserProgress

        await ensure_user(db_session, "web-8")
        db_session.add(UserProgress(
            user_id="web-8", earned_achievement_ids=[], points=150, level=5, platform_stats={},
            updated_at=datetime.now(timezone.utc),
        ))
        await db_session.commit()

        data = (await client.get("/api/v1/users/web-8/progress")).json()
        assert data["level"] == 5
        assert data["next_level"] == 6
        assert data["next_level_points"] == 600
        assert data["points_to_next_level"] == 450
