"""Notification service and badge emitter tests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from dancehub.achievements.catalog import get_achievement, list_achievements
from dancehub.achievements.notifier import (
    badge_dedup_key,
    emit_badge_notifications,
    pending_badge_notifications,
)
from dancehub.notifications.service import (
    create_notification,
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)


class TestCreateNotification:
    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, db_session, user_id):
        with pytest.raises(ValueError):
            await create_notification(db_session, user_id, "party", title="Hi")

    @pytest.mark.asyncio
    async def test_dedup_key_makes_create_idempotent(self, db_session, user_id):
        first = await create_notification(db_session, user_id, "system", title="Hi", dedup_key="welcome:1")
        second = await create_notification(db_session, user_id, "system", title="Hi", dedup_key="welcome:1")
        assert first is not None
        assert second is None
        _, total = await get_notifications(db_session, user_id)
        assert total == 1

    @pytest.mark.asyncio
    async def test_push_published_to_user_channel(self, db_session, user_id):
        redis = AsyncMock()
        await create_notification(db_session, user_id, "system", title="Hi", message="there", redis=redis)
        channel, payload = redis.publish.await_args.args
        assert channel == f"ws:user:{user_id}"
        assert json.loads(payload)["data"]["title"] == "Hi"

    @pytest.mark.asyncio
    async def test_push_failure_does_not_lose_notification(self, db_session, user_id):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        created = await create_notification(db_session, user_id, "system", title="Hi", redis=redis)
        assert created is not None
        assert await get_unread_count(db_session, user_id) == 1


class TestFeed:
    @pytest.mark.asyncio
    async def test_mark_read(self, db_session, user_id):
        n1 = await create_notification(db_session, user_id, "system", title="One")
        await create_notification(db_session, user_id, "system", title="Two")

        assert await mark_as_read(db_session, user_id, n1.id) is True
        assert await get_unread_count(db_session, user_id) == 1
        unread, total = await get_notifications(db_session, user_id, unread_only=True)
        assert total == 1
        assert [n.title for n in unread] == ["Two"]

    @pytest.mark.asyncio
    async def test_mark_read_other_user_not_found(self, db_session, user_id):
        n1 = await create_notification(db_session, user_id, "system", title="One")
        assert await mark_as_read(db_session, "someone-else", n1.id) is False

    @pytest.mark.asyncio
    async def test_mark_all_read(self, db_session, user_id):
        for title in ("One", "Two", "Three"):
            await create_notification(db_session, user_id, "system", title=title)
        assert await mark_all_as_read(db_session, user_id) == 3
        assert await get_unread_count(db_session, user_id) == 0

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, user_id):
        for i in range(5):
            await create_notification(db_session, user_id, "system", title=f"N{i}")
        page, total = await get_notifications(db_session, user_id, page=2, per_page=2)
        assert total == 5
        assert len(page) == 2


class TestBadgeNotifications:
    @pytest.mark.asyncio
    async def test_one_notification_per_achievement(self, db_session, user_id):
        welcome = await get_achievement(db_session, "welcome-dancer")

        first = await emit_badge_notifications(db_session, None, user_id, [welcome])
        again = await emit_badge_notifications(db_session, None, user_id, [welcome])

        assert len(first) == 1
        assert again == []
        notifications, total = await get_notifications(db_session, user_id)
        assert total == 1
        assert notifications[0].type == "badge_earned"
        assert notifications[0].dedup_key == badge_dedup_key(user_id, "welcome-dancer")
        assert notifications[0].details == {
            "badgeId": "welcome-dancer",
            "badgeName": "Welcome Dancer",
            "iconUrl": "/assets/images/badge1.jpg",
            "points": 10,
        }

    @pytest.mark.asyncio
    async def test_pending_lists_only_undelivered(self, db_session, user_id):
        catalog = await list_achievements(db_session)
        welcome = await get_achievement(db_session, "welcome-dancer")
        await emit_badge_notifications(db_session, None, user_id, [welcome])

        pending = await pending_badge_notifications(
            db_session, user_id, ["welcome-dancer", "course-explorer"], catalog
        )
        assert [d.id for d in pending] == ["course-explorer"]

    @pytest.mark.asyncio
    async def test_pending_empty_without_earned(self, db_session, user_id):
        assert await pending_badge_notifications(db_session, user_id, [], []) == []
