"""Notification creation and feed access.

Notifications are:
1. Persisted in the database (idempotent when a ``dedup_key`` is given)
2. Pushed to the user via Redis pub/sub (``ws:user:{user_id}``) for live feeds

The feed UI reads unread notifications and marks them read; nothing else
mutates a stored notification.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.db.models import Notification

logger = logging.getLogger(__name__)

VALID_TYPES = {"badge_earned", "level_up", "system"}


async def get_by_dedup_key(db: AsyncSession, dedup_key: str) -> Notification | None:
    result = await db.execute(select(Notification).where(Notification.dedup_key == dedup_key))
    return result.scalar_one_or_none()


async def create_notification(
    db: AsyncSession,
    user_id: str,
    type_: str,
    title: str,
    message: str = "",
    details: dict[str, Any] | None = None,
    dedup_key: str | None = None,
    redis: Any | None = None,
) -> Notification | None:
    """Persist a notification and push it.

    Returns None when a notification with the same ``dedup_key`` already
    exists, so callers can retry safely.
    """
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {VALID_TYPES}")

    if dedup_key is not None and await get_by_dedup_key(db, dedup_key) is not None:
        return None

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        details=details or {},
        dedup_key=dedup_key,
        read=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent creator won the dedup_key
        await db.rollback()
        return None

    await push_notification(redis, notification)
    return notification


async def push_notification(redis: Any | None, notification: Notification) -> None:
    """Publish a notification to the user's live channel. Failures are logged only."""
    if redis is None:
        return
    ws_payload = {
        "event": "notification",
        "data": {
            "id": str(notification.id),
            "type": notification.type,
            "title": notification.title,
            "message": notification.message,
            "details": notification.details,
            "timestamp": notification.created_at.isoformat() if notification.created_at else None,
            "read": False,
        },
    }
    try:
        await redis.publish(f"ws:user:{notification.user_id}", json.dumps(ws_payload))
    except Exception:
        logger.warning("Failed to push notification via WebSocket", exc_info=True)


async def get_notifications(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page
    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.read.is_(False))

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(*filters)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    notifications = list(result.scalars().all())
    return notifications, total


async def mark_as_read(db: AsyncSession, user_id: str, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    await db.commit()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
