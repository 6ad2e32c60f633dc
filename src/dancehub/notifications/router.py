"""Notification feed endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dancehub.database import get_session
from dancehub.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from dancehub.notifications.service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/v1/users/{user_id}", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """List a user's notifications (paginated, newest first)."""
    notifications, total = await get_notifications(db, user_id, page, per_page, unread_only)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=str(n.id),
                type=n.type,
                title=n.title,
                message=n.message,
                details=n.details or {},
                timestamp=n.created_at,
                read=n.read,
            )
            for n in notifications
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    user_id: str,
    notification_id: int,
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """Mark a notification as read."""
    found = await mark_as_read(db, user_id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"detail": "Notification marked as read"}


@router.post("/notifications/read-all", status_code=200)
async def mark_all_read(user_id: str, db: AsyncSession = Depends(get_session)):  # noqa: B008
    count = await mark_all_as_read(db, user_id)
    return {"detail": f"Marked {count} notifications as read"}


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(user_id: str, db: AsyncSession = Depends(get_session)):  # noqa: B008
    count = await get_unread_count(db, user_id)
    return UnreadCountResponse(unread_count=count)
