"""
Notification endpoints: the global collection, plus the per-user inbox under
/users/{user_id}/notifications.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_db
from eventbook.schemas.notification import MarkAllReadResponse, NotificationResponse, UnreadCountResponse
from eventbook.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])
user_router = APIRouter(prefix="/users/{user_id}/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    read: Optional[bool] = Query(None),
    booking_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.list_notifications(db, read=read, booking_id=booking_id)


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification_endpoint(notification_id: int, db: AsyncSession = Depends(get_db)):
    return await notification_service.get_notification(db, notification_id)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: int, db: AsyncSession = Depends(get_db)):
    return await notification_service.mark_read(db, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification_endpoint(notification_id: int, db: AsyncSession = Depends(get_db)):
    await notification_service.delete_notification(db, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@user_router.get("", response_model=list[NotificationResponse])
async def list_user_notifications_endpoint(
    user_id: int,
    kind: Optional[Literal["booking.created", "booking.cancelled"]] = Query(None, alias="type"),
    read: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """A user's notifications, newest first, optionally filtered by type and read state."""
    return await notification_service.list_user_notifications(
        db, user_id, kind=kind, read=read, limit=limit
    )


@user_router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    return {"unread_count": await notification_service.unread_count(db, user_id)}


@user_router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    updated = await notification_service.mark_all_read(db, user_id)
    return {"message": "All notifications marked as read", "updated_count": updated}
