"""
Notification reads and management. Rows are written only by the
notification consumer.
"""

from typing import Optional

from sqlalchemy import false, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.models.notification import Notification
from eventbook.core.clock import utcnow
from eventbook.core.exceptions import NotFound
from eventbook.core.logging import get_logger

logger = get_logger(__name__)


async def list_notifications(
    db: AsyncSession,
    read: Optional[bool] = None,
    booking_id: Optional[int] = None,
) -> list[Notification]:
    query = select(Notification)
    if read is not None:
        query = query.where(Notification.read == read)
    if booking_id is not None:
        query = query.where(Notification.booking_id == booking_id)

    result = await db.execute(query.order_by(Notification.created_at.desc(), Notification.id.desc()))
    return list(result.scalars().all())


async def get_notification(db: AsyncSession, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise NotFound("notification", notification_id)
    return notification


async def mark_read(db: AsyncSession, notification_id: int) -> Notification:
    """Mark as read. Re-marking keeps the first read_at."""
    notification = await get_notification(db, notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        await db.commit()
        await db.refresh(notification)
        logger.info("notification_read", notification_id=notification_id)
    return notification


async def delete_notification(db: AsyncSession, notification_id: int) -> None:
    notification = await get_notification(db, notification_id)
    await db.delete(notification)
    await db.commit()
    logger.info("notification_deleted", notification_id=notification_id)


async def list_user_notifications(
    db: AsyncSession,
    user_id: int,
    kind: Optional[str] = None,
    read: Optional[bool] = None,
    limit: int = 50,
) -> list[Notification]:
    """A user's notifications, newest first. Unknown users simply have none."""
    query = select(Notification).where(Notification.user_id == user_id)
    if kind is not None:
        query = query.where(Notification.kind == kind)
    if read is not None:
        query = query.where(Notification.read == read)

    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    """Mark every unread notification of a user as read; returns how many changed."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == false())
        .values(read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("notifications_read_all", user_id=user_id, updated_count=result.rowcount)
    return result.rowcount


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.read == false()
        )
    )
    return result.scalar_one()
