"""
User service: registration, profile reads/updates and deletion.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.models.booking import Booking
from eventbook.models.user import User
from eventbook.schemas.user import UserCreate, UserUpdate
from eventbook.core.exceptions import Conflict, NotFound
from eventbook.core.logging import get_logger

logger = get_logger(__name__)

EMAIL_TAKEN = "Email already exists"
USER_HAS_BOOKINGS = "Cannot delete user with existing bookings"


async def _email_taken(db: AsyncSession, email: str, exclude_user_id=None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    return (await db.execute(query)).first() is not None


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user.
    Raises Conflict if the email is already registered.
    """
    if await _email_taken(db, user_data.email):
        logger.warning("user_create_failed", reason="email_exists", email=user_data.email)
        raise Conflict(EMAIL_TAKEN)

    user = User(name=user_data.name, email=user_data.email)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration with the same email
        await db.rollback()
        raise Conflict(EMAIL_TAKEN)
    await db.refresh(user)

    logger.info("user_created", user_id=user.id, email=user.email)
    return user


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("user", user_id)
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def update_user(db: AsyncSession, user_id: int, changes: UserUpdate) -> User:
    user = await get_user(db, user_id)
    data = changes.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in data and await _email_taken(db, data["email"], exclude_user_id=user_id):
        logger.warning("user_update_failed", reason="email_exists", user_id=user_id)
        raise Conflict(EMAIL_TAKEN)

    for field, value in data.items():
        setattr(user, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(EMAIL_TAKEN)
    await db.refresh(user)

    logger.info("user_updated", user_id=user_id, fields=sorted(data))
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Delete a user that holds no bookings.
    Raises NotFound for an unknown id, Conflict while bookings exist.
    """
    result = await db.execute(select(User).where(User.id == user_id).with_for_update())
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound("user", user_id)

    has_bookings = (await db.execute(select(Booking.id).where(Booking.user_id == user_id).limit(1))).first()
    if has_bookings is not None:
        logger.warning("user_delete_failed", reason="has_bookings", user_id=user_id)
        raise Conflict(USER_HAS_BOOKINGS)

    await db.delete(user)
    try:
        await db.commit()
    except IntegrityError:
        # A booking committed between the check and the delete
        await db.rollback()
        raise Conflict(USER_HAS_BOOKINGS)

    logger.info("user_deleted", user_id=user_id)
