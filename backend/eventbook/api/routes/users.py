"""
User endpoints.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_db
from eventbook.schemas.user import UserCreate, UserUpdate, UserResponse
from eventbook.schemas.booking import BookingDetailResponse
from eventbook.services.user_service import create_user, delete_user, get_user, list_users, update_user
from eventbook.services.booking_service import list_user_bookings

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a user. Returns 409 if the email is taken."""
    return await create_user(db, user_data)


@router.get("/", response_model=list[UserResponse])
async def list_users_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_users(db)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    return await get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user_endpoint(user_id: int, changes: UserUpdate, db: AsyncSession = Depends(get_db)):
    return await update_user(db, user_id, changes)


@router.get("/{user_id}/bookings", response_model=list[BookingDetailResponse])
async def list_user_bookings_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    """A user's bookings, soonest event first."""
    return await list_user_bookings(db, user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_endpoint(user_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a user. Returns 409 while the user still holds bookings."""
    await delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
