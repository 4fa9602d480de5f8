"""
Booking endpoints. Creation and cancellation go through the reservation
engine; reads hit the database directly and are never cached.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api.deps import get_db, get_reservations
from eventbook.schemas.booking import BookingCreate, BookingResponse, BookingDetailResponse
from eventbook.services.booking_service import ReservationEngine, get_booking, list_bookings

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    reservations: ReservationEngine = Depends(get_reservations),
):
    """
    Reserve seats for an event.

    Concurrent requests for the same event are serialized on the event row.
    Returns 409 with the actual available count when the request does not fit.
    """
    return await reservations.create_booking(
        booking_data.event_id,
        booking_data.user_id,
        booking_data.seats_booked,
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking_endpoint(
    booking_id: int,
    reservations: ReservationEngine = Depends(get_reservations),
):
    """Cancel a booking and release its seats. Only allowed before the event."""
    await reservations.cancel_booking(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/", response_model=list[BookingDetailResponse])
async def list_bookings_endpoint(
    user_id: Optional[int] = Query(None),
    event_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await list_bookings(db, user_id=user_id, event_id=event_id)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking_endpoint(booking_id: int, db: AsyncSession = Depends(get_db)):
    return await get_booking(db, booking_id)
