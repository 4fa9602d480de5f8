"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    event_id: int
    user_id: int
    seats_booked: int = Field(..., gt=0)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    seats_booked: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingResponse):
    """Booking joined with the denormalized user and event fields."""

    user_name: Optional[str] = None
    user_email: Optional[str] = None
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
