"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    event_date: datetime
    total_seats: int = Field(..., ge=0, le=1_000_000)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    event_date: Optional[datetime] = None
    total_seats: Optional[int] = Field(None, ge=0, le=1_000_000)


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    event_date: datetime
    total_seats: int
    available_seats: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    cached: bool = False


class AvailabilityResponse(BaseModel):
    event_id: int
    total_seats: int
    booked_seats: int
    available_seats: int
    cached: bool = False
