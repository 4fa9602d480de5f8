from eventbook.schemas.user import UserCreate, UserUpdate, UserResponse
from eventbook.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventListResponse, AvailabilityResponse,
)
from eventbook.schemas.booking import BookingCreate, BookingResponse, BookingDetailResponse
from eventbook.schemas.notification import NotificationResponse

__all__ = [
    "UserCreate", "UserUpdate", "UserResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse", "AvailabilityResponse",
    "BookingCreate", "BookingResponse", "BookingDetailResponse",
    "NotificationResponse",
]
