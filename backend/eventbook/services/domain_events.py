"""
Domain events published after a booking mutation commits.

The payload is a snapshot captured inside the committing transaction, with
user and event fields denormalized, so subscribers never query back.
"""

from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from eventbook.core.clock import utcnow

BOOKING_CREATED = "booking.created"
BOOKING_CANCELLED = "booking.cancelled"
BOOKING_SUBJECTS = (BOOKING_CREATED, BOOKING_CANCELLED)

# Ids and counts must fit a signed 64-bit column
MAX_ROW_INT = 2**63


class BookingEventPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    booking_id: int = Field(..., gt=0, lt=MAX_ROW_INT)
    user_id: int = Field(..., gt=0, lt=MAX_ROW_INT)
    user_name: str
    user_email: str
    event_id: int = Field(..., gt=0, lt=MAX_ROW_INT)
    event_title: str
    seats: int = Field(..., gt=0, lt=MAX_ROW_INT)  # booked for created, released for cancelled
    occurred_at: datetime = Field(default_factory=utcnow)


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["booking.created", "booking.cancelled"]
    payload: BookingEventPayload

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "DomainEvent":
        """Raises pydantic.ValidationError on malformed input."""
        return cls.model_validate_json(raw)
