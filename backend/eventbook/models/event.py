"""
Event model: the unit of seat inventory.

Key design decisions:
- Only total capacity is stored. Available seats are always derived from the
  bookings table, so there is no counter that can drift from the bookings.
- Reservations lock the event row (SELECT ... FOR UPDATE) to serialize
  concurrent bookings against the same event.
- Index on `event_date` for the ordered listing and the "still in the future" checks
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    total_seats = Column(Integer, nullable=False)

    # Relationships
    bookings = relationship("Booking", back_populates="event", lazy="raise", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("total_seats >= 0", name="check_total_seats_non_negative"),
        Index("ix_events_event_date", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, total={self.total_seats})>"
