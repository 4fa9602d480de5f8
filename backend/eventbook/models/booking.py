"""
Booking model representing a committed hold on an event's capacity.

Key design decisions:
- A row exists exactly as long as the seats are held; cancellation deletes it
- seats_booked allows multi-seat bookings in one transaction
- Several bookings per (user, event) are allowed
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship

from eventbook.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    seats_booked = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="bookings", lazy="raise")
    event = relationship("Event", back_populates="bookings", lazy="raise")

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="check_seats_booked_positive"),
        # Never reuse a deleted id: notifications are keyed on booking_id
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, seats={self.seats_booked})>"
