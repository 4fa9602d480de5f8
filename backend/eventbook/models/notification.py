"""
Notification written by the notification consumer for each booking event.

Key design decisions:
- Unique constraint on (booking_id, kind) makes redelivered bus messages
  a no-op instead of a duplicate row
- booking_id and user_id carry no foreign key: the cancellation notice is
  written after the booking row is gone
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, UniqueConstraint, false, func

from eventbook.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    kind = Column(String(32), nullable=False)  # booking.created, booking.cancelled
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("booking_id", "kind", name="uq_notification_booking_kind"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, booking={self.booking_id}, user={self.user_id}, kind={self.kind}, read={self.read})>"
