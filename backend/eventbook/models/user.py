"""
User model. Referenced by bookings, never mutated by the reservation path.
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    # Relationships
    bookings = relationship("Booking", back_populates="user", lazy="raise", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
