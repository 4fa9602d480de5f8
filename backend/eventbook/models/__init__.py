from eventbook.models.user import User
from eventbook.models.event import Event
from eventbook.models.booking import Booking
from eventbook.models.notification import Notification

__all__ = ["User", "Event", "Booking", "Notification"]
