from turnolibre.models.user import User
from turnolibre.models.club import Club
from turnolibre.models.court import Court
from turnolibre.models.booking import Booking
from turnolibre.models.hold import Hold, HoldStatus
from turnolibre.models.payment_event import PaymentEvent

__all__ = ["User", "Club", "Court", "Booking", "Hold", "HoldStatus", "PaymentEvent"]
