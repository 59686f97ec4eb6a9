from turnolibre.schemas.court import CourtCreate, CourtUpdate, CourtResponse
from turnolibre.schemas.booking import (
    BookingCreate, BookingResponse, ReserveResponse, CheckoutResponse,
    UserReservation, ClubReservation,
)
from turnolibre.schemas.hold import (
    HoldCreate, HoldResendRequest, HoldResponse, HoldCreatedResponse,
    HoldConfirmedResponse, MessageResponse,
)
from turnolibre.schemas.slot import SlotView, WeekAvailability
from turnolibre.schemas.club import ClubPublic, AccessTokenUpdate, FeaturedOffer

__all__ = [
    "CourtCreate", "CourtUpdate", "CourtResponse",
    "BookingCreate", "BookingResponse", "ReserveResponse", "CheckoutResponse",
    "UserReservation", "ClubReservation",
    "HoldCreate", "HoldResendRequest", "HoldResponse", "HoldCreatedResponse",
    "HoldConfirmedResponse", "MessageResponse",
    "SlotView", "WeekAvailability",
    "ClubPublic", "AccessTokenUpdate", "FeaturedOffer",
]
