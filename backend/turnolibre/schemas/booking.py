"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
SLOT_TIME_PATTERN = r"^\d{2}:\d{2}$"


class BookingCreate(BaseModel):
    sport: str = Field(..., min_length=1, max_length=40)
    date: str = Field(..., pattern=DATE_PATTERN)
    club: str = Field(..., min_length=1, max_length=100)
    time: str = Field(..., pattern=SLOT_TIME_PATTERN)
    court_id: str = Field(..., min_length=1)
    reserved_by: str = Field(..., min_length=1, max_length=100)
    reserved_email: EmailStr
    reserved_phone: Optional[str] = Field(None, max_length=50)
    payment_method: Literal["online", "cash"]
    # Accepted for compatibility, never trusted: the price is recomputed
    price: Optional[float] = Field(None, ge=0)


class BookingResponse(BaseModel):
    id: int
    sport: str
    date: str
    time: str
    club: str
    court_id: str
    price: float
    reserved_by: Optional[str]
    reserved_email: Optional[str]
    reserved_phone: Optional[str]
    user_id: Optional[int]
    paid: bool
    payment_id: Optional[str]
    payment_method: Optional[str]
    paid_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ReserveResponse(BaseModel):
    message: str
    booking: BookingResponse
    checkout_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    checkout_url: str


class UserReservation(BaseModel):
    kind: Literal["CONFIRMED", "PENDING"]
    id: int
    court_id: str
    date: str
    time: str
    club_name: str
    sport: Optional[str] = None
    price: Optional[float] = None
    paid: bool = False
    expires_at: Optional[datetime] = None


class ClubReservation(BookingResponse):
    court_name: str
    user_first_name: Optional[str] = None
    user_last_name: Optional[str] = None
    user_phone: Optional[str] = None
