"""
Pydantic schemas for provisional holds.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from turnolibre.schemas.booking import DATE_PATTERN
from turnolibre.schemas.court import TIME_PATTERN


class HoldCreate(BaseModel):
    court_id: int
    date: str = Field(..., pattern=DATE_PATTERN)
    time: str = Field(..., pattern=TIME_PATTERN)
    email: EmailStr
    user_id: Optional[int] = None


class HoldResendRequest(BaseModel):
    email: EmailStr


class HoldResponse(BaseModel):
    id: int
    court_id: int
    date: str
    time: str
    contact_email: str
    status: str
    expires_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class HoldCreatedResponse(BaseModel):
    message: str
    hold_id: int
    expires_at: datetime


class HoldConfirmedResponse(BaseModel):
    message: str
    hold_id: int
    booking_id: int


class MessageResponse(BaseModel):
    message: str
