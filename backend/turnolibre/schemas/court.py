"""
Pydantic schemas for court configuration.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from turnolibre.models.court import DEFAULT_SLOT_MINUTES

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
CLOSING_TIME_PATTERN = r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$"


class CourtCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sport: str = Field(..., min_length=1, max_length=40)
    price: float = Field(..., gt=0)
    open_time: str = Field(..., pattern=TIME_PATTERN)
    close_time: str = Field(..., pattern=CLOSING_TIME_PATTERN)
    enabled_days: list[str] = Field(default_factory=list)
    club_email: str = Field(..., min_length=1, max_length=255)
    slot_minutes: Optional[int] = Field(None, validate_default=True)
    night_from_hour: Optional[int] = Field(None, ge=0, le=23)
    night_price: Optional[float] = Field(None, ge=0)

    @field_validator("night_from_hour", "night_price", "slot_minutes", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("slot_minutes")
    @classmethod
    def default_slot_minutes(cls, value: Optional[int]) -> int:
        # Missing or non-positive durations fall back to one hour
        if not value or value <= 0:
            return DEFAULT_SLOT_MINUTES
        return value


class CourtUpdate(CourtCreate):
    pass


class CourtResponse(BaseModel):
    id: int
    name: str
    sport: str
    price: float
    open_time: str
    close_time: str
    enabled_days: list[str]
    club_email: str
    slot_minutes: int
    night_from_hour: Optional[int]
    night_price: Optional[float]
    created_at: datetime

    model_config = {"from_attributes": True}
