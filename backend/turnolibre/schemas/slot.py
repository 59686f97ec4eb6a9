"""
Pydantic schemas for the weekly availability view.
"""

from typing import Optional
from pydantic import BaseModel


class SlotView(BaseModel):
    court_id: int
    court_name: str
    sport: str
    club: str
    date: str
    time: str
    price: float
    slot_minutes: int
    reserved_by: Optional[str] = None
    reserved_email: Optional[str] = None
    paid: bool = False
    real_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class WeekAvailability(BaseModel):
    week_start: str
    slots: list[SlotView]
    cached: bool = False
