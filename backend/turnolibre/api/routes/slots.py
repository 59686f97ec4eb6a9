"""
Weekly availability endpoint with Redis caching.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock, get_clock
from turnolibre.core.exceptions import ValidationError
from turnolibre.core.logging import get_logger
from turnolibre.db.session import get_db
from turnolibre.schemas.slot import WeekAvailability
from turnolibre.services.availability_service import get_week_availability
from turnolibre.services.cache_service import get_cached_slots, set_cached_slots
from turnolibre.services.schedule import parse_slot_date, week_start

logger = get_logger(__name__)
router = APIRouter(prefix="/slots", tags=["Availability"])


@router.get("", response_model=WeekAvailability)
async def list_week_slots(
    date: Optional[str] = Query(None, description="Any day of the wanted week, YYYY-MM-DD"),
    club: Optional[str] = Query(None, description="Club email"),
    province: Optional[str] = Query(None),
    locality: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Every generated slot of the Monday-to-Sunday week containing `date`
    (today when omitted), marked with its occupancy.
    """
    if date:
        try:
            reference = parse_slot_date(date)
        except ValueError:
            raise ValidationError("Date must be YYYY-MM-DD")
    else:
        reference = clock.today()

    monday = week_start(reference).isoformat()

    cached = await get_cached_slots(monday, club, province, locality)
    if cached:
        cached["cached"] = True
        return WeekAvailability(**cached)

    slots = await get_week_availability(db, reference, club, province, locality)
    response_data = {"week_start": monday, "slots": slots, "cached": False}
    await set_cached_slots(monday, response_data, club, province, locality)
    return WeekAvailability(**response_data)
