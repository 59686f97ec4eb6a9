"""
Court service handling schedule configuration CRUD.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.exceptions import NotFoundError, ValidationError
from turnolibre.core.logging import get_logger
from turnolibre.models.club import Club
from turnolibre.models.court import Court
from turnolibre.schemas.court import CourtCreate
from turnolibre.services.schedule import parse_clock_time

logger = get_logger(__name__)


def _validate_hours(data: CourtCreate) -> None:
    try:
        opening = parse_clock_time(data.open_time)
        closing = parse_clock_time(data.close_time)
    except ValueError as e:
        raise ValidationError(str(e))
    if closing <= opening:
        raise ValidationError("Closing time must be later than opening time")


async def _ensure_club(db: AsyncSession, club_email: str) -> None:
    result = await db.execute(select(Club.id).where(Club.email == club_email))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Club not found")


async def get_court(db: AsyncSession, court_id: int) -> Court:
    court = await db.get(Court, court_id)
    if not court:
        raise NotFoundError(f"Court {court_id} not found")
    return court


async def list_courts(db: AsyncSession, club_email: str) -> list[Court]:
    result = await db.execute(
        select(Court).where(Court.club_email == club_email).order_by(Court.id)
    )
    return list(result.scalars().all())


async def create_court(db: AsyncSession, data: CourtCreate) -> Court:
    _validate_hours(data)
    await _ensure_club(db, data.club_email)

    court = Court(**data.model_dump())
    db.add(court)
    await db.flush()
    await db.refresh(court)

    logger.info("court_created", court_id=court.id, club=court.club_email, sport=court.sport)
    return court


async def update_court(db: AsyncSession, court_id: int, data: CourtCreate) -> Court:
    """Replace the court's configuration. Existing bookings keep their stored price."""
    court = await get_court(db, court_id)
    _validate_hours(data)
    await _ensure_club(db, data.club_email)

    for field, value in data.model_dump().items():
        setattr(court, field, value)
    await db.flush()
    await db.refresh(court)

    logger.info("court_updated", court_id=court.id)
    return court


async def delete_court(db: AsyncSession, court_id: int) -> None:
    court = await get_court(db, court_id)
    await db.delete(court)
    await db.flush()
    logger.info("court_deleted", court_id=court_id)
