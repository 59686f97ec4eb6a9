"""
Weekly availability: the generated slot grid folded with persisted bookings.

This is a read-only view. It never writes bookings or holds; it only
reports, per generated slot, whether a booking row occupies it.

Matching rules for a slot and a booking:
  - same sport
  - booking.club equals the club's email or, for older rows, its display name
  - same court, compared as strings (rows store the court id as text)
  - same date and time literals
A matching row whose reserving-party fields are all null is a cancelled
slot and reads as vacant.
"""

import time
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import grid_build_latency
from turnolibre.models.booking import Booking
from turnolibre.models.club import Club
from turnolibre.models.court import Court
from turnolibre.services.schedule import WeekGrid, effective_slot_minutes, week_days

logger = get_logger(__name__)

SlotKey = tuple[str, str, str]


def index_bookings(bookings: Iterable[Booking]) -> dict[SlotKey, list[Booking]]:
    index: dict[SlotKey, list[Booking]] = defaultdict(list)
    for booking in bookings:
        index[(str(booking.court_id), booking.date, booking.time)].append(booking)
    return index


def find_slot_booking(
    index: dict[SlotKey, list[Booking]],
    court: Court,
    club_name: Optional[str],
    slot_date: str,
    slot_time: str,
) -> Optional[Booking]:
    club_identities = {court.club_email}
    if club_name:
        club_identities.add(club_name)

    for booking in index.get((str(court.id), slot_date, slot_time), ()):
        if booking.sport == court.sport and booking.club in club_identities:
            return booking
    return None


def build_week_view(
    courts: Iterable[Court],
    clubs_by_email: dict[str, Club],
    bookings: Iterable[Booking],
    reference: date,
) -> list[dict]:
    """Pure reconciliation of generated slots against booking rows."""
    index = index_bookings(bookings)
    view = []

    for court in courts:
        club = clubs_by_email.get(court.club_email)
        club_name = club.name if club else None

        for slot in WeekGrid(court, reference):
            booking = find_slot_booking(index, court, club_name, slot.date, slot.time)
            occupied = booking is not None and booking.is_occupied

            view.append({
                "court_id": court.id,
                "court_name": court.name,
                "sport": court.sport,
                "club": court.club_email,
                "date": slot.date,
                "time": slot.time,
                "price": slot.price,
                "slot_minutes": effective_slot_minutes(court),
                "reserved_by": booking.reserved_by if occupied else None,
                "reserved_email": booking.reserved_email if occupied else None,
                "paid": bool(booking.paid) if occupied else False,
                "real_id": booking.id if occupied else None,
                "latitude": club.latitude if club else None,
                "longitude": club.longitude if club else None,
            })

    return view


async def get_week_availability(
    db: AsyncSession,
    reference: date,
    club_email: Optional[str] = None,
    province: Optional[str] = None,
    locality: Optional[str] = None,
) -> list[dict]:
    """
    Availability for every court (optionally narrowed to clubs matching the
    filters) over the Monday-to-Sunday week containing `reference`.
    """
    started = time.perf_counter()

    courts_query = select(Court).order_by(Court.id)

    if club_email or province or locality:
        clubs_query = select(Club.email)
        if club_email:
            clubs_query = clubs_query.where(Club.email == club_email)
        if province:
            clubs_query = clubs_query.where(Club.province == province)
        if locality:
            clubs_query = clubs_query.where(Club.locality == locality)
        emails = list((await db.execute(clubs_query)).scalars().all())
        if not emails:
            return []
        courts_query = courts_query.where(Court.club_email.in_(emails))

    courts = list((await db.execute(courts_query)).scalars().all())
    if not courts:
        return []

    club_emails = {c.club_email for c in courts}
    clubs = (await db.execute(select(Club).where(Club.email.in_(club_emails)))).scalars().all()
    clubs_by_email = {club.email: club for club in clubs}

    dates = [d.isoformat() for d in week_days(reference)]
    court_ids = [str(c.id) for c in courts]
    bookings = (
        await db.execute(
            select(Booking).where(Booking.court_id.in_(court_ids), Booking.date.in_(dates))
        )
    ).scalars().all()

    view = build_week_view(courts, clubs_by_email, bookings, reference)

    elapsed = time.perf_counter() - started
    grid_build_latency.observe(elapsed)
    logger.info(
        "availability_built",
        week_start=dates[0],
        courts=len(courts),
        slots=len(view),
        duration_ms=round(elapsed * 1000, 2),
    )
    return view
