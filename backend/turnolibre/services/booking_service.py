"""
Booking service: direct reservations, cancellation and payment state.

CONCURRENCY STRATEGY: Upsert on the slot's natural key
======================================================

Problem:
  Two users reserve the same (court, date, time) at the same moment.

Solution:
  There is exactly one bookings row per slot, guarded by the unique
  constraint uq_booking_slot (court_id, date, time).

  1. Look up the row for the slot
  2. If it exists, rewrite its reserving party (the "reclaim" path, which
     is also how a cancelled slot gets booked again)
  3. If it does not, insert it inside a savepoint; a concurrent insert
     that won the race makes ours fail the unique constraint -> Conflict

  What happens on step 2 for an occupied row is the slot contention
  policy (see services/interfaces/contention.py). The default is last
  write wins, so two requests racing on an existing row may both report
  success while only the later one persists. RejectPolicy closes that
  window for occupied rows.

  No in-process locks: the database constraint is the only arbiter.

Prices are never taken from the client. The stored price is recomputed
from the court's live configuration with the same resolver the grid uses.
"""

import datetime
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.config import get_settings
from turnolibre.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import record_booking_attempt
from turnolibre.models.booking import Booking
from turnolibre.models.club import Club
from turnolibre.models.court import Court
from turnolibre.models.hold import Hold, HoldStatus
from turnolibre.models.user import User
from turnolibre.services.interfaces.contention import SlotContentionPolicy
from turnolibre.services.interfaces.payment_processor import (
    PaymentProcessor,
    PaymentProcessorError,
)
from turnolibre.services.schedule import (
    parse_legacy_date,
    parse_slot_date,
    parse_slot_time,
    resolve_slot_price,
    slot_start,
)
from turnolibre.services.strategy_factory import get_contention_policy

logger = get_logger(__name__)
settings = get_settings()

PAYMENT_ONLINE = "online"
PAYMENT_CASH = "cash"


def _validate_slot(date: str, time: str) -> None:
    try:
        parse_slot_date(date)
    except ValueError:
        raise ValidationError("Date must be YYYY-MM-DD")
    try:
        parse_slot_time(time)
    except ValueError:
        raise ValidationError("Time must be HH:MM")


async def get_court_by_reference(db: AsyncSession, court_id) -> Court:
    try:
        pk = int(str(court_id).strip())
    except (TypeError, ValueError):
        raise NotFoundError(f"Court {court_id} not found")

    court = await db.get(Court, pk)
    if not court:
        raise NotFoundError(f"Court {court_id} not found")
    return court


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def find_club(db: AsyncSession, identity: str) -> Optional[Club]:
    """Resolve a booking's club field, which holds the email or, on old rows, the name."""
    result = await db.execute(
        select(Club).where(or_(Club.email == identity, Club.name == identity)).order_by(Club.id)
    )
    return result.scalars().first()


async def check_court_identity(db: AsyncSession, court: Court, sport: str, club: str) -> None:
    """
    The sport and club a caller names must be the court's own. Sport is
    compared case-insensitively; the club may be given by email or name.
    """
    if str(sport).strip().casefold() != court.sport.strip().casefold():
        raise ValidationError(f"Court {court.id} is not a {sport} court")

    identity = str(club).strip().lower()
    if identity == court.club_email.lower():
        return
    owner = await find_club(db, court.club_email)
    if owner is None or identity != owner.name.strip().lower():
        raise ValidationError(f"Court {court.id} does not belong to club {club}")


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalars().first()


async def reserve_slot(
    db: AsyncSession,
    *,
    sport: str,
    date: str,
    time: str,
    club: str,
    court_id,
    reserved_by: str,
    reserved_email: str,
    reserved_phone: Optional[str] = None,
    user_id: Optional[int] = None,
    policy: Optional[SlotContentionPolicy] = None,
    court: Optional[Court] = None,
) -> tuple[Booking, bool]:
    """
    Write the reserving party into the slot's booking row.

    The row is keyed by (court, date, time) alone and always stores the
    court's own sport and club email, whatever spelling the caller used.

    Returns:
        (booking, reclaimed) where reclaimed is True when an existing row
        was rewritten instead of inserted
    """
    missing = [
        name for name, value in (
            ("sport", sport), ("club", club), ("court_id", court_id),
            ("reserved_by", reserved_by), ("reserved_email", reserved_email),
        )
        if value is None or not str(value).strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    _validate_slot(date, time)

    if court is None:
        court = await get_court_by_reference(db, court_id)
    await check_court_identity(db, court, sport, club)
    sport = court.sport
    club = court.club_email

    price = resolve_slot_price(court, slot_start(date, time))
    if price is None or price <= 0:
        raise ValidationError("Court price must be greater than zero")

    user = await find_user_by_email(db, reserved_email)
    if user:
        user_id = user_id or user.id
        reserved_phone = reserved_phone or user.phone

    court_key = str(court.id)
    policy = policy or get_contention_policy()

    result = await db.execute(
        select(Booking).where(
            Booking.court_id == court_key,
            Booking.date == date,
            Booking.time == time,
        )
    )
    booking = result.scalar_one_or_none()

    if booking:
        try:
            policy.on_existing(booking)
        except ConflictError:
            record_booking_attempt("conflict")
            logger.warning("booking_rejected_occupied", booking_id=booking.id, date=date, time=time)
            raise

        was_occupied = booking.is_occupied
        # Older rows may carry the club's name or another sport spelling
        booking.sport = sport
        booking.club = club
        booking.reserved_by = reserved_by
        booking.reserved_email = reserved_email
        booking.reserved_phone = reserved_phone
        booking.user_id = user_id
        booking.paid = False
        booking.price = price
        await db.flush()
        await db.refresh(booking)

        record_booking_attempt("reclaimed")
        logger.info(
            "booking_reclaimed",
            booking_id=booking.id,
            court_id=court_key,
            date=date,
            time=time,
            overwrote_occupant=was_occupied,
            policy=policy.name,
        )
        return booking, True

    booking = Booking(
        sport=sport,
        date=date,
        time=time,
        club=club,
        court_id=court_key,
        price=price,
        reserved_by=reserved_by,
        reserved_email=reserved_email,
        reserved_phone=reserved_phone,
        user_id=user_id,
        paid=False,
    )
    try:
        async with db.begin_nested():
            db.add(booking)
            await db.flush()
    except IntegrityError:
        record_booking_attempt("conflict")
        logger.warning("booking_insert_conflict", court_id=court_key, date=date, time=time)
        raise ConflictError("This slot was just taken. Please pick another one.")

    await db.refresh(booking)
    record_booking_attempt("reserved")
    logger.info("booking_reserved", booking_id=booking.id, court_id=court_key, date=date, time=time, price=price)
    return booking, False


def _webhook_url(club_email: str) -> str:
    return f"{settings.PUBLIC_API_URL}/api/v1/payments/webhook?{urlencode({'club': club_email})}"


async def create_booking_checkout(processor: PaymentProcessor, club: Club, booking: Booking) -> str:
    """Checkout link paid into the club's own account."""
    if not club.mp_access_token:
        raise ConflictError("The club has not configured online payments")

    items = [{
        "title": f"Court booking - {booking.sport}",
        "quantity": 1,
        "currency_id": settings.CURRENCY_ID,
        "unit_price": booking.price,
    }]
    try:
        return await processor.create_checkout(
            club.mp_access_token,
            items,
            external_reference=str(booking.id),
            notification_url=_webhook_url(club.email),
        )
    except PaymentProcessorError as e:
        logger.error("booking_checkout_failed", booking_id=booking.id, error=str(e))
        raise InternalError(f"Checkout creation failed: {e}")


async def reserve(
    db: AsyncSession,
    processor: PaymentProcessor,
    *,
    sport: str,
    date: str,
    time: str,
    club: str,
    court_id: str,
    reserved_by: str,
    reserved_email: str,
    reserved_phone: Optional[str],
    payment_method: str,
    policy: Optional[SlotContentionPolicy] = None,
) -> tuple[Booking, Optional[str]]:
    """
    Direct reservation. Online payment needs the club's processor
    credential; that is checked before anything is written.

    Returns:
        (booking, checkout_url); checkout_url is None for cash payments
    """
    if payment_method not in (PAYMENT_ONLINE, PAYMENT_CASH):
        raise ValidationError("Payment method must be 'online' or 'cash'")

    court = await get_court_by_reference(db, court_id)
    await check_court_identity(db, court, sport, club)

    club_record = None
    if payment_method == PAYMENT_ONLINE:
        # Paid into the account of the club that owns the court
        club_record = await find_club(db, court.club_email)
        if not club_record or not club_record.mp_access_token:
            raise ConflictError("The club has not configured online payments")

    booking, _ = await reserve_slot(
        db,
        sport=sport,
        date=date,
        time=time,
        club=club,
        court_id=court_id,
        reserved_by=reserved_by,
        reserved_email=reserved_email,
        reserved_phone=reserved_phone,
        policy=policy,
        court=court,
    )

    checkout_url = None
    if club_record is not None:
        checkout_url = await create_booking_checkout(processor, club_record, booking)
    return booking, checkout_url


async def promote_hold(
    db: AsyncSession,
    hold: Hold,
    court: Court,
    policy: Optional[SlotContentionPolicy] = None,
) -> Booking:
    """Turn a confirmed hold into the slot's booking row."""
    booking, _ = await reserve_slot(
        db,
        sport=court.sport,
        date=hold.date,
        time=hold.time,
        club=court.club_email,
        court_id=court.id,
        reserved_by=hold.contact_email,
        reserved_email=hold.contact_email,
        user_id=hold.user_id,
        policy=policy,
        court=court,
    )
    return booking


async def payment_link(db: AsyncSession, processor: PaymentProcessor, booking_id: int) -> str:
    booking = await get_booking(db, booking_id)
    club = await find_club(db, booking.club)
    if not club:
        raise ConflictError("The club has not configured online payments")
    return await create_booking_checkout(processor, club, booking)


async def cancel_booking(db: AsyncSession, booking_id: int) -> Booking:
    """
    Free the slot. The row stays, keeping the slot guarded and its
    price and payment audit fields intact.
    """
    booking = await get_booking(db, booking_id)

    booking.reserved_by = None
    booking.reserved_email = None
    booking.reserved_phone = None
    booking.user_id = None
    booking.paid = False
    await db.flush()
    await db.refresh(booking)

    logger.info("booking_cancelled", booking_id=booking.id, date=booking.date, time=booking.time)
    return booking


async def mark_paid(db: AsyncSession, booking_id: int) -> Booking:
    """Operator override, independent of the payment webhook."""
    booking = await get_booking(db, booking_id)
    booking.paid = True
    await db.flush()
    await db.refresh(booking)

    logger.info("booking_marked_paid", booking_id=booking.id)
    return booking


async def booking_belongs_to(db: AsyncSession, booking: Booking, club_email: str) -> bool:
    if booking.club.lower() == club_email.lower():
        return True
    club = await find_club(db, booking.club)
    return club is not None and club.email.lower() == club_email.lower()


def booking_sort_key(booking: Booking):
    try:
        day = parse_legacy_date(booking.date)
    except ValueError:
        day = None
    hours, _, minutes = (booking.time or "00:00").partition(":")
    try:
        clock = (int(hours), int(minutes or 0))
    except ValueError:
        clock = (0, 0)
    # Unparseable dates sort last
    return (day is None, day or datetime.date.max, clock)


async def list_club_bookings(db: AsyncSession, club_email: str) -> list[dict]:
    """Occupied bookings of a club, soonest first."""
    result = await db.execute(select(Club).where(Club.email == club_email))
    club = result.scalar_one_or_none()
    if not club:
        raise NotFoundError("Club not found")

    result = await db.execute(
        select(Booking).where(
            or_(Booking.club == club.email, Booking.club == club.name),
            Booking.reserved_by.is_not(None),
        )
    )
    bookings = sorted(result.scalars().all(), key=booking_sort_key)

    courts = (await db.execute(select(Court).where(Court.club_email == club.email))).scalars().all()
    court_names = {str(c.id): c.name for c in courts}

    user_ids = {b.user_id for b in bookings if b.user_id}
    users = {}
    if user_ids:
        users = {
            u.id: u for u in (await db.execute(select(User).where(User.id.in_(user_ids)))).scalars().all()
        }

    rows = []
    for booking in bookings:
        user = users.get(booking.user_id)
        rows.append({
            "id": booking.id,
            "sport": booking.sport,
            "date": booking.date,
            "time": booking.time,
            "club": booking.club,
            "court_id": booking.court_id,
            "price": booking.price,
            "reserved_by": booking.reserved_by,
            "reserved_email": booking.reserved_email,
            "reserved_phone": booking.reserved_phone,
            "user_id": booking.user_id,
            "paid": booking.paid,
            "payment_id": booking.payment_id,
            "payment_method": booking.payment_method,
            "paid_at": booking.paid_at,
            "court_name": court_names.get(str(booking.court_id), "Unnamed court"),
            "user_first_name": user.first_name if user else None,
            "user_last_name": user.last_name if user else None,
            "user_phone": user.phone if user else None,
        })
    return rows


async def list_user_reservations(db: AsyncSession, email: str) -> list[dict]:
    """Confirmed bookings and pending holds of a contact email."""
    email = email.strip().lower()

    bookings = (
        await db.execute(select(Booking).where(func.lower(Booking.reserved_email) == email))
    ).scalars().all()
    holds = (
        await db.execute(
            select(Hold).where(
                func.lower(Hold.contact_email) == email,
                Hold.status == HoldStatus.PENDING.value,
            )
        )
    ).scalars().all()

    court_ids = {h.court_id for h in holds}
    courts = {}
    if court_ids:
        courts = {c.id: c for c in (await db.execute(select(Court).where(Court.id.in_(court_ids)))).scalars().all()}

    identities = {b.club for b in bookings} | {c.club_email for c in courts.values()}
    club_names = {}
    if identities:
        clubs = (
            await db.execute(select(Club).where(or_(Club.email.in_(identities), Club.name.in_(identities))))
        ).scalars().all()
        for club in clubs:
            club_names[club.email] = club.name
            club_names[club.name] = club.name

    rows = []
    for booking in bookings:
        rows.append({
            "kind": "CONFIRMED",
            "id": booking.id,
            "court_id": booking.court_id,
            "date": booking.date,
            "time": booking.time,
            "club_name": club_names.get(booking.club, "Unknown club"),
            "sport": booking.sport,
            "price": booking.price,
            "paid": booking.paid,
        })
    for hold in holds:
        court = courts.get(hold.court_id)
        rows.append({
            "kind": "PENDING",
            "id": hold.id,
            "court_id": str(hold.court_id),
            "date": hold.date,
            "time": hold.time,
            "club_name": club_names.get(court.club_email, "Unknown club") if court else "Unknown club",
            "sport": court.sport if court else None,
            "expires_at": hold.expires_at,
        })
    return rows
