"""
Hold service: provisional reservations confirmed by an emailed code.

State machine
=============

    PENDING --confirm--> CONFIRMED
    PENDING --cancel---> CANCELLED
    PENDING --sweep----> EXPIRED

CONFIRMED, CANCELLED and EXPIRED are terminal. Every precondition is
checked before a hold is touched, so a rejected operation leaves the
hold exactly as it was.

Expiry is enforced twice: confirm/resend compare against the clock
directly, and the periodic sweeper flips overdue PENDING holds to
EXPIRED in bulk. The sweep is best-effort and coarse (minutes), so a
hold past its expiry may still read PENDING for a while; it can no
longer be confirmed.

Notifications are sent after the state change and never undo it.
"""

import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock
from turnolibre.core.config import get_settings
from turnolibre.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import record_confirm_failure, record_hold_transition
from turnolibre.models.booking import Booking
from turnolibre.models.court import Court
from turnolibre.models.hold import Hold, HoldStatus
from turnolibre.services import booking_service
from turnolibre.services.interfaces.contention import RejectPolicy
from turnolibre.services.interfaces.notification import NotificationSender
from turnolibre.services.schedule import parse_slot_date, parse_slot_time

logger = get_logger(__name__)
settings = get_settings()

CONFIRMATION_SUBJECT = "Confirm your TurnoLibre reservation"


def generate_code() -> str:
    """Six ASCII digits, 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def _expiry_from(now):
    return now + timedelta(minutes=settings.HOLD_TTL_MINUTES)


def confirmation_link(hold: Hold) -> str:
    return f"{settings.FRONT_URL}/confirmar-reserva.html?id={hold.id}&code={hold.code}"


def _confirmation_html(hold: Hold, heading: str) -> str:
    link = confirmation_link(hold)
    return (
        f"<h2>{heading}</h2>"
        "<p>Confirm your reservation by following this link:</p>"
        f'<p><a href="{link}">{link}</a></p>'
        f"<p>The link expires in {settings.HOLD_TTL_MINUTES} minutes.</p>"
    )


async def _notify(sender: NotificationSender, hold: Hold, heading: str) -> bool:
    try:
        sent = await sender.send(hold.contact_email, CONFIRMATION_SUBJECT, _confirmation_html(hold, heading))
    except Exception as e:
        logger.error("hold_notification_failed", hold_id=hold.id, error=str(e))
        return False
    if not sent:
        logger.warning("hold_notification_not_sent", hold_id=hold.id)
    return sent


async def get_hold(db: AsyncSession, hold_id: int) -> Hold:
    hold = await db.get(Hold, hold_id)
    if not hold:
        raise NotFoundError("Reservation not found")
    return hold


async def create_hold(
    db: AsyncSession,
    sender: NotificationSender,
    clock: Clock,
    *,
    court_id: int,
    date: str,
    time: str,
    email: str,
    user_id: Optional[int] = None,
) -> Hold:
    if not court_id or not date or not time or not email or not str(email).strip():
        raise ValidationError("Missing required data: court, date, time and email")
    try:
        parse_slot_date(date)
        parse_slot_time(time)
    except ValueError:
        raise ValidationError("Date must be YYYY-MM-DD and time HH:MM")

    court = await db.get(Court, court_id)
    if not court:
        raise NotFoundError(f"Court {court_id} not found")

    now = clock.now()
    hold = Hold(
        court_id=court.id,
        date=date,
        time=time,
        user_id=user_id,
        contact_email=email.strip(),
        code=generate_code(),
        expires_at=_expiry_from(now),
        status=HoldStatus.PENDING.value,
        created_at=now,
    )
    db.add(hold)
    await db.flush()
    await db.refresh(hold)

    record_hold_transition("created")
    logger.info("hold_created", hold_id=hold.id, court_id=court.id, date=date, time=time)

    await _notify(sender, hold, "Reservation confirmation")
    return hold


async def _latest_pending_for_email(db: AsyncSession, email: str) -> Optional[Hold]:
    result = await db.execute(
        select(Hold)
        .where(Hold.contact_email == email, Hold.status == HoldStatus.PENDING.value)
        .order_by(Hold.created_at.desc(), Hold.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def resend_hold(
    db: AsyncSession,
    sender: NotificationSender,
    clock: Clock,
    *,
    hold_id: Optional[int] = None,
    email: Optional[str] = None,
) -> Hold:
    """
    Re-issue the confirmation email with a fresh code and a fresh expiry.
    An already expired hold cannot be revived: the user must start over.
    """
    if hold_id is not None:
        hold = await get_hold(db, hold_id)
        if hold.status != HoldStatus.PENDING.value:
            raise InvalidStateError("Only pending reservations can be resent")
    elif email:
        hold = await _latest_pending_for_email(db, email.strip())
        if not hold:
            raise NotFoundError("No pending reservations for this email")
    else:
        raise ValidationError("Missing email")

    now = clock.now()
    if now > hold.expires_at:
        raise ExpiredError("The previous link expired. Please book again.")

    hold.code = generate_code()
    hold.expires_at = _expiry_from(now)
    await db.flush()
    await db.refresh(hold)

    record_hold_transition("resent")
    logger.info("hold_resent", hold_id=hold.id)

    await _notify(sender, hold, "Reservation confirmation (resent)")
    return hold


async def confirm_hold(
    db: AsyncSession,
    clock: Clock,
    hold_id: int,
    code: str,
) -> tuple[Hold, Booking]:
    """
    Confirm a hold with its one-time code and promote it to a booking.

    The transition and the booking write happen in the same transaction;
    if the promotion fails the whole unit is rolled back and the hold
    stays PENDING.

    A hold never displaces an occupant: the slot was free when the code
    was sent, but someone may have confirmed or reserved it since. That
    case is a Conflict whatever the direct-reserve policy is. A slot whose
    booking was cancelled is vacant again and can be confirmed.
    """
    hold = await db.get(Hold, hold_id)
    if not hold:
        record_confirm_failure("not_found")
        raise NotFoundError("Reservation not found")
    if hold.status != HoldStatus.PENDING.value:
        record_confirm_failure("invalid_state")
        raise InvalidStateError("This reservation was already confirmed, cancelled or expired")
    if clock.now() > hold.expires_at:
        record_confirm_failure("expired")
        raise ExpiredError("The confirmation link has expired")
    if hold.code != str(code):
        record_confirm_failure("invalid_code")
        raise InvalidCodeError("Invalid confirmation code")

    court = await db.get(Court, hold.court_id)
    if not court:
        logger.error("hold_promotion_failed", hold_id=hold.id, reason="court_missing")
        raise NotFoundError("The court for this reservation no longer exists; the reservation was not confirmed")

    # Booking first: if promotion fails the hold has not been touched
    hold_ref = {"hold_id": hold.id, "court_id": court.id, "date": hold.date, "time": hold.time}
    try:
        booking = await booking_service.promote_hold(db, hold, court, policy=RejectPolicy())
    except ConflictError:
        record_confirm_failure("slot_taken")
        logger.warning("hold_confirm_conflict", **hold_ref)
        raise ConflictError("This slot was already booked by someone else")
    except Exception as e:
        logger.error("hold_promotion_failed", error=str(e), **hold_ref)
        raise

    hold.status = HoldStatus.CONFIRMED.value
    hold.code = None
    await db.flush()
    await db.refresh(hold)

    record_hold_transition("confirmed")
    logger.info("hold_confirmed", hold_id=hold.id, booking_id=booking.id, court_id=court.id)
    return hold, booking


async def cancel_hold(db: AsyncSession, hold_id: int) -> Hold:
    hold = await get_hold(db, hold_id)
    if hold.status != HoldStatus.PENDING.value:
        raise InvalidStateError("Only pending reservations can be cancelled")

    hold.status = HoldStatus.CANCELLED.value
    await db.flush()
    await db.refresh(hold)

    record_hold_transition("cancelled")
    logger.info("hold_cancelled", hold_id=hold.id)
    return hold


async def expire_stale_holds(db: AsyncSession, clock: Clock) -> int:
    """Flip every overdue PENDING hold to EXPIRED. Returns how many moved."""
    result = await db.execute(
        update(Hold)
        .where(Hold.status == HoldStatus.PENDING.value, Hold.expires_at < clock.now())
        .values(status=HoldStatus.EXPIRED.value)
        .execution_options(synchronize_session="fetch")
    )
    expired = result.rowcount or 0
    if expired:
        record_hold_transition("expired")
        logger.info("holds_expired", count=expired)
    return expired
