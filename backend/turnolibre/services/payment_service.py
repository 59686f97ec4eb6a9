"""
Payment reconciliation: applies processor notifications to bookings and
clubs at most once per payment id.

IDEMPOTENCY STRATEGY: Record first, act second
==============================================

  1. No payment id in the delivery -> acknowledge, do nothing
  2. Insert a PaymentEvent row for the payment id and COMMIT it.
     payment_events.payment_id is unique, so a redelivery (sequential or
     concurrent) finds the row or loses the insert -> duplicate, stop
  3. Fetch the payment from the processor and resolve its external
     reference to a booking or a club
  4. Apply the approval

Failures after step 2 reach the caller as InternalError (HTTP 500) so
the processor retries. The retry is a duplicate by then, so the side
effect of a delivery that failed halfway is never applied twice; it may
also never be applied at all until an operator steps in. That window is
accepted.

Rejected and cancelled payments change nothing. The slot stays as it is
and operators handle those by hand.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock
from turnolibre.core.config import get_settings
from turnolibre.core.exceptions import InternalError
from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import record_webhook
from turnolibre.models.booking import Booking
from turnolibre.models.club import Club
from turnolibre.models.payment_event import PaymentEvent
from turnolibre.services import club_service
from turnolibre.services.interfaces.payment_processor import PaymentInfo, PaymentProcessor

logger = get_logger(__name__)
settings = get_settings()

DEFAULT_PAYMENT_METHOD = "mercadopago"


class PaymentTarget(str, Enum):
    BOOKING = "booking"
    CLUB = "club"


class WebhookOutcome(str, Enum):
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    APPLIED = "applied"
    ALREADY_PAID = "already_paid"
    NOT_APPROVED = "not_approved"
    TARGET_MISSING = "target_missing"


def extract_payment_id(query_params, body: Optional[dict]) -> Optional[str]:
    """The processor sends the id as ?id=, ?data.id= or in the JSON body."""
    payment_id = query_params.get("id") or query_params.get("data.id")
    if not payment_id and isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict):
            payment_id = data.get("id")
    if payment_id is None or not str(payment_id).strip():
        return None
    return str(payment_id).strip()


async def record_payment_event(db: AsyncSession, clock: Clock, payment_id: str) -> bool:
    """
    Persist the idempotency marker.

    Returns:
        False when the payment id was already recorded
    """
    existing = await db.execute(select(PaymentEvent.id).where(PaymentEvent.payment_id == payment_id))
    if existing.scalar_one_or_none() is not None:
        return False

    try:
        async with db.begin_nested():
            db.add(PaymentEvent(payment_id=payment_id, processed_at=clock.now()))
            await db.flush()
    except IntegrityError:
        # A concurrent delivery of the same payment got there first
        return False

    await db.commit()
    return True


async def _resolve_booking(db: AsyncSession, payment: PaymentInfo) -> Optional[Booking]:
    booking = None
    reference = (payment.external_reference or "").strip()
    if reference.isdigit():
        booking = await db.get(Booking, int(reference))
    if booking is None:
        result = await db.execute(select(Booking).where(Booking.payment_id == payment.payment_id))
        booking = result.scalars().first()
    return booking


async def _apply_to_booking(db: AsyncSession, clock: Clock, payment: PaymentInfo) -> WebhookOutcome:
    booking = await _resolve_booking(db, payment)
    if booking is None:
        logger.warning("payment_booking_missing", payment_id=payment.payment_id, reference=payment.external_reference)
        return WebhookOutcome.TARGET_MISSING

    if booking.paid:
        return WebhookOutcome.ALREADY_PAID

    booking.paid = True
    booking.paid_at = clock.now()
    booking.payment_id = payment.payment_id
    booking.payment_method = payment.method or DEFAULT_PAYMENT_METHOD
    logger.info("booking_paid", booking_id=booking.id, payment_id=payment.payment_id, method=booking.payment_method)
    return WebhookOutcome.APPLIED


async def _apply_to_club(db: AsyncSession, clock: Clock, payment: PaymentInfo) -> WebhookOutcome:
    result = await db.execute(select(Club).where(Club.email == payment.external_reference))
    club = result.scalar_one_or_none()
    if club is None:
        logger.warning("payment_club_missing", payment_id=payment.payment_id, reference=payment.external_reference)
        return WebhookOutcome.TARGET_MISSING

    club_service.activate_featured(club, clock, payment.payment_id)
    logger.info("club_featured", club=club.email, featured_until=club.featured_until.isoformat(), payment_id=payment.payment_id)
    return WebhookOutcome.APPLIED


async def _credential_for(db: AsyncSession, target: PaymentTarget, club_email: Optional[str]) -> Optional[str]:
    """Booking payments land in the club's account; promotions in the platform's."""
    if target is PaymentTarget.BOOKING and club_email:
        result = await db.execute(select(Club.mp_access_token).where(Club.email == club_email))
        token = result.scalar_one_or_none()
        if token:
            return token
    return settings.MERCADOPAGO_ACCESS_TOKEN


async def process_payment_notification(
    db: AsyncSession,
    processor: PaymentProcessor,
    clock: Clock,
    payment_id: Optional[str],
    target: PaymentTarget,
    club_email: Optional[str] = None,
) -> WebhookOutcome:
    if not payment_id:
        record_webhook(target.value, WebhookOutcome.IGNORED.value)
        return WebhookOutcome.IGNORED

    if not await record_payment_event(db, clock, payment_id):
        record_webhook(target.value, WebhookOutcome.DUPLICATE.value)
        logger.info("payment_event_duplicate", payment_id=payment_id, target=target.value)
        return WebhookOutcome.DUPLICATE

    try:
        access_token = await _credential_for(db, target, club_email)
        payment = await processor.fetch_payment(access_token, payment_id)

        if not payment.external_reference:
            outcome = WebhookOutcome.IGNORED
        elif not payment.approved:
            outcome = WebhookOutcome.NOT_APPROVED
            logger.info("payment_not_approved", payment_id=payment_id, status=payment.status, target=target.value)
        elif target is PaymentTarget.BOOKING:
            outcome = await _apply_to_booking(db, clock, payment)
        else:
            outcome = await _apply_to_club(db, clock, payment)

        await db.commit()
    except Exception as e:
        await db.rollback()
        record_webhook(target.value, "error")
        logger.exception("payment_webhook_failed", payment_id=payment_id, target=target.value, error=str(e))
        raise InternalError(f"Payment {payment_id} could not be processed: {e}")

    record_webhook(target.value, outcome.value)
    return outcome
