"""
Payment processor webhooks.

Both endpoints answer 200 for anything handled, including duplicates and
events that do not concern us. A 500 asks the processor to retry.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock, get_clock
from turnolibre.db.session import get_db
from turnolibre.services.cache_service import invalidate_slot_cache
from turnolibre.services.interfaces.payment_processor import PaymentProcessor
from turnolibre.services.payment_service import (
    PaymentTarget,
    WebhookOutcome,
    extract_payment_id,
    process_payment_notification,
)
from turnolibre.services.strategy_factory import get_payment_processor

router = APIRouter(prefix="/payments", tags=["Payments"])


async def _read_body(request: Request) -> Optional[dict]:
    body = await request.body()
    if not body:
        return None
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/webhook")
async def booking_webhook(
    request: Request,
    club: Optional[str] = Query(None, description="Club whose credential fetches the payment"),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    clock: Clock = Depends(get_clock),
):
    payment_id = extract_payment_id(request.query_params, await _read_body(request))
    outcome = await process_payment_notification(
        db, processor, clock, payment_id, PaymentTarget.BOOKING, club_email=club
    )
    if outcome is WebhookOutcome.APPLIED:
        await invalidate_slot_cache()
    return {"status": outcome.value}


@router.post("/featured-webhook")
async def featured_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    clock: Clock = Depends(get_clock),
):
    payment_id = extract_payment_id(request.query_params, await _read_body(request))
    outcome = await process_payment_notification(db, processor, clock, payment_id, PaymentTarget.CLUB)
    return {"status": outcome.value}
