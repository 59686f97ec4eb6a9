"""
Provisional reservation endpoints: create, resend, confirm, cancel.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock, get_clock
from turnolibre.db.session import get_db
from turnolibre.schemas.hold import (
    HoldConfirmedResponse,
    HoldCreate,
    HoldCreatedResponse,
    HoldResendRequest,
    HoldResponse,
)
from turnolibre.services import hold_service
from turnolibre.services.cache_service import invalidate_slot_cache
from turnolibre.services.interfaces.notification import NotificationSender
from turnolibre.services.strategy_factory import get_notification_sender

router = APIRouter(prefix="/holds", tags=["Holds"])


@router.post("", response_model=HoldCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_hold(
    data: HoldCreate,
    db: AsyncSession = Depends(get_db),
    sender: NotificationSender = Depends(get_notification_sender),
    clock: Clock = Depends(get_clock),
):
    """Reserve a slot provisionally and email the confirmation link."""
    hold = await hold_service.create_hold(
        db,
        sender,
        clock,
        court_id=data.court_id,
        date=data.date,
        time=data.time,
        email=data.email,
        user_id=data.user_id,
    )
    return HoldCreatedResponse(
        message="Reservation pending. Check your email to confirm it.",
        hold_id=hold.id,
        expires_at=hold.expires_at,
    )


@router.post("/resend", response_model=HoldCreatedResponse)
async def resend_latest_hold(
    data: HoldResendRequest,
    db: AsyncSession = Depends(get_db),
    sender: NotificationSender = Depends(get_notification_sender),
    clock: Clock = Depends(get_clock),
):
    """Resend the confirmation of the most recent pending hold of an email."""
    hold = await hold_service.resend_hold(db, sender, clock, email=data.email)
    return HoldCreatedResponse(message="Confirmation email resent", hold_id=hold.id, expires_at=hold.expires_at)


@router.post("/{hold_id}/resend", response_model=HoldCreatedResponse)
async def resend_hold(
    hold_id: int,
    db: AsyncSession = Depends(get_db),
    sender: NotificationSender = Depends(get_notification_sender),
    clock: Clock = Depends(get_clock),
):
    hold = await hold_service.resend_hold(db, sender, clock, hold_id=hold_id)
    return HoldCreatedResponse(message="Confirmation email resent", hold_id=hold.id, expires_at=hold.expires_at)


@router.get("/{hold_id}", response_model=HoldResponse)
async def get_hold(hold_id: int, db: AsyncSession = Depends(get_db)):
    return await hold_service.get_hold(db, hold_id)


@router.get("/{hold_id}/confirm/{code}", response_model=HoldConfirmedResponse)
async def confirm_hold(
    hold_id: int,
    code: str,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Target of the emailed link. Promotes the hold to a booking."""
    hold, booking = await hold_service.confirm_hold(db, clock, hold_id, code)
    await db.commit()
    await invalidate_slot_cache()
    return HoldConfirmedResponse(message="Reservation confirmed", hold_id=hold.id, booking_id=booking.id)


@router.patch("/{hold_id}/cancel", response_model=HoldResponse)
async def cancel_hold(hold_id: int, db: AsyncSession = Depends(get_db)):
    return await hold_service.cancel_hold(db, hold_id)
