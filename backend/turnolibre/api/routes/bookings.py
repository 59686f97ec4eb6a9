"""
Booking endpoints: direct reservation, listings and operator actions.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.security import ensure_club_access, get_current_club_email
from turnolibre.db.session import get_db
from turnolibre.schemas.booking import (
    BookingCreate,
    BookingResponse,
    CheckoutResponse,
    ClubReservation,
    ReserveResponse,
    UserReservation,
)
from turnolibre.services import booking_service
from turnolibre.services.cache_service import invalidate_slot_cache
from turnolibre.services.interfaces.contention import SlotContentionPolicy
from turnolibre.services.interfaces.payment_processor import PaymentProcessor
from turnolibre.services.strategy_factory import get_contention_policy, get_payment_processor

router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _owned_booking(db: AsyncSession, booking_id: int, club_email: str):
    booking = await booking_service.get_booking(db, booking_id)
    if not await booking_service.booking_belongs_to(db, booking, club_email):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Booking belongs to another club")
    return booking


@router.post("", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
async def reserve(
    data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    policy: SlotContentionPolicy = Depends(get_contention_policy),
):
    """
    Reserve a slot directly. The stored price is recomputed from the
    court; a client-sent price is ignored. Online payment returns the
    checkout URL of the club's processor account.
    """
    booking, checkout_url = await booking_service.reserve(
        db,
        processor,
        sport=data.sport,
        date=data.date,
        time=data.time,
        club=data.club,
        court_id=data.court_id,
        reserved_by=data.reserved_by,
        reserved_email=data.reserved_email,
        reserved_phone=data.reserved_phone,
        payment_method=data.payment_method,
        policy=policy,
    )
    await db.commit()
    await invalidate_slot_cache()
    return ReserveResponse(
        message="Booking saved",
        booking=BookingResponse.model_validate(booking),
        checkout_url=checkout_url,
    )


@router.get("/user/{email}", response_model=list[UserReservation])
async def list_user_reservations(email: str, db: AsyncSession = Depends(get_db)):
    return await booking_service.list_user_reservations(db, email)


@router.get("/club/{club_email}", response_model=list[ClubReservation])
async def list_club_bookings(
    club_email: str,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    ensure_club_access(current_club, club_email)
    return await booking_service.list_club_bookings(db, club_email)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_db)):
    return await booking_service.get_booking(db, booking_id)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    """Free the slot; the row is kept."""
    await _owned_booking(db, booking_id, current_club)
    booking = await booking_service.cancel_booking(db, booking_id)
    await db.commit()
    await invalidate_slot_cache()
    return booking


@router.patch("/{booking_id}/mark-paid", response_model=BookingResponse)
async def mark_paid(
    booking_id: int,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    await _owned_booking(db, booking_id, current_club)
    booking = await booking_service.mark_paid(db, booking_id)
    await db.commit()
    await invalidate_slot_cache()
    return booking


@router.post("/{booking_id}/payment-link", response_model=CheckoutResponse)
async def payment_link(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    checkout_url = await booking_service.payment_link(db, processor, booking_id)
    return CheckoutResponse(checkout_url=checkout_url)
