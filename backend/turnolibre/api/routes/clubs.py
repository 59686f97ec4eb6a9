"""
Club endpoints: public listing, payment credential and promotion checkout.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.security import ensure_club_access, get_current_club_email
from turnolibre.db.session import get_db
from turnolibre.schemas.booking import CheckoutResponse
from turnolibre.schemas.club import AccessTokenUpdate, ClubPublic, FeaturedOffer
from turnolibre.schemas.hold import MessageResponse
from turnolibre.services import club_service
from turnolibre.services.interfaces.payment_processor import PaymentProcessor
from turnolibre.services.strategy_factory import get_payment_processor

router = APIRouter(prefix="/clubs", tags=["Clubs"])


@router.get("", response_model=list[ClubPublic])
async def list_clubs(
    province: Optional[str] = Query(None),
    locality: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Name substring"),
    db: AsyncSession = Depends(get_db),
):
    """Featured clubs come first."""
    return await club_service.list_clubs(db, province, locality, q)


@router.get("/featured-offer", response_model=FeaturedOffer)
async def featured_offer():
    return club_service.featured_offer()


@router.put("/{club_email}/access-token", response_model=MessageResponse)
async def set_access_token(
    club_email: str,
    data: AccessTokenUpdate,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    ensure_club_access(current_club, club_email)
    await club_service.set_access_token(db, club_email, data.access_token)
    return MessageResponse(message="Access token saved")


@router.post("/{club_email}/featured-checkout", response_model=CheckoutResponse)
async def featured_checkout(
    club_email: str,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    ensure_club_access(current_club, club_email)
    checkout_url = await club_service.create_featured_checkout(db, processor, club_email)
    return CheckoutResponse(checkout_url=checkout_url)
