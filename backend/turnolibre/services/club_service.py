"""
Club service: listing, payment credential and the featured promotion.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.clock import Clock
from turnolibre.core.config import get_settings
from turnolibre.core.exceptions import InternalError, NotFoundError
from turnolibre.core.logging import get_logger
from turnolibre.models.club import Club
from turnolibre.services.interfaces.payment_processor import (
    PaymentProcessor,
    PaymentProcessorError,
)

logger = get_logger(__name__)
settings = get_settings()


async def get_club(db: AsyncSession, email: str) -> Club:
    result = await db.execute(select(Club).where(Club.email == email))
    club = result.scalar_one_or_none()
    if not club:
        raise NotFoundError("Club not found")
    return club


async def list_clubs(
    db: AsyncSession,
    province: Optional[str] = None,
    locality: Optional[str] = None,
    name: Optional[str] = None,
) -> list[Club]:
    """Featured clubs first, then alphabetical."""
    query = select(Club).where(Club.is_active.is_(True))
    if province:
        query = query.where(Club.province == province)
    if locality:
        query = query.where(Club.locality == locality)
    if name:
        query = query.where(Club.name.ilike(f"%{name}%"))

    result = await db.execute(query.order_by(Club.featured.desc(), Club.name.asc()))
    return list(result.scalars().all())


async def set_access_token(db: AsyncSession, email: str, access_token: str) -> Club:
    club = await get_club(db, email)
    club.mp_access_token = access_token
    await db.flush()
    logger.info("club_access_token_updated", club=email)
    return club


def featured_offer() -> dict:
    return {"price": settings.FEATURED_PRICE, "days": settings.FEATURED_DAYS}


async def create_featured_checkout(db: AsyncSession, processor: PaymentProcessor, email: str) -> str:
    """Promotion payments go to the platform account, not the club's."""
    club = await get_club(db, email)

    items = [{
        "title": f'Feature club "{club.name}" for {settings.FEATURED_DAYS} days',
        "quantity": 1,
        "currency_id": settings.CURRENCY_ID,
        "unit_price": settings.FEATURED_PRICE,
    }]
    panel = f"{settings.FRONT_URL}/panel-club.html"
    try:
        return await processor.create_checkout(
            settings.MERCADOPAGO_ACCESS_TOKEN,
            items,
            external_reference=club.email,
            notification_url=f"{settings.PUBLIC_API_URL}/api/v1/payments/featured-webhook",
            back_urls={"success": panel, "failure": panel},
        )
    except PaymentProcessorError as e:
        logger.error("featured_checkout_failed", club=email, error=str(e))
        raise InternalError(f"Checkout creation failed: {e}")


def activate_featured(club: Club, clock: Clock, payment_id: str) -> None:
    club.featured = True
    club.featured_until = clock.now() + timedelta(days=settings.FEATURED_DAYS)
    club.last_transaction_id = payment_id


async def expire_featured_clubs(db: AsyncSession, clock: Clock) -> int:
    """Clear the featured flag of every club whose promotion has lapsed."""
    result = await db.execute(
        select(Club).where(Club.featured.is_(True), Club.featured_until < clock.now())
    )
    clubs = result.scalars().all()

    for club in clubs:
        club.featured = False
        club.featured_until = None
        logger.info("club_featured_expired", club=club.email, name=club.name)

    await db.flush()
    return len(clubs)
