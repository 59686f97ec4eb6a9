"""
Court configuration endpoints. Writes are restricted to the owning club.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from turnolibre.core.security import ensure_club_access, get_current_club_email
from turnolibre.db.session import get_db
from turnolibre.schemas.court import CourtCreate, CourtResponse, CourtUpdate
from turnolibre.schemas.hold import MessageResponse
from turnolibre.services import court_service
from turnolibre.services.cache_service import invalidate_slot_cache

router = APIRouter(prefix="/courts", tags=["Courts"])


@router.get("/club/{club_email}", response_model=list[CourtResponse])
async def list_club_courts(club_email: str, db: AsyncSession = Depends(get_db)):
    return await court_service.list_courts(db, club_email)


@router.post("", response_model=CourtResponse, status_code=status.HTTP_201_CREATED)
async def create_court(
    data: CourtCreate,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    ensure_club_access(current_club, data.club_email)
    court = await court_service.create_court(db, data)
    await db.commit()
    await invalidate_slot_cache()
    return court


@router.put("/{court_id}", response_model=CourtResponse)
async def update_court(
    court_id: int,
    data: CourtUpdate,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    existing = await court_service.get_court(db, court_id)
    ensure_club_access(current_club, existing.club_email)
    ensure_club_access(current_club, data.club_email)

    court = await court_service.update_court(db, court_id, data)
    await db.commit()
    await invalidate_slot_cache()
    return court


@router.delete("/{court_id}", response_model=MessageResponse)
async def delete_court(
    court_id: int,
    current_club: str = Depends(get_current_club_email),
    db: AsyncSession = Depends(get_db),
):
    existing = await court_service.get_court(db, court_id)
    ensure_club_access(current_club, existing.club_email)

    await court_service.delete_court(db, court_id)
    await db.commit()
    await invalidate_slot_cache()
    return MessageResponse(message="Court deleted")
