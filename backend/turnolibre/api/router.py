"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from turnolibre.api.routes import bookings, clubs, courts, holds, payments, slots

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(slots.router)
api_router.include_router(holds.router)
api_router.include_router(bookings.router)
api_router.include_router(courts.router)
api_router.include_router(clubs.router)
api_router.include_router(payments.router)
