"""
Pydantic schemas for clubs.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ClubPublic(BaseModel):
    name: str
    email: str
    province: Optional[str]
    locality: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    featured: bool
    featured_until: Optional[datetime]

    model_config = {"from_attributes": True}


class AccessTokenUpdate(BaseModel):
    access_token: str = Field(..., min_length=1, max_length=255)


class FeaturedOffer(BaseModel):
    price: float
    days: int
