# villa_booking/schemas/villa.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl

from villa_booking.db.enums import VillaStatus
from villa_booking.schemas.user import UserOut


class VillaOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    address: str
    city: str
    country: str
    price_per_night: Decimal
    max_guests: int
    bedrooms: int
    bathrooms: int
    amenities: List[str] = []
    images: List[str] = []
    status: str
    is_active: bool
    owner_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class VillaDetail(VillaOut):
    owner: UserOut


class VillaSummary(BaseModel):
    """Compact villa block embedded in bookings and services."""
    id: int
    title: str
    address: str
    city: str
    country: str
    owner_id: int

    model_config = {"from_attributes": True}


class VillaCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    address: str = Field(min_length=5, max_length=300)
    city: str = Field(min_length=2, max_length=100)
    country: str = Field(min_length=2, max_length=100)
    price_per_night: Decimal = Field(gt=0, le=10000)
    max_guests: int = Field(ge=1, le=50)
    bedrooms: int = Field(ge=1, le=20)
    bathrooms: int = Field(ge=1, le=20)
    amenities: List[str] = Field(default_factory=list, max_length=50)
    images: List[HttpUrl] = Field(default_factory=list, max_length=20)


class VillaUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    address: Optional[str] = Field(default=None, min_length=5, max_length=300)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    country: Optional[str] = Field(default=None, min_length=2, max_length=100)
    price_per_night: Optional[Decimal] = Field(default=None, gt=0, le=10000)
    max_guests: Optional[int] = Field(default=None, ge=1, le=50)
    bedrooms: Optional[int] = Field(default=None, ge=1, le=20)
    bathrooms: Optional[int] = Field(default=None, ge=1, le=20)
    amenities: Optional[List[str]] = Field(default=None, max_length=50)
    images: Optional[List[HttpUrl]] = Field(default=None, max_length=20)
    status: Optional[VillaStatus] = None
    is_active: Optional[bool] = None

