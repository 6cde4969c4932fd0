# villa_booking/schemas/service.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from villa_booking.db.enums import ServiceCategory, ServiceDifficulty


class ServiceSummary(BaseModel):
    id: int
    title: str
    category: str
    price: Decimal
    duration: str

    model_config = {"from_attributes": True}


class ServiceVilla(BaseModel):
    id: int
    title: str
    city: str
    country: str

    model_config = {"from_attributes": True}


class ServiceOut(ServiceSummary):
    description: str
    long_description: Optional[str] = None
    difficulty: Optional[str] = None
    max_group_size: Optional[int] = None
    highlights: List[str] = []
    included: List[str] = []
    image: Optional[str] = None
    is_active: bool
    is_featured: bool
    villa_id: Optional[int] = None
    villa: Optional[ServiceVilla] = None
    created_at: datetime
    updated_at: datetime


class ServiceCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    long_description: Optional[str] = Field(default=None, max_length=5000)
    category: ServiceCategory
    price: Decimal = Field(ge=0, le=10000)
    duration: str = Field(min_length=1, max_length=50)
    difficulty: Optional[ServiceDifficulty] = None
    max_group_size: Optional[int] = Field(default=None, ge=1, le=100)
    highlights: List[str] = Field(default_factory=list, max_length=20)
    included: List[str] = Field(default_factory=list, max_length=20)
    image: Optional[str] = Field(default=None, max_length=500)
    is_featured: bool = False
    villa_id: Optional[int] = None


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    long_description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[ServiceCategory] = None
    price: Optional[Decimal] = Field(default=None, ge=0, le=10000)
    duration: Optional[str] = Field(default=None, min_length=1, max_length=50)
    difficulty: Optional[ServiceDifficulty] = None
    max_group_size: Optional[int] = Field(default=None, ge=1, le=100)
    highlights: Optional[List[str]] = Field(default=None, max_length=20)
    included: Optional[List[str]] = Field(default=None, max_length=20)
    image: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    villa_id: Optional[int] = None
