# villa_booking/schemas/booking.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from villa_booking.db.enums import PaymentMethod
from villa_booking.schemas.service import ServiceSummary
from villa_booking.schemas.user import UserOut
from villa_booking.schemas.villa import VillaSummary


class SelectedService(BaseModel):
    service_id: int
    quantity: int = Field(default=1, ge=1, le=50)
    number_of_guests: Optional[int] = Field(default=None, ge=1)
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(default=None, pattern=r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
    special_requests: Optional[str] = Field(default=None, max_length=500)


class BookingCreate(BaseModel):
    villa_id: int
    check_in: date
    check_out: date
    total_adults: int = Field(ge=1, le=50)
    total_children: int = Field(default=0, ge=0, le=50)
    payment_method: PaymentMethod
    phone: str = Field(min_length=1)
    date_of_birth: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    selected_services: List[SelectedService] = Field(default_factory=list)


class BookingServicesUpdate(BaseModel):
    selected_services: List[SelectedService] = Field(min_length=1)


class BookingAction(BaseModel):
    """Optional reason for reject / cancel."""
    reason: Optional[str] = Field(default=None, max_length=500)


class BookingServiceOut(BaseModel):
    id: int
    service_id: int
    quantity: int
    number_of_guests: Optional[int] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    special_requests: Optional[str] = None
    unit_price: Decimal
    total_price: Decimal
    service: Optional[ServiceSummary] = None

    model_config = {"from_attributes": True}


class BookingOut(BaseModel):
    id: int
    villa_id: int
    guest_id: int
    check_in: date
    check_out: date
    total_adults: int
    total_children: int
    total_guests: int
    total_price: Decimal
    services_total: Decimal
    grand_total: Decimal
    payment_method: str
    is_paid: bool
    notes: Optional[str] = None
    status: str
    confirmed_by_id: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    villa: Optional[VillaSummary] = None
    guest: Optional[UserOut] = None
    booking_services: List[BookingServiceOut] = []

    # Pydantic v2 style – replaces orm_mode=True
    model_config = {"from_attributes": True}
