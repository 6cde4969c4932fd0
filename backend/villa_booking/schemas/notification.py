# villa_booking/schemas/notification.py
from pydantic import BaseModel, EmailStr, Field

from villa_booking.db.enums import BookingEvent


class WelcomeEmailRequest(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr


class BookingEmailRequest(BaseModel):
    booking_id: int
    event: BookingEvent


class WhatsAppBookingRequest(BaseModel):
    booking_id: int
