# villa_booking/api/routers/notifications.py
"""
Admin endpoints to (re)send notifications by hand. Mounted twice:
email routes under /api/email, WhatsApp under /api/whatsapp.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import require_roles
from villa_booking.core.config import settings
from villa_booking.core.errors import NotFoundError
from villa_booking.core.responses import success_response
from villa_booking.db import crud_bookings
from villa_booking.db.enums import Role
from villa_booking.db.session import get_db
from villa_booking.schemas.notification import (
    BookingEmailRequest,
    WelcomeEmailRequest,
    WhatsAppBookingRequest,
)
from villa_booking.services import notifications

email_router = APIRouter()
whatsapp_router = APIRouter()


async def _notice(db: AsyncSession, booking_id: int) -> notifications.BookingNotice:
    booking = await crud_bookings.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return notifications.BookingNotice.from_booking(booking)


@email_router.post("/welcome")
async def send_welcome(
    body: WelcomeEmailRequest,
    current_user=Depends(require_roles(Role.ADMIN)),
):
    sent = await notifications.send_welcome_email(body.full_name, body.email)
    return success_response({"sent": sent, "email_enabled": settings.EMAIL_ENABLED}, "Welcome email processed")


@email_router.post("/booking")
async def send_booking_email(
    body: BookingEmailRequest,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    notice = await _notice(db, body.booking_id)
    results = await notifications.send_booking_emails(notice, body.event)
    return success_response(
        {"booking_id": body.booking_id, "event": body.event, "sent": results},
        "Booking emails processed",
    )


@whatsapp_router.post("/send-booking-notification")
async def send_booking_whatsapp(
    body: WhatsAppBookingRequest,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    notice = await _notice(db, body.booking_id)
    message_id = await notifications.send_booking_whatsapp(notice)
    return success_response(
        {"booking_id": body.booking_id, "message_id": message_id},
        "WhatsApp notification sent successfully",
    )
