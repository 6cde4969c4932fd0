"""
Booking lifecycle: create, confirm, reject, cancel, complete, plus the
service-line and payment edits and the nightly auto-completion sweep.

Every state change runs inside a single session transaction. Creation and
confirmation lock the villa row first so two requests for the same villa
serialise on the availability check.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.errors import (
    BadRequestError,
    BookingStateError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from villa_booking.db import crud_bookings, crud_services, crud_villas
from villa_booking.db.crud_users import validate_date_of_birth, validate_phone
from villa_booking.db.enums import BookingStatus, Role, VillaStatus
from villa_booking.db.models import Booking, BookingService, User, Villa, utcnow
from villa_booking.services import booking_rules

logger = logging.getLogger(__name__)


# ---------------------------
# Permissions
# ---------------------------

def is_villa_owner(user: User, booking: Booking) -> bool:
    return booking.villa is not None and booking.villa.owner_id == user.id


def can_view(user: User, booking: Booking) -> bool:
    return (
        user.role == Role.ADMIN.value
        or booking.guest_id == user.id
        or is_villa_owner(user, booking)
    )


def can_manage(user: User, booking: Booking) -> bool:
    """Owner of the booked villa, or an admin."""
    return user.role == Role.ADMIN.value or is_villa_owner(user, booking)


async def _load(db: AsyncSession, booking_id: int) -> Booking:
    booking = await crud_bookings.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def get_booking_for_user(db: AsyncSession, booking_id: int, user: User) -> Booking:
    booking = await _load(db, booking_id)
    if not can_view(user, booking):
        raise ForbiddenError("Access denied: You can only view your own bookings")
    return booking


# ---------------------------
# Service lines
# ---------------------------

async def _build_service_lines(
    db: AsyncSession, villa_id: int, selections: Iterable[Any]
) -> List[BookingService]:
    """
    selections: objects with service_id, quantity, number_of_guests,
    scheduled_date, scheduled_time, special_requests.
    Prices are taken from the service row at booking time.
    """
    selections = list(selections or [])
    services = await crud_services.get_services_by_ids(db, [s.service_id for s in selections])

    lines = []
    for selection in selections:
        service = services.get(selection.service_id)
        if service is None or not service.is_active:
            raise BadRequestError(f"Service {selection.service_id} not found or inactive")
        if service.villa_id is not None and service.villa_id != villa_id:
            raise BadRequestError(f"Service {service.title} is not offered for this villa")

        quantity = selection.quantity or 1
        if not 1 <= quantity <= 50:
            raise BadRequestError("Service quantity must be between 1 and 50")

        unit_price = booking_rules.to_money(service.price)
        lines.append(
            BookingService(
                service_id=service.id,
                quantity=quantity,
                number_of_guests=selection.number_of_guests,
                scheduled_date=selection.scheduled_date,
                scheduled_time=selection.scheduled_time,
                special_requests=selection.special_requests,
                unit_price=unit_price,
                total_price=booking_rules.calculate_line_total(unit_price, quantity),
            )
        )
    return lines


def _services_total(lines: Iterable[BookingService]) -> Decimal:
    return booking_rules.to_money(sum((Decimal(str(line.total_price)) for line in lines), Decimal("0")))


# ---------------------------
# Create
# ---------------------------

async def create_booking(
    db: AsyncSession,
    guest: User,
    payload,
    today: Optional[date] = None,
) -> Booking:
    """
    payload: BookingCreate (villa_id, check_in, check_out, total_adults,
    total_children, payment_method, phone, date_of_birth, notes,
    selected_services).
    """
    today = today or date.today()

    error = booking_rules.validate_booking_dates(payload.check_in, payload.check_out, today=today)
    if error:
        raise BadRequestError(error, code="INVALID_BOOKING_DATES")

    # the booker's profile is updated with the contact details of the request
    if payload.phone:
        guest.phone = validate_phone(payload.phone)
    if payload.date_of_birth:
        guest.date_of_birth = validate_date_of_birth(payload.date_of_birth)
    if not guest.date_of_birth:
        raise BadRequestError("Date of birth is required to make a booking")

    villa = await crud_villas.get_villa(db, payload.villa_id, for_update=True)
    if not villa:
        raise NotFoundError("Villa not found")
    if not villa.is_active or villa.status != VillaStatus.AVAILABLE.value:
        raise BadRequestError("Villa is not available for booking", code="VILLA_UNAVAILABLE")

    total_children = payload.total_children or 0
    total_guests = payload.total_adults + total_children
    if total_guests > villa.max_guests:
        raise BadRequestError(f"Maximum {villa.max_guests} guests allowed")

    if not await crud_bookings.is_villa_available(
        db, villa.id, payload.check_in, payload.check_out, for_update=True
    ):
        raise ConflictError("Villa is not available for the selected dates", code="DATES_UNAVAILABLE")

    lines = await _build_service_lines(db, villa.id, payload.selected_services)
    total_price = booking_rules.calculate_total_price(villa.price_per_night, payload.check_in, payload.check_out)
    services_total = _services_total(lines)

    booking = Booking(
        villa_id=villa.id,
        guest_id=guest.id,
        check_in=payload.check_in,
        check_out=payload.check_out,
        total_adults=payload.total_adults,
        total_children=total_children,
        total_guests=total_guests,
        total_price=total_price,
        services_total=services_total,
        grand_total=booking_rules.calculate_grand_total(total_price, services_total),
        payment_method=payload.payment_method.value,
        notes=payload.notes,
        status=BookingStatus.PENDING.value,
        booking_services=lines,
    )
    db.add(guest)
    db.add(booking)
    await db.commit()

    logger.info(
        "booking %s created: villa=%s guest=%s %s..%s total=%s",
        booking.id, villa.id, guest.id, booking.check_in, booking.check_out, booking.grand_total,
    )
    return await crud_bookings.get_booking(db, booking.id)


# ---------------------------
# Transitions
# ---------------------------

async def confirm_booking(db: AsyncSession, booking_id: int, actor: User) -> Booking:
    booking = await _load(db, booking_id)
    if not can_manage(actor, booking):
        raise ForbiddenError("Only the villa owner or an admin can confirm this booking")
    if not booking_rules.is_confirmable(booking.status):
        raise BookingStateError(f"Cannot confirm booking with status: {booking.status}")

    await crud_villas.get_villa(db, booking.villa_id, for_update=True)
    available = await crud_bookings.is_villa_available(
        db, booking.villa_id, booking.check_in, booking.check_out,
        exclude_booking_id=booking.id, for_update=True,
    )
    if not available:
        await db.rollback()
        raise ConflictError("Villa is no longer available for the selected dates", code="DATES_UNAVAILABLE")

    booking.status = BookingStatus.CONFIRMED.value
    booking.confirmed_by_id = actor.id
    booking.confirmed_at = utcnow()
    db.add(booking)
    await db.commit()
    logger.info("booking %s confirmed by user %s", booking.id, actor.id)
    return await crud_bookings.get_booking(db, booking.id)


async def reject_booking(
    db: AsyncSession, booking_id: int, actor: User, reason: Optional[str] = None
) -> Booking:
    booking = await _load(db, booking_id)
    if not can_manage(actor, booking):
        raise ForbiddenError("Only the villa owner or an admin can reject this booking")
    if not booking_rules.is_rejectable(booking.status):
        raise BookingStateError(f"Cannot reject booking with status: {booking.status}")

    booking.status = BookingStatus.REJECTED.value
    booking.rejected_at = utcnow()
    booking.rejection_reason = reason
    db.add(booking)
    await db.commit()
    logger.info("booking %s rejected by user %s", booking.id, actor.id)
    return await crud_bookings.get_booking(db, booking.id)


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    actor: User,
    reason: Optional[str] = None,
    today: Optional[date] = None,
) -> Booking:
    today = today or date.today()
    booking = await _load(db, booking_id)
    if not can_view(actor, booking):
        raise ForbiddenError("Access denied: You can only cancel your own bookings")
    if booking.status not in booking_rules.CANCELLABLE_STATUSES:
        raise BookingStateError(f"Cannot cancel booking with status: {booking.status}")
    if not booking_rules.is_before_check_in(booking.check_in, today=today):
        raise BookingStateError("Cannot cancel booking after check-in date")

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_by_id = actor.id
    booking.cancelled_at = utcnow()
    booking.cancellation_reason = reason
    db.add(booking)
    await db.commit()
    logger.info("booking %s cancelled by user %s", booking.id, actor.id)
    return await crud_bookings.get_booking(db, booking.id)


async def complete_booking(db: AsyncSession, booking_id: int, today: Optional[date] = None) -> Booking:
    today = today or date.today()
    booking = await _load(db, booking_id)
    if booking.status != BookingStatus.CONFIRMED.value:
        raise BookingStateError(f"Cannot complete booking with status: {booking.status}")
    if not booking_rules.is_completable(booking.status, booking.check_out, today=today):
        raise BookingStateError("Cannot complete booking before check-out date")

    booking.status = BookingStatus.COMPLETED.value
    booking.completed_at = utcnow()
    db.add(booking)
    await db.commit()
    logger.info("booking %s completed", booking.id)
    return await crud_bookings.get_booking(db, booking.id)


# ---------------------------
# Edits
# ---------------------------

async def update_booking_services(
    db: AsyncSession, booking_id: int, actor: User, selections: Iterable[Any]
) -> Booking:
    """
    Replace the booking's service lines and recompute the totals.
    """
    booking = await _load(db, booking_id)
    if not can_view(actor, booking):
        raise ForbiddenError("Access denied: You can only modify your own bookings")
    if booking.status not in booking_rules.CANCELLABLE_STATUSES:
        raise BookingStateError(f"Cannot modify services for booking with status: {booking.status}")

    lines = await _build_service_lines(db, booking.villa_id, selections)
    booking.booking_services = lines
    booking.services_total = _services_total(lines)
    booking.grand_total = booking_rules.calculate_grand_total(booking.total_price, booking.services_total)
    db.add(booking)
    await db.commit()
    logger.info("booking %s services replaced (%d lines)", booking.id, len(lines))
    return await crud_bookings.get_booking(db, booking.id)


async def toggle_paid(db: AsyncSession, booking_id: int, actor: User) -> Booking:
    booking = await _load(db, booking_id)
    if not can_manage(actor, booking):
        raise ForbiddenError("Only the villa owner or an admin can update payment status")
    if booking.status != BookingStatus.CONFIRMED.value:
        raise BookingStateError("Payment status can only be changed for confirmed bookings")

    booking.is_paid = not booking.is_paid
    db.add(booking)
    await db.commit()
    return await crud_bookings.get_booking(db, booking.id)


# ---------------------------
# Queries
# ---------------------------

def scope_filters(user: User, filters: Dict[str, Any]) -> Dict[str, Any]:
    """
    Guests only ever see their own bookings. Hosts are always pinned to their
    own villas; villa_id and guest_id only narrow inside that set.
    """
    filters = dict(filters)
    if user.role == Role.GUEST.value:
        filters["guest_id"] = user.id
    elif user.role == Role.HOST.value:
        if filters.get("owner_id") and filters["owner_id"] != user.id:
            raise ForbiddenError("Access denied: You can only view bookings for your own villas")
        filters["owner_id"] = user.id
    return filters


async def get_villa_booked_dates(
    db: AsyncSession,
    villa: Villa,
    year: Optional[int] = None,
    month: Optional[int] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    start, end = booking_rules.month_window(year, month, today=today)
    stays = await crud_bookings.list_active_stays(db, villa.id, start, end)
    booked = booking_rules.booked_nights(stays, start, end)
    return {
        "villa_id": villa.id,
        "start_date": start,
        "end_date": end,
        "booked_dates": booked,
        "total_booked_days": len(booked),
    }


async def complete_past_bookings(
    db: AsyncSession,
    today: Optional[date] = None,
    on_completed: Optional[Callable[[Booking], Awaitable[None]]] = None,
) -> Dict[str, int]:
    """
    Complete every CONFIRMED booking whose check-out is before today.
    One booking failing does not stop the rest.
    """
    today = today or date.today()
    completed = failed = 0

    for booking_id in await crud_bookings.list_bookings_to_complete(db, today):
        try:
            booking = await complete_booking(db, booking_id, today=today)
        except Exception:
            failed += 1
            await db.rollback()
            logger.exception("auto-complete failed for booking %s", booking_id)
            continue
        completed += 1
        if on_completed is None:
            continue
        try:
            await on_completed(booking)
        except Exception:
            logger.exception("auto-complete follow-up failed for booking %s", booking_id)

    logger.info("auto-complete: %d completed, %d failed", completed, failed)
    return {"completed": completed, "failed": failed}
