# villa_booking/api/routers/bookings.py
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import get_current_user, require_roles
from villa_booking.core.errors import BadRequestError
from villa_booking.core.responses import paginated_response, success_response
from villa_booking.db import crud_bookings
from villa_booking.db.enums import BookingEvent, BookingStatus, Role
from villa_booking.db.session import get_db
from villa_booking.schemas.booking import (
    BookingAction,
    BookingCreate,
    BookingOut,
    BookingServicesUpdate,
)
from villa_booking.services import bookings as booking_service
from villa_booking.services.notifications import BookingNotice, dispatch_booking_event

router = APIRouter()

SortField = Literal["created_at", "check_in", "check_out", "total_price", "grand_total", "services_total"]


def _notify(background_tasks: BackgroundTasks, booking, event: BookingEvent) -> None:
    # snapshot now; the session is gone by the time the task runs
    background_tasks.add_task(dispatch_booking_event, BookingNotice.from_booking(booking), event)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    booking = await booking_service.create_booking(db, current_user, body)
    _notify(background_tasks, booking, BookingEvent.NEW_BOOKING)
    return success_response(BookingOut.model_validate(booking), "Booking request created successfully")


@router.get("")
async def list_bookings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    status: Optional[BookingStatus] = None,
    villa_id: Optional[int] = None,
    guest_id: Optional[int] = None,
    owner_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
):
    filters = booking_service.scope_filters(
        current_user,
        {
            "status": status.value if status else None,
            "villa_id": villa_id,
            "guest_id": guest_id,
            "owner_id": owner_id,
            "start_date": start_date,
            "end_date": end_date,
            "sort_by": sort_by,
            "sort_order": sort_order,
        },
    )
    items, total = await crud_bookings.list_bookings(db, filters=filters, page=page, limit=limit)
    return paginated_response(
        [BookingOut.model_validate(b) for b in items],
        page=page,
        limit=limit,
        total=total,
        message="Bookings retrieved successfully",
    )


@router.get("/my")
async def my_bookings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    filters = {"guest_id": current_user.id, "status": status.value if status else None}
    items, total = await crud_bookings.list_bookings(db, filters=filters, page=page, limit=limit)
    return paginated_response(
        [BookingOut.model_validate(b) for b in items],
        page=page,
        limit=limit,
        total=total,
        message="Your bookings retrieved successfully",
    )


@router.get("/availability")
async def check_availability(
    villa_id: int,
    check_in: date,
    check_out: date,
    db: AsyncSession = Depends(get_db),
):
    if check_out <= check_in:
        raise BadRequestError("Check-out date must be after check-in date")
    available = await crud_bookings.is_villa_available(db, villa_id, check_in, check_out)
    return success_response(
        {"villa_id": villa_id, "check_in": check_in, "check_out": check_out, "available": available},
        "Availability checked",
    )


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    booking = await booking_service.get_booking_for_user(db, booking_id, current_user)
    return success_response(BookingOut.model_validate(booking), "Booking details retrieved successfully")


@router.put("/{booking_id}/confirm")
async def confirm_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    booking = await booking_service.confirm_booking(db, booking_id, current_user)
    _notify(background_tasks, booking, BookingEvent.BOOKING_CONFIRMED)
    return success_response(BookingOut.model_validate(booking), "Booking confirmed successfully")


@router.put("/{booking_id}/reject")
async def reject_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    body: Optional[BookingAction] = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    reason = body.reason if body else None
    booking = await booking_service.reject_booking(db, booking_id, current_user, reason)
    _notify(background_tasks, booking, BookingEvent.BOOKING_REJECTED)
    return success_response(BookingOut.model_validate(booking), "Booking rejected successfully")


@router.put("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    body: Optional[BookingAction] = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    reason = body.reason if body else None
    booking = await booking_service.cancel_booking(db, booking_id, current_user, reason)
    _notify(background_tasks, booking, BookingEvent.BOOKING_CANCELLED)
    return success_response(BookingOut.model_validate(booking), "Booking cancelled successfully")


@router.put("/{booking_id}/complete")
async def complete_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    booking = await booking_service.complete_booking(db, booking_id)
    _notify(background_tasks, booking, BookingEvent.BOOKING_COMPLETED)
    return success_response(BookingOut.model_validate(booking), "Booking completed successfully")


@router.put("/{booking_id}/services")
async def update_booking_services(
    booking_id: int,
    body: BookingServicesUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    booking = await booking_service.update_booking_services(
        db, booking_id, current_user, body.selected_services
    )
    return success_response(BookingOut.model_validate(booking), "Booking services updated successfully")


@router.put("/{booking_id}/payment")
async def toggle_payment(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    booking = await booking_service.toggle_paid(db, booking_id, current_user)
    message = "Booking marked as paid" if booking.is_paid else "Booking marked as unpaid"
    return success_response(BookingOut.model_validate(booking), message)
