# villa_booking/api/routers/villas.py
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import require_roles
from villa_booking.core.errors import BadRequestError, ForbiddenError, NotFoundError
from villa_booking.core.responses import paginated_response, success_response
from villa_booking.db import crud_services, crud_villas
from villa_booking.db.enums import Role, VillaStatus
from villa_booking.db.models import User, Villa
from villa_booking.db.session import get_db
from villa_booking.schemas.service import ServiceOut
from villa_booking.schemas.villa import VillaCreate, VillaDetail, VillaOut, VillaUpdate
from villa_booking.services import booking_rules
from villa_booking.services.bookings import get_villa_booked_dates

router = APIRouter()


async def _get_or_404(db: AsyncSession, villa_id: int) -> Villa:
    villa = await crud_villas.get_villa(db, villa_id)
    if not villa:
        raise NotFoundError("Villa not found")
    return villa


def _ensure_owner(user: User, villa: Villa) -> None:
    if user.role != Role.ADMIN.value and villa.owner_id != user.id:
        raise ForbiddenError("You can only manage your own villas")


def _villa_fields(data: dict) -> dict:
    if data.get("images") is not None:
        data["images"] = [str(url) for url in data["images"]]
    if data.get("amenities") is not None:
        data["amenities"] = [a.strip() for a in data["amenities"] if a.strip()]
    if data.get("price_per_night") is not None:
        data["price_per_night"] = booking_rules.to_money(data["price_per_night"])
    if data.get("status") is not None:
        data["status"] = data["status"].value
    return data


@router.get("")
async def list_villas(
    db: AsyncSession = Depends(get_db),
    city: Optional[str] = None,
    country: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    max_guests: Optional[int] = Query(None, ge=1),
    min_bedrooms: Optional[int] = Query(None, ge=1),
    min_bathrooms: Optional[int] = Query(None, ge=1),
    amenities: Optional[str] = Query(None, description="Comma separated, villa must have all"),
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    status: Optional[VillaStatus] = None,
    owner_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["title", "price_per_night", "max_guests", "bedrooms", "created_at"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
):
    """
    Public listing: active & AVAILABLE unless a status is asked for.
    """
    if check_in and check_out and check_out <= check_in:
        raise BadRequestError("Check-out date must be after check-in date")

    filters = {
        "city": city,
        "country": country,
        "min_price": min_price,
        "max_price": max_price,
        "max_guests": max_guests,
        "min_bedrooms": min_bedrooms,
        "min_bathrooms": min_bathrooms,
        "amenities": [a.strip() for a in amenities.split(",") if a.strip()] if amenities else None,
        "check_in": check_in,
        "check_out": check_out,
        "status": status.value if status else None,
        "owner_id": owner_id,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    villas, total = await crud_villas.list_villas(db, filters=filters, page=page, limit=limit)
    return paginated_response(
        [VillaOut.model_validate(v) for v in villas],
        page=page,
        limit=limit,
        total=total,
        message="Villas retrieved successfully",
    )


@router.get("/my")
async def my_villas(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    villas, total = await crud_villas.list_villas_for_owner(db, current_user.id, page=page, limit=limit)
    return paginated_response(
        [VillaOut.model_validate(v) for v in villas],
        page=page,
        limit=limit,
        total=total,
        message="Your villas retrieved successfully",
    )


@router.get("/{villa_id}")
async def get_villa(villa_id: int, db: AsyncSession = Depends(get_db)):
    villa = await _get_or_404(db, villa_id)
    return success_response(VillaDetail.model_validate(villa), "Villa retrieved successfully")


@router.post("", status_code=201)
async def create_villa(
    body: VillaCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    data = _villa_fields(body.model_dump())
    villa = await crud_villas.create_villa(db, owner_id=current_user.id, **data)
    return success_response(VillaDetail.model_validate(villa), "Villa created successfully")


@router.put("/{villa_id}")
async def update_villa(
    villa_id: int,
    body: VillaUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    villa = await _get_or_404(db, villa_id)
    _ensure_owner(current_user, villa)
    villa = await crud_villas.update_villa(db, villa, _villa_fields(body.model_dump(exclude_unset=True)))
    return success_response(VillaDetail.model_validate(villa), "Villa updated successfully")


@router.delete("/{villa_id}")
async def delete_villa(
    villa_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    villa = await _get_or_404(db, villa_id)
    await crud_villas.delete_villa(db, villa)
    return success_response(None, "Villa deleted successfully")


@router.get("/{villa_id}/statistics")
async def villa_statistics(
    villa_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    villa = await _get_or_404(db, villa_id)
    _ensure_owner(current_user, villa)
    stats = await crud_villas.villa_statistics(db, villa)
    return success_response(stats, "Villa statistics retrieved successfully")


@router.get("/{villa_id}/booked-dates")
async def booked_dates(
    villa_id: int,
    db: AsyncSession = Depends(get_db),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    if month and not year:
        raise BadRequestError("Year is required when month is given")
    villa = await _get_or_404(db, villa_id)
    result = await get_villa_booked_dates(db, villa, year=year, month=month)
    return success_response(result, "Booked dates retrieved successfully")


@router.get("/{villa_id}/services")
async def villa_services(villa_id: int, db: AsyncSession = Depends(get_db)):
    villa = await _get_or_404(db, villa_id)
    services = await crud_services.list_services_for_villa(db, villa.id)
    return success_response(
        [ServiceOut.model_validate(s) for s in services],
        "Villa services retrieved successfully",
    )
