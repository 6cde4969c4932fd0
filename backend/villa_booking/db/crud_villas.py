# villa_booking/db/crud_villas.py
from datetime import date
from decimal import Decimal
from typing import Tuple, List, Dict, Any, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.errors import BadRequestError
from villa_booking.db.crud_bookings import count_active_bookings_for_villa, overlap_clause
from villa_booking.db.enums import ACTIVE_BOOKING_STATUSES, BookingStatus, VillaStatus
from villa_booking.db.models import Booking, Villa, VillaAmenity
from villa_booking.services.stats import occupancy_rate

VILLA_SORT_FIELDS = {
    "title": Villa.title,
    "price_per_night": Villa.price_per_night,
    "max_guests": Villa.max_guests,
    "bedrooms": Villa.bedrooms,
    "created_at": Villa.created_at,
}


def _has_all_amenities(names: List[str]):
    names = list(dict.fromkeys(names))
    matching = (
        select(VillaAmenity.villa_id)
        .where(VillaAmenity.name.in_(names))
        .group_by(VillaAmenity.villa_id)
        .having(func.count(func.distinct(VillaAmenity.name)) == len(names))
    )
    return Villa.id.in_(matching)


def _free_between(check_in: date, check_out: date):
    busy = (
        select(Booking.id)
        .where(
            Booking.villa_id == Villa.id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            overlap_clause(check_in, check_out),
        )
        .exists()
    )
    return ~busy


async def list_villas(
    db: AsyncSession,
    filters: Optional[dict] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Villa], int]:
    """
    Public listing: active + AVAILABLE unless the caller overrides
    is_active / status.
    """
    filters = filters or {}

    is_active = filters.get("is_active")
    where_clauses = [
        Villa.is_active.is_(True if is_active is None else is_active),
        Villa.status == (filters.get("status") or VillaStatus.AVAILABLE.value),
    ]

    if filters.get("city"):
        where_clauses.append(func.lower(Villa.city).contains(filters["city"].lower()))
    if filters.get("country"):
        where_clauses.append(func.lower(Villa.country).contains(filters["country"].lower()))
    if filters.get("min_price") is not None:
        where_clauses.append(Villa.price_per_night >= filters["min_price"])
    if filters.get("max_price") is not None:
        where_clauses.append(Villa.price_per_night <= filters["max_price"])
    if filters.get("max_guests"):
        where_clauses.append(Villa.max_guests >= filters["max_guests"])
    if filters.get("min_bedrooms"):
        where_clauses.append(Villa.bedrooms >= filters["min_bedrooms"])
    if filters.get("min_bathrooms"):
        where_clauses.append(Villa.bathrooms >= filters["min_bathrooms"])
    if filters.get("amenities"):
        where_clauses.append(_has_all_amenities(filters["amenities"]))
    if filters.get("owner_id"):
        where_clauses.append(Villa.owner_id == filters["owner_id"])
    if filters.get("check_in") and filters.get("check_out"):
        where_clauses.append(_free_between(filters["check_in"], filters["check_out"]))

    stmt = select(Villa).where(and_(*where_clauses))

    # count total
    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    column = VILLA_SORT_FIELDS.get(filters.get("sort_by") or "created_at", Villa.created_at)
    order = column.asc() if filters.get("sort_order") == "asc" else column.desc()
    stmt = stmt.order_by(order, Villa.id.desc())

    stmt = stmt.offset((page - 1) * limit).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total)


async def get_villa(db: AsyncSession, villa_id: int, *, for_update: bool = False) -> Villa | None:
    """
    for_update=True takes a row lock (SELECT ... FOR UPDATE) for the rest
    of the transaction; used to serialise bookings on one villa.
    """
    stmt = (
        select(Villa)
        .where(Villa.id == villa_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalars().first()


async def list_villas_for_owner(
    db: AsyncSession, owner_id: int, page: int = 1, limit: int = 10
) -> Tuple[List[Villa], int]:
    """
    Host dashboard: ALL their villas regardless of status / is_active.
    """
    stmt = select(Villa).where(Villa.owner_id == owner_id)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(
        stmt.order_by(Villa.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(res.scalars().all()), int(total)


async def create_villa(db: AsyncSession, **kwargs) -> Villa:
    if not kwargs.get("status"):
        kwargs["status"] = VillaStatus.AVAILABLE.value
    villa = Villa(**kwargs)
    db.add(villa)
    await db.commit()
    return await get_villa(db, villa.id)


async def update_villa(db: AsyncSession, villa: Villa, data: dict) -> Villa:
    for k, v in data.items():
        if v is not None:
            setattr(villa, k, v)
    db.add(villa)
    await db.commit()
    return await get_villa(db, villa.id)


async def delete_villa(db: AsyncSession, villa: Villa) -> Villa:
    """
    Soft delete. Refused while PENDING/CONFIRMED bookings exist.
    """
    if await count_active_bookings_for_villa(db, villa.id):
        raise BadRequestError(
            "Cannot delete villa with active bookings. Please cancel or complete all bookings first.",
            code="VILLA_HAS_ACTIVE_BOOKINGS",
        )
    villa.is_active = False
    villa.status = VillaStatus.UNAVAILABLE.value
    db.add(villa)
    await db.commit()
    return await get_villa(db, villa.id)


async def villa_statistics(db: AsyncSession, villa: Villa, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Booking counts by status, completed revenue and this year's occupancy.
    """
    today = today or date.today()
    res = await db.execute(
        select(Booking.status, func.count(Booking.id))
        .where(Booking.villa_id == villa.id)
        .group_by(Booking.status)
    )
    by_status = {status.value.lower(): 0 for status in BookingStatus}
    for status, count in res.all():
        by_status[status.lower()] = int(count)

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Booking.grand_total), 0)).where(
                Booking.villa_id == villa.id,
                Booking.status == BookingStatus.COMPLETED.value,
            )
        )
    ).scalar_one()

    stays = (
        await db.execute(
            select(Booking.check_in, Booking.check_out, Booking.status).where(
                Booking.villa_id == villa.id,
                Booking.check_in >= date(today.year, 1, 1),
            )
        )
    ).all()

    return {
        "villa_id": villa.id,
        "villa_title": villa.title,
        "total_bookings": sum(by_status.values()),
        "bookings_by_status": by_status,
        "total_revenue": Decimal(str(revenue)),
        "occupancy_rate": occupancy_rate(stays, today=today),
    }
