# villa_booking/db/crud_services.py

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.errors import BadRequestError
from villa_booking.db.enums import ACTIVE_BOOKING_STATUSES
from villa_booking.db.models import Booking, BookingService, Service

SERVICE_SORT_FIELDS = {
    "title": Service.title,
    "price": Service.price,
    "category": Service.category,
    "difficulty": Service.difficulty,
    "created_at": Service.created_at,
}


async def list_services(
    db: AsyncSession,
    filters: Optional[Dict[str, Any]] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Service], int]:
    """
    filters: category, difficulty, min_price, max_price, max_group_size,
             is_active (default True), is_featured, villa_id, sort_by, sort_order
    """
    filters = filters or {}
    is_active = filters.get("is_active")
    stmt = select(Service).where(Service.is_active.is_(True if is_active is None else is_active))

    if filters.get("category"):
        stmt = stmt.where(Service.category == filters["category"])
    if filters.get("difficulty"):
        stmt = stmt.where(Service.difficulty == filters["difficulty"])
    if filters.get("min_price") is not None:
        stmt = stmt.where(Service.price >= filters["min_price"])
    if filters.get("max_price") is not None:
        stmt = stmt.where(Service.price <= filters["max_price"])
    if filters.get("max_group_size"):
        stmt = stmt.where(Service.max_group_size >= filters["max_group_size"])
    if filters.get("is_featured") is not None:
        stmt = stmt.where(Service.is_featured.is_(filters["is_featured"]))
    if filters.get("villa_id"):
        stmt = stmt.where(Service.villa_id == filters["villa_id"])

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = SERVICE_SORT_FIELDS.get(filters.get("sort_by") or "created_at", Service.created_at)
    order = column.asc() if filters.get("sort_order") == "asc" else column.desc()
    stmt = stmt.order_by(order, Service.id.desc()).offset((page - 1) * limit).limit(limit)

    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total)


async def get_service(db: AsyncSession, service_id: int) -> Optional[Service]:
    res = await db.execute(
        select(Service)
        .where(Service.id == service_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_services_by_ids(db: AsyncSession, service_ids: List[int]) -> Dict[int, Service]:
    if not service_ids:
        return {}
    res = await db.execute(select(Service).where(Service.id.in_(set(service_ids))))
    return {s.id: s for s in res.scalars().all()}


async def list_services_for_villa(db: AsyncSession, villa_id: int) -> List[Service]:
    """
    Active services a guest can add to a stay at this villa:
    the ones scoped to it plus the global ones.
    """
    res = await db.execute(
        select(Service)
        .where(
            Service.is_active.is_(True),
            or_(Service.villa_id == villa_id, Service.villa_id.is_(None)),
        )
        .order_by(Service.is_featured.desc(), Service.title.asc())
    )
    return list(res.scalars().all())


async def count_active_bookings_for_service(db: AsyncSession, service_id: int) -> int:
    res = await db.execute(
        select(func.count(BookingService.id))
        .join(Booking, BookingService.booking_id == Booking.id)
        .where(
            BookingService.service_id == service_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    return int(res.scalar_one())


async def create_service(db: AsyncSession, **kwargs) -> Service:
    service = Service(**kwargs)
    db.add(service)
    await db.commit()
    return await get_service(db, service.id)


async def update_service(db: AsyncSession, service: Service, data: dict) -> Service:
    for k, v in data.items():
        if v is not None:
            setattr(service, k, v)
    db.add(service)
    await db.commit()
    return await get_service(db, service.id)


async def delete_service(db: AsyncSession, service: Service) -> Service:
    """
    Soft delete. Refused while PENDING/CONFIRMED bookings include it.
    """
    if await count_active_bookings_for_service(db, service.id):
        raise BadRequestError(
            "Cannot delete service with active bookings",
            code="SERVICE_HAS_ACTIVE_BOOKINGS",
        )
    service.is_active = False
    db.add(service)
    await db.commit()
    return await get_service(db, service.id)
