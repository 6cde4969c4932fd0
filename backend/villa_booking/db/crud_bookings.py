# villa_booking/db/crud_bookings.py

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.db.enums import ACTIVE_BOOKING_STATUSES, BookingStatus
from villa_booking.db.models import Booking, Villa

BOOKING_SORT_FIELDS = {
    "created_at": Booking.created_at,
    "check_in": Booking.check_in,
    "check_out": Booking.check_out,
    "total_price": Booking.total_price,
    "grand_total": Booking.grand_total,
    "services_total": Booking.services_total,
}


def overlap_clause(check_in: date, check_out: date):
    """
    Existing booking overlaps the half-open stay [check_in, check_out).
    """
    return or_(
        # new booking starts during existing booking
        and_(Booking.check_in <= check_in, Booking.check_out > check_in),
        # new booking ends during existing booking
        and_(Booking.check_in < check_out, Booking.check_out >= check_out),
        # new booking completely encompasses existing booking
        and_(Booking.check_in >= check_in, Booking.check_out <= check_out),
        # existing booking completely encompasses new booking
        and_(Booking.check_in <= check_in, Booking.check_out >= check_out),
    )


async def find_conflicting_bookings(
    db: AsyncSession,
    villa_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
    *,
    for_update: bool = False,
) -> List[Booking]:
    """
    With for_update=True this is a locking read. Under InnoDB's REPEATABLE
    READ a plain SELECT reads the transaction snapshot and misses bookings
    committed while we waited on the villa lock; a locking read sees them.
    """
    stmt = select(Booking).where(
        Booking.villa_id == villa_id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        overlap_clause(check_in, check_out),
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def is_villa_available(
    db: AsyncSession,
    villa_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
    *,
    for_update: bool = False,
) -> bool:
    conflicts = await find_conflicting_bookings(
        db, villa_id, check_in, check_out, exclude_booking_id, for_update=for_update
    )
    return not conflicts


async def get_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    """
    Always re-reads the row (and its eager relationships) so callers see
    state committed by another session.
    """
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def list_bookings(
    db: AsyncSession,
    filters: Optional[Dict[str, Any]] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Booking], int]:
    """
    Filtered, paginated booking list.
    filters: status, villa_id, guest_id, owner_id, start_date, end_date,
             sort_by, sort_order
    """
    filters = filters or {}
    stmt = select(Booking)

    if filters.get("status"):
        stmt = stmt.where(Booking.status == filters["status"])
    if filters.get("villa_id"):
        stmt = stmt.where(Booking.villa_id == filters["villa_id"])
    if filters.get("guest_id"):
        stmt = stmt.where(Booking.guest_id == filters["guest_id"])
    if filters.get("owner_id"):
        stmt = stmt.join(Villa, Booking.villa_id == Villa.id).where(
            Villa.owner_id == filters["owner_id"]
        )

    start_date = filters.get("start_date")
    end_date = filters.get("end_date")
    if start_date or end_date:
        def _within(column):
            clauses = []
            if start_date:
                clauses.append(column >= start_date)
            if end_date:
                clauses.append(column <= end_date)
            return and_(*clauses)

        spans = []
        if start_date:
            spans.append(Booking.check_in <= start_date)
        if end_date:
            spans.append(Booking.check_out >= end_date)
        stmt = stmt.where(
            or_(
                # check-in within range
                _within(Booking.check_in),
                # check-out within range
                _within(Booking.check_out),
                # booking spans the entire range
                and_(*spans),
            )
        )

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = BOOKING_SORT_FIELDS.get(filters.get("sort_by") or "created_at", Booking.created_at)
    order = column.asc() if filters.get("sort_order") == "asc" else column.desc()
    stmt = stmt.order_by(order, Booking.id.desc()).offset((page - 1) * limit).limit(limit)

    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total)


async def list_active_stays(
    db: AsyncSession, villa_id: int, start: date, end: date
) -> List[Tuple[date, date]]:
    """
    (check_in, check_out) of PENDING/CONFIRMED bookings touching [start, end].
    """
    stmt = (
        select(Booking.check_in, Booking.check_out)
        .where(
            Booking.villa_id == villa_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.check_in <= end,
            Booking.check_out > start,
        )
        .order_by(Booking.check_in.asc())
    )
    res = await db.execute(stmt)
    return [(row.check_in, row.check_out) for row in res.all()]


async def list_bookings_to_complete(db: AsyncSession, today: date) -> List[int]:
    """
    Ids of CONFIRMED bookings whose check-out precedes today.
    """
    stmt = (
        select(Booking.id)
        .where(
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.check_out < today,
        )
        .order_by(Booking.check_out.asc(), Booking.id.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def count_active_bookings_for_villa(db: AsyncSession, villa_id: int) -> int:
    res = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.villa_id == villa_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    return int(res.scalar_one())
