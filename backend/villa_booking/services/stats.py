"""
Admin dashboard statistics.

The heavy lifting is a handful of aggregate queries plus one pass over a
lightweight projection of every booking; everything is summarised in
Python.
"""
import calendar
import logging
from collections import Counter, defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.config import settings
from villa_booking.db.enums import BookingStatus, Role, VillaStatus
from villa_booking.db.models import Booking, BookingService, Service, User, Villa
from villa_booking.services.booking_rules import count_nights, to_money

logger = logging.getLogger(__name__)

OCCUPIED_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)
ZERO = Decimal("0.00")


# ---------------------------
# Helpers
# ---------------------------

def percentage_change(current, previous) -> float:
    if not previous:
        return 100.0 if current > 0 else 0.0
    return round(float((Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous)) * 100), 2)


def average_stay(stays: Iterable[tuple]) -> float:
    nights = [count_nights(s[0], s[1]) for s in stays]
    if not nights:
        return 0.0
    return round(sum(nights) / len(nights), 2)


def occupancy_rate(stays: Iterable[tuple], today: Optional[date] = None) -> float:
    """
    Nights held by CONFIRMED/COMPLETED stays as a share of the days elapsed
    this year. stays: (check_in, check_out, status) tuples.
    """
    stays = list(stays)
    if not stays:
        return 0.0
    today = today or date.today()
    elapsed = max((today - date(today.year, 1, 1)).days, 1)
    occupied = sum(
        count_nights(check_in, check_out)
        for check_in, check_out, status in stays
        if status in OCCUPIED_STATUSES
    )
    return round(occupied / elapsed * 100, 2)


def month_bounds(today: date) -> Dict[str, datetime]:
    start_this = datetime(today.year, today.month, 1)
    if today.month == 1:
        start_last = datetime(today.year - 1, 12, 1)
    else:
        start_last = datetime(today.year, today.month - 1, 1)
    if today.month == 12:
        start_next = datetime(today.year + 1, 1, 1)
    else:
        start_next = datetime(today.year, today.month + 1, 1)
    return {"start_this": start_this, "start_last": start_last, "start_next": start_next}


def _count_by(rows, key: str) -> Dict[str, int]:
    return {getattr(r, key): int(r.count) for r in rows}


# ---------------------------
# Dashboard
# ---------------------------

async def get_dashboard_stats(db: AsyncSession, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    bounds = month_bounds(today)
    start_this, start_last, start_next = bounds["start_this"], bounds["start_last"], bounds["start_next"]

    # --- users ---
    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
    active_users = (
        await db.execute(select(func.count(User.id)).where(User.is_active.is_(True)))
    ).scalar_one()
    new_users_this_month = (
        await db.execute(
            select(func.count(User.id)).where(User.created_at >= start_this, User.created_at < start_next)
        )
    ).scalar_one()
    new_users_last_month = (
        await db.execute(
            select(func.count(User.id)).where(User.created_at >= start_last, User.created_at < start_this)
        )
    ).scalar_one()
    users_by_role = _count_by(
        (await db.execute(select(User.role, func.count(User.id).label("count")).group_by(User.role))).all(),
        "role",
    )

    # --- villas ---
    villa_rows = (
        await db.execute(
            select(Villa.id, Villa.title, Villa.city, Villa.status, Villa.price_per_night, Villa.created_at)
            .where(Villa.is_active.is_(True))
        )
    ).all()
    villas_by_id = {v.id: v for v in villa_rows}
    villas_by_status = Counter(v.status for v in villa_rows)
    prices = [Decimal(str(v.price_per_night)) for v in villa_rows]

    # --- bookings (one lightweight projection) ---
    bookings = (
        await db.execute(
            select(
                Booking.id,
                Booking.villa_id,
                Booking.guest_id,
                Booking.check_in,
                Booking.check_out,
                Booking.status,
                Booking.total_price,
                Booking.services_total,
                Booking.grand_total,
                Booking.payment_method,
                Booking.is_paid,
                Booking.created_at,
                Villa.city.label("city"),
            ).join(Villa, Booking.villa_id == Villa.id)
        )
    ).all()

    status_counts = Counter(b.status for b in bookings)
    completed = [b for b in bookings if b.status == BookingStatus.COMPLETED.value]
    bookings_this_month = [b for b in bookings if start_this <= b.created_at < start_next]
    bookings_last_month = [b for b in bookings if start_last <= b.created_at < start_this]

    total_revenue = to_money(sum((Decimal(str(b.grand_total)) for b in completed), ZERO))
    villa_revenue = to_money(sum((Decimal(str(b.total_price)) for b in completed), ZERO))
    service_revenue = to_money(sum((Decimal(str(b.services_total)) for b in completed), ZERO))
    revenue_this_month = to_money(
        sum((Decimal(str(b.grand_total)) for b in completed if start_this <= b.created_at < start_next), ZERO)
    )
    revenue_last_month = to_money(
        sum((Decimal(str(b.grand_total)) for b in completed if start_last <= b.created_at < start_this), ZERO)
    )
    pending_payments = to_money(
        sum(
            (
                Decimal(str(b.grand_total))
                for b in bookings
                if b.status == BookingStatus.CONFIRMED.value and not b.is_paid
            ),
            ZERO,
        )
    )
    average_booking_value = (
        to_money(sum((Decimal(str(b.grand_total)) for b in bookings), ZERO) / len(bookings))
        if bookings
        else ZERO
    )
    average_revenue_per_booking = to_money(total_revenue / len(completed)) if completed else ZERO

    # top guests by spend on confirmed/completed stays
    guest_spend: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    guest_count: Counter = Counter()
    for b in bookings:
        guest_count[b.guest_id] += 1
        if b.status in OCCUPIED_STATUSES:
            guest_spend[b.guest_id] += Decimal(str(b.grand_total))
    top_guest_ids = [gid for gid, _ in sorted(guest_spend.items(), key=lambda kv: kv[1], reverse=True)[:5]]
    guests = {}
    if top_guest_ids:
        guest_rows = (
            await db.execute(select(User.id, User.full_name, User.email).where(User.id.in_(top_guest_ids)))
        ).all()
        guests = {g.id: g for g in guest_rows}
    top_guests = [
        {
            "id": gid,
            "full_name": guests[gid].full_name if gid in guests else None,
            "email": guests[gid].email if gid in guests else None,
            "total_bookings": guest_count[gid],
            "total_spent": to_money(guest_spend[gid]),
        }
        for gid in top_guest_ids
    ]

    # top villas by completed revenue
    villa_bookings: Dict[int, List] = defaultdict(list)
    for b in bookings:
        villa_bookings[b.villa_id].append(b)
    top_villas = []
    for villa_id, rows in villa_bookings.items():
        villa = villas_by_id.get(villa_id)
        if villa is None:
            continue
        top_villas.append(
            {
                "id": villa_id,
                "title": villa.title,
                "city": villa.city,
                "total_bookings": len(rows),
                "total_revenue": to_money(
                    sum(
                        (Decimal(str(r.grand_total)) for r in rows if r.status == BookingStatus.COMPLETED.value),
                        ZERO,
                    )
                ),
                "occupancy_rate": occupancy_rate(
                    [(r.check_in, r.check_out, r.status) for r in rows if r.check_in.year == today.year],
                    today=today,
                ),
            }
        )
    top_villas.sort(key=lambda v: v["total_revenue"], reverse=True)

    villas_by_city: Dict[str, List[Decimal]] = defaultdict(list)
    for v in villa_rows:
        villas_by_city[v.city].append(Decimal(str(v.price_per_night)))

    # monthly series by booking creation month
    monthly: Dict[tuple, Dict[str, Any]] = {}
    for b in bookings:
        key = (b.created_at.year, b.created_at.month)
        entry = monthly.setdefault(
            key,
            {
                "month": calendar.month_name[key[1]],
                "year": key[0],
                "bookings": 0,
                "revenue": ZERO,
            },
        )
        entry["bookings"] += 1
        if b.status == BookingStatus.COMPLETED.value:
            entry["revenue"] += Decimal(str(b.grand_total))
    monthly_bookings = [monthly[k] for k in sorted(monthly)]

    seasonal = []
    for month in range(1, 13):
        rows = [b for b in bookings if b.check_in.month == month]
        seasonal.append(
            {
                "month": month,
                "month_name": calendar.month_name[month],
                "bookings": len(rows),
                "revenue": to_money(
                    sum(
                        (Decimal(str(r.grand_total)) for r in rows if r.status == BookingStatus.COMPLETED.value),
                        ZERO,
                    )
                ),
            }
        )

    # destinations: bookings per city, growth month over month
    city_total = Counter(b.city for b in bookings)
    city_this = Counter(b.city for b in bookings_this_month)
    city_last = Counter(b.city for b in bookings_last_month)
    popular_destinations = [
        {"city": city, "bookings": count, "growth": percentage_change(city_this[city], city_last[city])}
        for city, count in city_total.most_common(5)
    ]

    method_counts = Counter(b.payment_method for b in bookings)
    method_total = sum(method_counts.values())
    payment_methods = [
        {
            "method": method,
            "count": count,
            "percentage": round(count / method_total * 100, 2) if method_total else 0.0,
        }
        for method, count in method_counts.most_common()
    ]

    recent_rows = (
        await db.execute(select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc()).limit(5))
    ).scalars().all()
    recent_bookings = [
        {
            "id": b.id,
            "guest_name": b.guest.full_name if b.guest else None,
            "villa_title": b.villa.title if b.villa else None,
            "check_in": b.check_in,
            "check_out": b.check_out,
            "status": b.status,
            "grand_total": b.grand_total,
        }
        for b in recent_rows
    ]

    # --- services ---
    total_services = (
        await db.execute(select(func.count(Service.id)).where(Service.is_active.is_(True)))
    ).scalar_one()
    featured_services = (
        await db.execute(
            select(func.count(Service.id)).where(Service.is_active.is_(True), Service.is_featured.is_(True))
        )
    ).scalar_one()
    category_rows = (
        await db.execute(
            select(Service.category, func.count(Service.id).label("count"))
            .where(Service.is_active.is_(True))
            .group_by(Service.category)
        )
    ).all()
    service_usage = (
        await db.execute(
            select(
                Service.id,
                Service.title,
                Service.category,
                func.count(BookingService.id).label("bookings"),
                func.coalesce(func.sum(BookingService.total_price), 0).label("revenue"),
            )
            .join(BookingService, BookingService.service_id == Service.id)
            .join(Booking, BookingService.booking_id == Booking.id)
            .where(Booking.status == BookingStatus.COMPLETED.value)
            .group_by(Service.id, Service.title, Service.category)
        )
    ).all()
    category_revenue: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for row in service_usage:
        category_revenue[row.category] += Decimal(str(row.revenue))
    top_services = sorted(
        (
            {
                "id": row.id,
                "title": row.title,
                "category": row.category,
                "bookings": int(row.bookings),
                "revenue": to_money(row.revenue),
            }
            for row in service_usage
        ),
        key=lambda s: s["bookings"],
        reverse=True,
    )[:5]

    def by_status(status: BookingStatus) -> int:
        return status_counts.get(status.value, 0)

    return {
        "overview": {
            "total_users": int(total_users),
            "total_villas": len(villa_rows),
            "total_bookings": len(bookings),
            "total_revenue": total_revenue,
            "revenue_this_month": revenue_this_month,
            "revenue_last_month": revenue_last_month,
            "revenue_growth": percentage_change(revenue_this_month, revenue_last_month),
        },
        "users": {
            "total_users": int(total_users),
            "active_users": int(active_users),
            "new_users_this_month": int(new_users_this_month),
            "new_users_last_month": int(new_users_last_month),
            "user_growth": percentage_change(new_users_this_month, new_users_last_month),
            "users_by_role": {
                "guests": users_by_role.get(Role.GUEST.value, 0),
                "hosts": users_by_role.get(Role.HOST.value, 0),
                "admins": users_by_role.get(Role.ADMIN.value, 0),
            },
            "top_guests": top_guests,
        },
        "villas": {
            "total_villas": len(villa_rows),
            "available_villas": villas_by_status.get(VillaStatus.AVAILABLE.value, 0),
            "unavailable_villas": villas_by_status.get(VillaStatus.UNAVAILABLE.value, 0),
            "maintenance_villas": villas_by_status.get(VillaStatus.MAINTENANCE.value, 0),
            "new_villas_this_month": sum(1 for v in villa_rows if start_this <= v.created_at < start_next),
            "average_price_per_night": to_money(sum(prices, ZERO) / len(prices)) if prices else ZERO,
            "top_villas": top_villas[:5],
            "villas_by_city": [
                {"city": city, "count": len(p), "average_price": to_money(sum(p, ZERO) / len(p))}
                for city, p in sorted(villas_by_city.items(), key=lambda kv: len(kv[1]), reverse=True)
            ],
        },
        "bookings": {
            "total_bookings": len(bookings),
            "pending_bookings": by_status(BookingStatus.PENDING),
            "confirmed_bookings": by_status(BookingStatus.CONFIRMED),
            "cancelled_bookings": by_status(BookingStatus.CANCELLED),
            "rejected_bookings": by_status(BookingStatus.REJECTED),
            "completed_bookings": by_status(BookingStatus.COMPLETED),
            "bookings_this_month": len(bookings_this_month),
            "bookings_last_month": len(bookings_last_month),
            "booking_growth": percentage_change(len(bookings_this_month), len(bookings_last_month)),
            "average_booking_value": average_booking_value,
            "average_stay_duration": average_stay((b.check_in, b.check_out) for b in bookings),
            "occupancy_rate": occupancy_rate(
                [(b.check_in, b.check_out, b.status) for b in bookings if b.check_in.year == today.year],
                today=today,
            ),
            "recent_bookings": recent_bookings,
            "bookings_by_status": {s.value.lower(): by_status(s) for s in BookingStatus},
            "monthly_bookings": monthly_bookings,
        },
        "services": {
            "total_services": int(total_services),
            "featured_services": int(featured_services),
            "services_by_category": [
                {
                    "category": row.category,
                    "count": int(row.count),
                    "total_revenue": to_money(category_revenue[row.category]),
                }
                for row in category_rows
            ],
            "top_services": top_services,
        },
        "financial": {
            "total_revenue": total_revenue,
            "villa_revenue": villa_revenue,
            "service_revenue": service_revenue,
            "monthly_revenue": [
                {"month": m["month"], "year": m["year"], "revenue": to_money(m["revenue"])}
                for m in monthly_bookings
            ],
            "average_revenue_per_booking": average_revenue_per_booking,
            "total_commissions": to_money(total_revenue * settings.PLATFORM_COMMISSION_RATE),
            "pending_payments": pending_payments,
        },
        "trends": {
            "popular_destinations": popular_destinations,
            "seasonal_trends": seasonal,
            "payment_methods": payment_methods,
        },
    }
