"""
Pure booking rules: date validation, pricing, interval overlap and
status-transition guards. No database access here.
"""
import math
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from villa_booking.core.config import settings
from villa_booking.db.enums import BookingStatus

CENTS = Decimal("0.01")

CANCELLABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
REJECTABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def count_nights(check_in, check_out) -> int:
    """
    Whole nights between two dates; partial days round up.
    Accepts date or datetime.
    """
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        start = check_in if isinstance(check_in, datetime) else datetime.combine(check_in, datetime.min.time())
        end = check_out if isinstance(check_out, datetime) else datetime.combine(check_out, datetime.min.time())
        return math.ceil((end - start).total_seconds() / 86400)
    return (check_out - check_in).days


def validate_booking_dates(
    check_in: date,
    check_out: date,
    today: Optional[date] = None,
) -> Optional[str]:
    """
    Returns an error message, or None when the stay is acceptable.
    """
    today = today or date.today()

    if check_in < today:
        return "Check-in date cannot be in the past"
    if check_out <= check_in:
        return "Check-out date must be after check-in date"
    if check_in > today + timedelta(days=settings.BOOKING_MAX_ADVANCE_DAYS):
        return "Booking cannot be made more than 2 years in advance"

    nights = count_nights(check_in, check_out)
    if nights > settings.BOOKING_MAX_NIGHTS:
        return f"Maximum stay is {settings.BOOKING_MAX_NIGHTS} days"
    return None


def calculate_total_price(price_per_night, check_in, check_out) -> Decimal:
    return to_money(Decimal(str(price_per_night)) * count_nights(check_in, check_out))


def calculate_line_total(unit_price, quantity: int) -> Decimal:
    return to_money(Decimal(str(unit_price)) * quantity)


def calculate_grand_total(total_price, services_total) -> Decimal:
    return to_money(Decimal(str(total_price)) + Decimal(str(services_total)))


def ranges_overlap(new_in: date, new_out: date, cur_in: date, cur_out: date) -> bool:
    """
    Half-open [in, out) overlap, spelled out as the four cases the
    availability query uses.
    """
    starts_inside = cur_in <= new_in < cur_out
    ends_inside = cur_in < new_out <= cur_out
    contains_existing = new_in <= cur_in and cur_out <= new_out
    inside_existing = cur_in <= new_in and new_out <= cur_out
    return starts_inside or ends_inside or contains_existing or inside_existing


def is_confirmable(status: str) -> bool:
    return status == BookingStatus.PENDING.value


def is_rejectable(status: str) -> bool:
    return status in REJECTABLE_STATUSES


def is_before_check_in(check_in: date, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return check_in > today


def is_completable(status: str, check_out: date, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return status == BookingStatus.CONFIRMED.value and check_out <= today


def booked_nights(stays: Iterable[tuple], start: date, end: date) -> List[str]:
    """
    Every night covered by the given (check_in, check_out) pairs that falls
    inside [start, end], as sorted ISO strings. The check-out day is free.
    """
    nights = set()
    for check_in, check_out in stays:
        current = max(check_in, start)
        last = min(check_out - timedelta(days=1), end)
        while current <= last:
            nights.add(current.isoformat())
            current += timedelta(days=1)
    return sorted(nights)


def month_window(year: Optional[int], month: Optional[int], today: Optional[date] = None) -> tuple[date, date]:
    """
    Date window for calendar queries: a month, a whole year, or the next
    twelve months from today.
    """
    today = today or date.today()
    if year and month:
        start = date(year, month, 1)
        nxt = date(year + (month // 12), month % 12 + 1, 1)
        return start, nxt - timedelta(days=1)
    if year:
        return date(year, 1, 1), date(year, 12, 31)
    try:
        end = today.replace(year=today.year + 1)
    except ValueError:
        # Feb 29
        end = today.replace(year=today.year + 1, day=28)
    return today, end
