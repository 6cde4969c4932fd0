from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.dialects import mysql

from conftest import TODAY, days
from villa_booking.core.errors import (
    BadRequestError,
    BookingStateError,
    ConflictError,
    ForbiddenError,
)
from villa_booking.db import crud_bookings
from villa_booking.db.enums import BookingStatus, PaymentMethod
from villa_booking.schemas.booking import BookingCreate, SelectedService
from villa_booking.services import bookings as booking_service


def _payload(villa, check_in, check_out, **kwargs):
    data = dict(
        villa_id=villa.id,
        check_in=check_in,
        check_out=check_out,
        total_adults=2,
        payment_method=PaymentMethod.BANK_TRANSFER,
        phone="+201001234567",
        date_of_birth=date(1990, 5, 17),
    )
    data.update(kwargs)
    return BookingCreate(**data)


async def test_create_booking_prices_stay_and_services(db, villa, guest, service):
    payload = _payload(
        villa, days(10), days(13),
        selected_services=[SelectedService(service_id=service.id, quantity=2)],
    )
    booking = await booking_service.create_booking(db, guest, payload, today=TODAY)

    assert booking.status == BookingStatus.PENDING.value
    assert booking.total_price == Decimal("300.00")
    assert booking.services_total == Decimal("70.00")
    assert booking.grand_total == Decimal("370.00")
    assert booking.booking_services[0].unit_price == Decimal("35.00")


async def test_overlapping_request_is_refused(db, villa, guest, make_user):
    await booking_service.create_booking(db, guest, _payload(villa, days(10), days(15)), today=TODAY)
    other = await make_user()

    with pytest.raises(ConflictError) as exc:
        await booking_service.create_booking(db, other, _payload(villa, days(12), days(14)), today=TODAY)
    assert exc.value.code == "DATES_UNAVAILABLE"


async def test_back_to_back_stays_are_allowed(db, villa, guest, make_user):
    await booking_service.create_booking(db, guest, _payload(villa, days(10), days(15)), today=TODAY)
    other = await make_user()
    booking = await booking_service.create_booking(db, other, _payload(villa, days(15), days(18)), today=TODAY)
    assert booking.check_in == days(15)


async def test_cancelled_booking_frees_dates(db, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(10), days(15), status=BookingStatus.CANCELLED)
    booking = await booking_service.create_booking(db, guest, _payload(villa, days(11), days(13)), today=TODAY)
    assert booking.status == BookingStatus.PENDING.value


async def test_too_many_guests(db, villa, guest):
    with pytest.raises(BadRequestError, match="Maximum 6 guests allowed"):
        await booking_service.create_booking(
            db, guest, _payload(villa, days(10), days(12), total_adults=5, total_children=2), today=TODAY
        )


async def test_invalid_dates(db, villa, guest):
    with pytest.raises(BadRequestError) as exc:
        await booking_service.create_booking(db, guest, _payload(villa, days(-1), days(2)), today=TODAY)
    assert exc.value.code == "INVALID_BOOKING_DATES"


async def test_underage_guest_refused(db, villa, guest):
    with pytest.raises(BadRequestError, match="at least 18"):
        await booking_service.create_booking(
            db, guest, _payload(villa, days(10), days(12), date_of_birth=date(TODAY.year - 10, 1, 1)),
            today=TODAY,
        )


async def test_confirm_marks_actor(db, villa, guest, host, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(15))
    confirmed = await booking_service.confirm_booking(db, booking.id, host)
    assert confirmed.status == BookingStatus.CONFIRMED.value
    assert confirmed.confirmed_by_id == host.id
    assert confirmed.confirmed_at is not None


async def test_confirm_rechecks_availability(db, villa, guest, host, insert_booking):
    await insert_booking(villa, guest, days(10), days(15), status=BookingStatus.CONFIRMED)
    late = await insert_booking(villa, guest, days(12), days(14))

    late_id = late.id

    with pytest.raises(ConflictError, match="no longer available"):
        await booking_service.confirm_booking(db, late_id, host)
    assert (await crud_bookings.get_booking(db, late_id)).status == BookingStatus.PENDING.value


async def test_create_and_confirm_use_locking_conflict_reads(db, villa, guest, host, monkeypatch):
    calls = []
    real = crud_bookings.find_conflicting_bookings

    async def recording(*args, **kwargs):
        calls.append(kwargs.get("for_update"))
        return await real(*args, **kwargs)

    monkeypatch.setattr(crud_bookings, "find_conflicting_bookings", recording)
    booking = await booking_service.create_booking(db, guest, _payload(villa, days(10), days(12)), today=TODAY)
    await booking_service.confirm_booking(db, booking.id, host)
    assert calls == [True, True]


async def test_locking_conflict_read(db, villa, guest, insert_booking, monkeypatch):
    existing = await insert_booking(villa, guest, days(10), days(15), status=BookingStatus.CONFIRMED)
    statements = []
    execute = db.execute

    async def recording(stmt, *args, **kwargs):
        statements.append(stmt)
        return await execute(stmt, *args, **kwargs)

    monkeypatch.setattr(db, "execute", recording)
    conflicts = await crud_bookings.find_conflicting_bookings(db, villa.id, days(12), days(13), for_update=True)

    assert [b.id for b in conflicts] == [existing.id]
    assert "FOR UPDATE" in str(statements[-1].compile(dialect=mysql.dialect()))

async def test_confirm_twice_is_a_state_error(db, villa, guest, host, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(15), status=BookingStatus.CONFIRMED)
    with pytest.raises(BookingStateError, match="Cannot confirm booking with status: CONFIRMED"):
        await booking_service.confirm_booking(db, booking.id, host)


async def test_guest_cannot_confirm(db, villa, guest, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(15))
    with pytest.raises(ForbiddenError):
        await booking_service.confirm_booking(db, booking.id, guest)


async def test_reject_records_reason(db, villa, guest, admin, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(15))
    rejected = await booking_service.reject_booking(db, booking.id, admin, "Maintenance week")
    assert rejected.status == BookingStatus.REJECTED.value
    assert rejected.rejection_reason == "Maintenance week"


async def test_cancel_before_and_after_check_in(db, villa, guest, insert_booking):
    upcoming = await insert_booking(villa, guest, days(5), days(8), status=BookingStatus.CONFIRMED)
    cancelled = await booking_service.cancel_booking(db, upcoming.id, guest, "Plans changed", today=TODAY)
    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_by_id == guest.id

    started = await insert_booking(villa, guest, days(0), days(3), status=BookingStatus.CONFIRMED)
    with pytest.raises(BookingStateError, match="Cannot cancel booking after check-in date"):
        await booking_service.cancel_booking(db, started.id, guest, today=TODAY)


async def test_cancel_checks_status_before_dates(db, villa, guest, insert_booking):
    finished = await insert_booking(villa, guest, days(5), days(8), status=BookingStatus.COMPLETED)
    with pytest.raises(BookingStateError, match="Cannot cancel booking with status: COMPLETED"):
        await booking_service.cancel_booking(db, finished.id, guest, today=TODAY)


async def test_stranger_cannot_cancel(db, villa, guest, make_user, insert_booking):
    booking = await insert_booking(villa, guest, days(5), days(8))
    stranger = await make_user()
    with pytest.raises(ForbiddenError):
        await booking_service.cancel_booking(db, booking.id, stranger, today=TODAY)


async def test_complete_requires_past_check_out(db, villa, guest, insert_booking):
    future = await insert_booking(villa, guest, days(1), days(4), status=BookingStatus.CONFIRMED)
    with pytest.raises(BookingStateError, match="before check-out"):
        await booking_service.complete_booking(db, future.id, today=TODAY)

    done = await insert_booking(villa, guest, days(-5), days(0), status=BookingStatus.CONFIRMED)
    completed = await booking_service.complete_booking(db, done.id, today=TODAY)
    assert completed.status == BookingStatus.COMPLETED.value
    assert completed.completed_at is not None


async def test_complete_past_bookings(db, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(-10), days(-7), status=BookingStatus.CONFIRMED)
    await insert_booking(villa, guest, days(-6), days(-2), status=BookingStatus.CONFIRMED)
    await insert_booking(villa, guest, days(-4), days(-1), status=BookingStatus.PENDING)
    await insert_booking(villa, guest, days(-1), days(0), status=BookingStatus.CONFIRMED)

    seen = []

    async def on_completed(booking):
        seen.append(booking.id)

    result = await booking_service.complete_past_bookings(db, today=TODAY, on_completed=on_completed)
    assert result == {"completed": 2, "failed": 0}
    assert len(seen) == 2


async def test_failing_follow_up_does_not_count_as_failure(db, villa, guest, insert_booking):
    first = await insert_booking(villa, guest, days(-10), days(-7), status=BookingStatus.CONFIRMED)
    second = await insert_booking(villa, guest, days(-6), days(-2), status=BookingStatus.CONFIRMED)
    ids = [first.id, second.id]

    async def on_completed(booking):
        raise RuntimeError("smtp down")

    result = await booking_service.complete_past_bookings(db, today=TODAY, on_completed=on_completed)
    assert result == {"completed": 2, "failed": 0}
    for booking_id in ids:
        assert (await crud_bookings.get_booking(db, booking_id)).status == BookingStatus.COMPLETED.value


async def test_one_failed_completion_does_not_stop_the_batch(db, villa, guest, insert_booking, monkeypatch):
    broken = await insert_booking(villa, guest, days(-10), days(-7), status=BookingStatus.CONFIRMED)
    fine = await insert_booking(villa, guest, days(-6), days(-2), status=BookingStatus.CONFIRMED)
    broken_id, fine_id = broken.id, fine.id
    real = booking_service.complete_booking

    async def flaky(db, booking_id, today=None):
        if booking_id == broken_id:
            raise RuntimeError("deadlock")
        return await real(db, booking_id, today=today)

    monkeypatch.setattr(booking_service, "complete_booking", flaky)
    result = await booking_service.complete_past_bookings(db, today=TODAY)

    assert result == {"completed": 1, "failed": 1}
    assert (await crud_bookings.get_booking(db, broken_id)).status == BookingStatus.CONFIRMED.value
    assert (await crud_bookings.get_booking(db, fine_id)).status == BookingStatus.COMPLETED.value


async def test_update_services_recomputes_totals(db, villa, guest, service, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(12))
    updated = await booking_service.update_booking_services(
        db, booking.id, guest, [SelectedService(service_id=service.id, quantity=3)]
    )
    assert updated.services_total == Decimal("105.00")
    assert updated.grand_total == Decimal("305.00")


async def test_toggle_paid_only_for_confirmed(db, villa, guest, host, insert_booking):
    pending = await insert_booking(villa, guest, days(10), days(12))
    with pytest.raises(BookingStateError):
        await booking_service.toggle_paid(db, pending.id, host)

    confirmed = await insert_booking(villa, guest, days(20), days(22), status=BookingStatus.CONFIRMED)
    toggled = await booking_service.toggle_paid(db, confirmed.id, host)
    assert toggled.is_paid is True


async def test_booked_dates_for_villa(db, villa, guest, insert_booking):
    await insert_booking(villa, guest, date(2030, 3, 30), date(2030, 4, 3), status=BookingStatus.CONFIRMED)
    await insert_booking(villa, guest, date(2030, 4, 10), date(2030, 4, 12), status=BookingStatus.CANCELLED)

    result = await booking_service.get_villa_booked_dates(db, villa, year=2030, month=4)
    assert result["booked_dates"] == ["2030-04-01", "2030-04-02"]
    assert result["total_booked_days"] == 2


async def test_scope_filters(guest, host):
    assert booking_service.scope_filters(guest, {"guest_id": 999})["guest_id"] == guest.id
    assert booking_service.scope_filters(host, {})["owner_id"] == host.id
    with pytest.raises(ForbiddenError):
        booking_service.scope_filters(host, {"owner_id": host.id + 100})
    pinned = booking_service.scope_filters(host, {"guest_id": 7, "villa_id": 3})
    assert pinned == {"guest_id": 7, "villa_id": 3, "owner_id": host.id}
