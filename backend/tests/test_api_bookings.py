from conftest import auth_headers, days
from villa_booking.db.enums import BookingStatus, Role


def _booking_body(villa, check_in, check_out, **extra):
    body = {
        "villa_id": villa.id,
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "total_adults": 2,
        "total_children": 1,
        "payment_method": "BANK_TRANSFER",
        "phone": "+201001234567",
        "date_of_birth": "1990-05-17",
    }
    body.update(extra)
    return body


async def test_booking_lifecycle(client, villa, guest, host, service):
    body = _booking_body(
        villa, days(10), days(13),
        selected_services=[{"service_id": service.id, "quantity": 1, "scheduled_time": "09:30"}],
    )
    res = await client.post("/api/bookings", json=body, headers=auth_headers(guest))
    assert res.status_code == 201
    booking = res.json()["data"]
    assert booking["status"] == "PENDING"
    assert booking["total_guests"] == 3
    assert float(booking["total_price"]) == 300.0
    assert float(booking["grand_total"]) == 335.0
    assert booking["booking_services"][0]["service"]["title"] == "Airport Transfer"

    res = await client.put(f"/api/bookings/{booking['id']}/confirm", headers=auth_headers(host))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "CONFIRMED"

    res = await client.put(f"/api/bookings/{booking['id']}/payment", headers=auth_headers(host))
    assert res.json()["data"]["is_paid"] is True
    assert res.json()["message"] == "Booking marked as paid"

    res = await client.put(
        f"/api/bookings/{booking['id']}/cancel", json={"reason": "Flight cancelled"}, headers=auth_headers(guest)
    )
    assert res.status_code == 200
    assert res.json()["data"]["cancellation_reason"] == "Flight cancelled"


async def test_double_booking_conflicts(client, villa, guest, make_user):
    res = await client.post("/api/bookings", json=_booking_body(villa, days(10), days(15)), headers=auth_headers(guest))
    assert res.status_code == 201

    other = await make_user()
    res = await client.post("/api/bookings", json=_booking_body(villa, days(14), days(16)), headers=auth_headers(other))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "DATES_UNAVAILABLE"


async def test_booking_requires_phone(client, villa, guest):
    body = _booking_body(villa, days(10), days(12))
    del body["phone"]
    res = await client.post("/api/bookings", json=body, headers=auth_headers(guest))
    assert res.status_code == 422


async def test_booking_requires_login(client, villa):
    res = await client.post("/api/bookings", json=_booking_body(villa, days(10), days(12)))
    assert res.status_code == 401


async def test_availability(client, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(10), days(15))
    res = await client.get(
        "/api/bookings/availability",
        params={"villa_id": villa.id, "check_in": days(15).isoformat(), "check_out": days(18).isoformat()},
    )
    assert res.json()["data"]["available"] is True

    res = await client.get(
        "/api/bookings/availability",
        params={"villa_id": villa.id, "check_in": days(9).isoformat(), "check_out": days(11).isoformat()},
    )
    assert res.json()["data"]["available"] is False


async def test_guest_sees_only_own_bookings(client, villa, guest, make_user, insert_booking):
    mine = await insert_booking(villa, guest, days(10), days(12))
    other = await make_user()
    theirs = await insert_booking(villa, other, days(20), days(22))

    res = await client.get("/api/bookings", headers=auth_headers(guest))
    assert [b["id"] for b in res.json()["data"]] == [mine.id]

    res = await client.get(f"/api/bookings/{theirs.id}", headers=auth_headers(guest))
    assert res.status_code == 403


async def test_host_sees_bookings_on_their_villas(client, villa, guest, host, make_user, insert_booking):
    await insert_booking(villa, guest, days(10), days(12))
    res = await client.get("/api/bookings", headers=auth_headers(host))
    assert res.json()["meta"]["pagination"]["total"] == 1

    res = await client.get("/api/bookings", params={"owner_id": host.id + 100}, headers=auth_headers(host))
    assert res.status_code == 403


async def test_host_filters_stay_inside_own_villas(client, villa, guest, host, make_user, insert_booking):
    await insert_booking(villa, guest, days(10), days(12))
    other_host = await make_user(Role.HOST)

    for params in ({"guest_id": guest.id}, {"villa_id": villa.id}):
        res = await client.get("/api/bookings", params=params, headers=auth_headers(other_host))
        assert res.status_code == 200
        assert res.json()["meta"]["pagination"]["total"] == 0

        res = await client.get("/api/bookings", params=params, headers=auth_headers(host))
        assert res.json()["meta"]["pagination"]["total"] == 1


async def test_status_filter_and_my_bookings(client, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(10), days(12))
    await insert_booking(villa, guest, days(20), days(22), status=BookingStatus.CANCELLED)

    res = await client.get("/api/bookings/my", params={"status": "CANCELLED"}, headers=auth_headers(guest))
    assert res.json()["meta"]["pagination"]["total"] == 1
    assert res.json()["data"][0]["status"] == "CANCELLED"


async def test_guest_cannot_confirm(client, villa, guest, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(12))
    res = await client.put(f"/api/bookings/{booking.id}/confirm", headers=auth_headers(guest))
    assert res.status_code == 403


async def test_reject_twice_is_invalid_state(client, villa, guest, host, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(12))
    res = await client.put(
        f"/api/bookings/{booking.id}/reject", json={"reason": "Not available"}, headers=auth_headers(host)
    )
    assert res.json()["data"]["status"] == "REJECTED"

    res = await client.put(f"/api/bookings/{booking.id}/reject", headers=auth_headers(host))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_BOOKING_STATE"


async def test_admin_completes_finished_stay(client, villa, guest, admin, insert_booking):
    booking = await insert_booking(villa, guest, days(-4), days(-1), status=BookingStatus.CONFIRMED)
    res = await client.put(f"/api/bookings/{booking.id}/complete", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "COMPLETED"


async def test_replace_services(client, villa, guest, service, insert_booking):
    booking = await insert_booking(villa, guest, days(10), days(12))
    res = await client.put(
        f"/api/bookings/{booking.id}/services",
        json={"selected_services": [{"service_id": service.id, "quantity": 2}]},
        headers=auth_headers(guest),
    )
    assert res.status_code == 200
    assert float(res.json()["data"]["services_total"]) == 70.0

    res = await client.put(
        f"/api/bookings/{booking.id}/services", json={"selected_services": []}, headers=auth_headers(guest)
    )
    assert res.status_code == 422
