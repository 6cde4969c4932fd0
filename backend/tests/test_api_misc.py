from conftest import auth_headers, days
from villa_booking.db.enums import BookingStatus


async def test_ping(client):
    res = await client.get("/ping")
    assert res.json() == {"status": "ok"}


async def test_unknown_route_uses_error_envelope(client):
    res = await client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"


async def test_contact_flow(client, admin, guest):
    res = await client.post(
        "/api/contact",
        json={"name": "Sam", "email": "Sam@Example.com", "message": "Is the pool heated?"},
    )
    assert res.status_code == 201
    contact = res.json()["data"]
    assert contact["email"] == "sam@example.com"
    assert contact["is_read"] is False

    assert (await client.get("/api/contact", headers=auth_headers(guest))).status_code == 403

    headers = auth_headers(admin)
    assert (await client.get("/api/contact/unread-count", headers=headers)).json()["data"]["count"] == 1

    res = await client.put(f"/api/contact/{contact['id']}", json={"is_read": True}, headers=headers)
    assert res.json()["data"]["is_read"] is True
    assert (await client.get("/api/contact/unread-count", headers=headers)).json()["data"]["count"] == 0

    res = await client.get("/api/contact", params={"is_read": True}, headers=headers)
    assert res.json()["meta"]["pagination"]["total"] == 1

    assert (await client.delete(f"/api/contact/{contact['id']}", headers=headers)).status_code == 200
    assert (await client.get(f"/api/contact/{contact['id']}", headers=headers)).status_code == 404


async def test_contact_limit_capped(client, admin):
    res = await client.get("/api/contact", params={"limit": 51}, headers=auth_headers(admin))
    assert res.status_code == 422


async def test_service_catalogue(client, host, admin, villa, service):
    res = await client.get("/api/service")
    assert res.json()["meta"]["pagination"]["total"] == 1

    res = await client.post(
        "/api/service",
        json={
            "title": "Private Chef Dinner",
            "description": "Three course dinner cooked at the villa.",
            "category": "CUSTOM",
            "price": "90.00",
            "duration": "3 hours",
            "villa_id": villa.id,
        },
        headers=auth_headers(host),
    )
    assert res.status_code == 201
    chef = res.json()["data"]

    res = await client.get(f"/api/villas/{villa.id}/services")
    assert {s["id"] for s in res.json()["data"]} == {service.id, chef["id"]}

    res = await client.delete(f"/api/service/{chef['id']}", headers=auth_headers(host))
    assert res.status_code == 403
    res = await client.delete(f"/api/service/{chef['id']}", headers=auth_headers(admin))
    assert res.status_code == 200
    assert (await client.get("/api/service")).json()["meta"]["pagination"]["total"] == 1


async def test_dashboard(client, admin, guest, villa, insert_booking):
    await insert_booking(villa, guest, days(-6), days(-3), status=BookingStatus.COMPLETED)
    await insert_booking(villa, guest, days(5), days(7))

    res = await client.get("/api/stats/dashboard", headers=auth_headers(admin))
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["bookings"]["total_bookings"] == 2
    assert float(data["financial"]["total_revenue"]) == 300.0
    assert float(data["financial"]["total_commissions"]) == 30.0
    assert data["users"]["users_by_role"]["admins"] == 1


async def test_dashboard_is_admin_only(client, host):
    res = await client.get("/api/stats/dashboard", headers=auth_headers(host))
    assert res.status_code == 403


async def test_booking_email_resend_with_email_disabled(client, admin, guest, villa, insert_booking):
    booking = await insert_booking(villa, guest, days(5), days(7))
    res = await client.post(
        "/api/email/booking",
        json={"booking_id": booking.id, "event": "BOOKING_CONFIRMED"},
        headers=auth_headers(admin),
    )
    assert res.status_code == 200
    assert res.json()["data"]["sent"] == {"guest": False, "owner": False}


async def test_whatsapp_not_configured(client, admin, guest, villa, insert_booking):
    booking = await insert_booking(villa, guest, days(5), days(7))
    res = await client.post(
        "/api/whatsapp/send-booking-notification",
        json={"booking_id": booking.id},
        headers=auth_headers(admin),
    )
    assert res.status_code == 503
    assert res.json()["error"]["code"] == "WHATSAPP_NOT_CONFIGURED"
