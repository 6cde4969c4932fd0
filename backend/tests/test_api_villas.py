from conftest import auth_headers, days
from villa_booking.db.enums import Role

VILLA = {
    "title": "Palm Garden Villa",
    "description": "Quiet villa with a private garden.",
    "address": "4 Palm Street",
    "city": "El Gouna",
    "country": "Egypt",
    "price_per_night": "250.00",
    "max_guests": 8,
    "bedrooms": 4,
    "bathrooms": 3,
    "amenities": ["Pool", "Garden", " ", "Pool"],
    "images": ["https://img.example.com/palm.jpg"],
}


async def test_host_creates_villa(client, host):
    res = await client.post("/api/villas", json=VILLA, headers=auth_headers(host))
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["owner_id"] == host.id
    assert data["status"] == "AVAILABLE"
    assert data["amenities"] == ["Pool", "Garden"]
    assert data["owner"]["full_name"] == "Hana Host"


async def test_guest_cannot_create_villa(client, guest):
    res = await client.post("/api/villas", json=VILLA, headers=auth_headers(guest))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "FORBIDDEN"


async def test_invalid_villa_payload(client, host):
    res = await client.post("/api/villas", json={**VILLA, "price_per_night": "0"}, headers=auth_headers(host))
    assert res.status_code == 422


async def test_list_filters(client, villa):
    res = await client.get("/api/villas", params={"city": "hurg", "amenities": "Pool,WiFi"})
    body = res.json()
    assert body["meta"]["pagination"]["total"] == 1
    assert body["data"][0]["id"] == villa.id

    res = await client.get("/api/villas", params={"amenities": "Pool,Sauna"})
    assert res.json()["meta"]["pagination"]["total"] == 0

    res = await client.get("/api/villas", params={"max_price": "50"})
    assert res.json()["meta"]["pagination"]["total"] == 0


async def test_list_excludes_booked_villas(client, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(10), days(15))
    params = {"check_in": days(12).isoformat(), "check_out": days(14).isoformat()}
    assert (await client.get("/api/villas", params=params)).json()["meta"]["pagination"]["total"] == 0

    params = {"check_in": days(15).isoformat(), "check_out": days(17).isoformat()}
    assert (await client.get("/api/villas", params=params)).json()["meta"]["pagination"]["total"] == 1


async def test_unknown_villa_is_404(client):
    res = await client.get("/api/villas/9999")
    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Villa not found"
    assert body["error"]["statusCode"] == 404


async def test_only_owner_updates(client, villa, host, make_user):
    other_host = await make_user(Role.HOST)
    res = await client.put(f"/api/villas/{villa.id}", json={"title": "Hijacked"}, headers=auth_headers(other_host))
    assert res.status_code == 403

    res = await client.put(
        f"/api/villas/{villa.id}",
        json={"title": "Sea Breeze Deluxe", "amenities": ["Pool"]},
        headers=auth_headers(host),
    )
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Sea Breeze Deluxe"
    assert res.json()["data"]["amenities"] == ["Pool"]


async def test_delete_refused_with_active_bookings(client, villa, guest, admin, insert_booking):
    await insert_booking(villa, guest, days(10), days(15))
    res = await client.delete(f"/api/villas/{villa.id}", headers=auth_headers(admin))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VILLA_HAS_ACTIVE_BOOKINGS"


async def test_delete_is_soft(client, villa, admin):
    res = await client.delete(f"/api/villas/{villa.id}", headers=auth_headers(admin))
    assert res.status_code == 200
    assert (await client.get("/api/villas")).json()["meta"]["pagination"]["total"] == 0
    assert (await client.get(f"/api/villas/{villa.id}")).json()["data"]["is_active"] is False


async def test_booked_dates_endpoint(client, villa, guest, insert_booking):
    await insert_booking(villa, guest, days(3), days(5))
    res = await client.get(f"/api/villas/{villa.id}/booked-dates")
    data = res.json()["data"]
    assert data["booked_dates"] == [days(3).isoformat(), days(4).isoformat()]
    assert data["total_booked_days"] == 2


async def test_month_requires_year(client, villa):
    res = await client.get(f"/api/villas/{villa.id}/booked-dates", params={"month": 4})
    assert res.status_code == 400


async def test_villa_statistics(client, villa, host):
    res = await client.get(f"/api/villas/{villa.id}/statistics", headers=auth_headers(host))
    assert res.status_code == 200
    assert res.json()["data"]["villa_id"] == villa.id


async def test_my_villas(client, villa, host):
    res = await client.get("/api/villas/my", headers=auth_headers(host))
    assert [v["id"] for v in res.json()["data"]] == [villa.id]
