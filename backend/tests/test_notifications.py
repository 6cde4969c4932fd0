from datetime import date
from decimal import Decimal

import pytest

from villa_booking.core.errors import NotificationError
from villa_booking.db.enums import BookingEvent
from villa_booking.services import notifications
from villa_booking.services.notifications import (
    BookingNotice,
    create_booking_message,
    format_phone_number,
    is_valid_phone_number,
    render_booking_email,
    sanitize_message,
)


@pytest.fixture
def notice():
    return BookingNotice(
        booking_id=42,
        status="REJECTED",
        villa_title="Sea Breeze Villa",
        villa_address="12 Corniche Road",
        villa_city="Hurghada",
        villa_country="Egypt",
        guest_name="Gabe Guest",
        guest_email="gabe@example.com",
        guest_phone="+201001234567",
        owner_name="Hana Host",
        owner_email="hana@example.com",
        check_in=date(2025, 7, 1),
        check_out=date(2025, 7, 4),
        total_guests=2,
        grand_total=Decimal("370.00"),
        payment_method="BANK_TRANSFER",
        is_paid=False,
        rejection_reason="Villa under maintenance",
    )


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("01012345678", "+201012345678"),
        ("1012345678", "+201012345678"),
        ("00447911123456", "+447911123456"),
        ("+1 (555) 123-4567", "+15551234567"),
        ("447911123456", "+447911123456"),
    ],
)
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


def test_format_phone_number_custom_country():
    assert format_phone_number("0612345678", default_country_code="31") == "+31612345678"


def test_format_phone_number_requires_value():
    with pytest.raises(ValueError):
        format_phone_number("")


def test_is_valid_phone_number():
    assert is_valid_phone_number("01012345678")
    assert not is_valid_phone_number("12345")
    assert not is_valid_phone_number("")


def test_sanitize_message():
    assert sanitize_message("  <b>Hello</b>\n\n  world ") == "bHello/b world"
    assert len(sanitize_message("x" * 500)) == 200
    assert sanitize_message("") == ""


def test_booking_message_mentions_reference():
    text = create_booking_message("Gabe", "Sea Breeze", date(2025, 7, 1), date(2025, 7, 4), 42)
    assert "Booking Ref: 42" in text
    assert "Sea Breeze" in text


def test_guest_rejection_email(notice):
    subject, html_body, text = render_booking_email(notice, BookingEvent.BOOKING_REJECTED, for_owner=False)
    assert subject == "Booking Request Declined - Sea Breeze Villa"
    assert "Hello Gabe Guest!" in html_body
    assert "Villa under maintenance" in text
    # the guest copy does not repeat the guest's own contact block
    assert "Guest: " not in text


def test_owner_email_includes_guest_contact(notice):
    subject, _, text = render_booking_email(notice, BookingEvent.NEW_BOOKING, for_owner=True)
    assert subject == "New Booking Request - Sea Breeze Villa"
    assert "Guest: Gabe Guest (gabe@example.com)" in text
    assert "Phone: +201001234567" in text


async def test_send_email_disabled_returns_false():
    assert await notifications.send_email("a@example.com", "Hi", "<p>Hi</p>") is False


async def test_dispatch_never_raises(notice, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(notifications, "send_booking_emails", broken)
    await notifications.dispatch_booking_event(notice, BookingEvent.NEW_BOOKING)


def test_whatsapp_requires_configuration():
    with pytest.raises(NotificationError) as exc:
        notifications.get_whatsapp_client()
    assert exc.value.code == "WHATSAPP_NOT_CONFIGURED"
