"""
Outbound notifications for booking events.

Email goes through a small SMTP client (blocking, so it is pushed onto the
threadpool); WhatsApp goes through the Cloud API over httpx. Booking
state changes call dispatch_booking_event() from a background task with a
BookingNotice snapshot, so nothing here touches the database session.
"""
import html
import logging
import re
import smtplib
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import lru_cache
from typing import Dict, List, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from villa_booking.core.config import settings
from villa_booking.core.errors import NotificationError
from villa_booking.db.enums import BookingEvent

logger = logging.getLogger(__name__)


# ---------------------------
# Snapshot
# ---------------------------

@dataclass
class BookingNotice:
    booking_id: int
    status: str
    villa_title: str
    villa_address: str
    villa_city: str
    villa_country: str
    guest_name: str
    guest_email: str
    guest_phone: Optional[str]
    owner_name: str
    owner_email: str
    check_in: date
    check_out: date
    total_guests: int
    grand_total: Decimal
    payment_method: str
    is_paid: bool
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingNotice":
        villa = booking.villa
        return cls(
            booking_id=booking.id,
            status=booking.status,
            villa_title=villa.title,
            villa_address=villa.address,
            villa_city=villa.city,
            villa_country=villa.country,
            guest_name=booking.guest.full_name,
            guest_email=booking.guest.email,
            guest_phone=booking.guest.phone,
            owner_name=villa.owner.full_name,
            owner_email=villa.owner.email,
            check_in=booking.check_in,
            check_out=booking.check_out,
            total_guests=booking.total_guests,
            grand_total=booking.grand_total,
            payment_method=booking.payment_method,
            is_paid=booking.is_paid,
            rejection_reason=booking.rejection_reason,
            cancellation_reason=booking.cancellation_reason,
        )


# ---------------------------
# SMTP client
# ---------------------------

class EmailClient:
    """Reusable SMTP client with a few retries on transient failures."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        username: str,
        password: str,
        use_ssl: bool = False,
        max_retries: int = 3,
        retry_delay: int = 3,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @contextmanager
    def _connection(self):
        server = None
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30)
            else:
                server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30)
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            yield server
        finally:
            if server:
                try:
                    server.quit()
                except smtplib.SMTPException as e:
                    logger.warning("Error closing SMTP connection: %s", e)

    @staticmethod
    def build_message(
        sender: str, recipients: List[str], subject: str, text_body: str, html_body: Optional[str] = None
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body or "", "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))
        return msg

    def send_email(
        self,
        sender: str,
        recipients: List[str],
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        msg = self.build_message(sender, recipients, subject, text_body, html_body)

        for attempt in range(1, self.max_retries + 1):
            try:
                with self._connection() as server:
                    server.sendmail(sender, recipients, msg.as_string())
                logger.info("Email '%s' sent to %s", subject, ", ".join(recipients))
                return True
            except smtplib.SMTPAuthenticationError:
                logger.error("SMTP authentication failed, check SMTP_USER / SMTP_PASSWORD")
                break
            except (smtplib.SMTPException, OSError) as e:
                logger.error("Email attempt %d failed: %s", attempt, e)
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)

        logger.error("Failed to send email '%s' after all retry attempts", subject)
        return False


@lru_cache()
def get_email_client() -> EmailClient:
    return EmailClient(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_ssl=settings.SMTP_USE_SSL,
    )


async def send_email(to: str, subject: str, html_body: str, text_body: str = "") -> bool:
    if not settings.EMAIL_ENABLED:
        logger.info("Email disabled, skipping '%s' to %s", subject, to)
        return False
    return await run_in_threadpool(
        get_email_client().send_email, settings.EMAIL_FROM, [to], subject, text_body, html_body
    )


# ---------------------------
# Email templates
# ---------------------------

BASE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
  body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
  .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
  .header {{ background: #C75D2C; color: white; padding: 20px; text-align: center; }}
  .content {{ background: #f9f9f9; padding: 20px; }}
  .booking-card {{ background: white; padding: 20px; margin: 20px 0; border-radius: 8px; }}
  .status {{ padding: 8px 16px; border-radius: 20px; font-weight: bold; }}
</style>
</head>
<body>
<div class="container">
  <div class="header"><h1>{project}</h1></div>
  <div class="content">{content}</div>
</div>
</body>
</html>"""

# event -> (guest subject, guest headline, owner subject, owner headline)
BOOKING_EMAIL_COPY: Dict[BookingEvent, tuple] = {
    BookingEvent.NEW_BOOKING: (
        "Booking Request Received - {villa}",
        "Thanks for your request! The host will review it shortly.",
        "New Booking Request - {villa}",
        "A new booking request has been received and is waiting for your review.",
    ),
    BookingEvent.BOOKING_CONFIRMED: (
        "Booking Confirmed - {villa}",
        "Great news! Your booking has been confirmed.",
        "Booking Confirmed - {villa}",
        "You confirmed this booking.",
    ),
    BookingEvent.BOOKING_REJECTED: (
        "Booking Request Declined - {villa}",
        "We're sorry, but your booking request has been declined.",
        "Booking Rejected - {villa}",
        "This booking request was rejected.",
    ),
    BookingEvent.BOOKING_CANCELLED: (
        "Booking Cancelled - {villa}",
        "Your booking has been cancelled.",
        "Booking Cancelled - {villa}",
        "A booking for your villa has been cancelled.",
    ),
    BookingEvent.BOOKING_COMPLETED: (
        "Thanks for staying at {villa}",
        "Your stay is complete. We hope you enjoyed it!",
        "Booking Completed - {villa}",
        "This stay has been marked as completed.",
    ),
}


def _fmt_date(value: date) -> str:
    return value.strftime("%a, %d %b %Y")


def render_booking_email(notice: BookingNotice, event: BookingEvent, *, for_owner: bool) -> tuple:
    """
    Returns (subject, html, text) for one recipient.
    """
    guest_subject, guest_line, owner_subject, owner_line = BOOKING_EMAIL_COPY[event]
    subject = (owner_subject if for_owner else guest_subject).format(villa=notice.villa_title)
    headline = owner_line if for_owner else guest_line
    greeting = notice.owner_name if for_owner else notice.guest_name

    rows = [
        ("Booking ID", notice.booking_id),
        ("Villa", notice.villa_title),
        ("Location", f"{notice.villa_address}, {notice.villa_city}, {notice.villa_country}"),
        ("Check-in", _fmt_date(notice.check_in)),
        ("Check-out", _fmt_date(notice.check_out)),
        ("Guests", notice.total_guests),
        ("Total", f"${notice.grand_total}"),
        ("Payment", notice.payment_method.replace("_", " ").title()),
    ]
    if for_owner:
        rows.insert(2, ("Guest", f"{notice.guest_name} ({notice.guest_email})"))
        if notice.guest_phone:
            rows.insert(3, ("Phone", notice.guest_phone))
    if event == BookingEvent.BOOKING_REJECTED and notice.rejection_reason:
        rows.append(("Reason", notice.rejection_reason))
    if event == BookingEvent.BOOKING_CANCELLED and notice.cancellation_reason:
        rows.append(("Reason", notice.cancellation_reason))

    details = "".join(
        f"<p><strong>{label}:</strong> {html.escape(str(value))}</p>" for label, value in rows
    )
    content = (
        f"<h2>Hello {html.escape(greeting)}!</h2>"
        f"<p>{headline}</p>"
        f'<div class="booking-card"><h3>Booking Details</h3>{details}'
        f'<span class="status">{notice.status}</span></div>'
    )
    text = "\n".join([f"Hello {greeting}!", headline, ""] + [f"{label}: {value}" for label, value in rows])
    return subject, BASE_TEMPLATE.format(project=html.escape(settings.PROJECT_NAME), content=content), text


def render_welcome_email(full_name: str) -> tuple:
    subject = f"Welcome to {settings.PROJECT_NAME}!"
    content = (
        f"<h2>Welcome, {html.escape(full_name)}!</h2>"
        "<p>Your account is ready. Browse our villas and book your next stay.</p>"
        f'<p><a href="{settings.FRONTEND_URL}/villas">Explore villas</a></p>'
    )
    text = f"Welcome, {full_name}!\nYour account is ready: {settings.FRONTEND_URL}/villas"
    return subject, BASE_TEMPLATE.format(project=html.escape(settings.PROJECT_NAME), content=content), text


async def send_welcome_email(full_name: str, email: str) -> bool:
    subject, html_body, text = render_welcome_email(full_name)
    return await send_email(email, subject, html_body, text)


async def send_booking_emails(notice: BookingNotice, event: BookingEvent) -> Dict[str, bool]:
    results = {}
    for recipient, to, for_owner in (
        ("guest", notice.guest_email, False),
        ("owner", notice.owner_email, True),
    ):
        subject, html_body, text = render_booking_email(notice, event, for_owner=for_owner)
        results[recipient] = await send_email(to, subject, html_body, text)
    return results


# ---------------------------
# WhatsApp
# ---------------------------

E164_RE = re.compile(r"^\+\d{10,15}$")


def format_phone_number(phone: str, default_country_code: Optional[str] = None) -> str:
    """
    Normalise to E.164. Local numbers (leading 0, or a bare 10-digit
    mobile starting with 1) get the default country code.
    """
    if not phone:
        raise ValueError("Phone number is required")
    country = default_country_code or settings.WHATSAPP_DEFAULT_COUNTRY_CODE

    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    elif cleaned.startswith("0"):
        cleaned = f"+{country}{cleaned[1:]}"

    if not cleaned.startswith("+"):
        if re.fullmatch(r"1\d{9}", cleaned):
            cleaned = f"+{country}{cleaned}"
        else:
            cleaned = "+" + cleaned
    return cleaned


def is_valid_phone_number(phone: str) -> bool:
    try:
        return bool(E164_RE.match(format_phone_number(phone)))
    except ValueError:
        return False


def sanitize_message(message: str, max_length: int = 200) -> str:
    if not message:
        return ""
    message = re.sub(r"[<>]", "", message)
    message = re.sub(r"\s+", " ", message).strip()
    return message[:max_length]


def create_booking_message(
    guest_name: str, villa_title: str, check_in: date, check_out: date, booking_ref
) -> str:
    return (
        f"Hi {sanitize_message(guest_name)}! 👋\n"
        f"Thanks for your booking request for {sanitize_message(villa_title)} "
        f"({_fmt_date(check_in)} - {_fmt_date(check_out)}).\n\n"
        f"📋 *REQUEST RECEIVED*\n"
        f"Booking Ref: {booking_ref}\n\n"
        f"View your booking here: {settings.FRONTEND_URL}/my-bookings\n\n"
        "We're checking availability and will confirm within 24 hours via WhatsApp/email.\n\n"
        "Questions in the meantime? Just message us here!"
    )


class WhatsAppClient:
    """Text messages through the WhatsApp Cloud API."""

    def __init__(self, access_token: str, phone_number_id: str, api_version: str = "v19.0"):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version

    @property
    def messages_url(self) -> str:
        return f"https://graph.facebook.com/{self.api_version}/{self.phone_number_id}/messages"

    async def send_text(self, to_phone: str, body: str) -> Optional[str]:
        """
        Returns the provider message id. Raises NotificationError on failure.
        """
        to_phone = format_phone_number(to_phone)
        if not E164_RE.match(to_phone):
            raise NotificationError("Invalid phone number format", status_code=400, code="INVALID_PHONE")

        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": body},
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.messages_url,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                    json=payload,
                    timeout=10.0,
                )
        except httpx.HTTPError as e:
            logger.error("WhatsApp API error: %s", e)
            raise NotificationError("Could not reach WhatsApp API") from e

        if response.status_code not in (200, 201):
            logger.error("WhatsApp API returned %s: %s", response.status_code, response.text)
            raise NotificationError("WhatsApp API rejected the message")

        messages = response.json().get("messages") or []
        message_id = messages[0].get("id") if messages else None
        logger.info("WhatsApp message %s sent to %s", message_id, to_phone)
        return message_id


def get_whatsapp_client() -> WhatsAppClient:
    if not (settings.WHATSAPP_ACCESS_TOKEN and settings.WHATSAPP_PHONE_NUMBER_ID):
        raise NotificationError(
            "WhatsApp is not configured", status_code=503, code="WHATSAPP_NOT_CONFIGURED"
        )
    return WhatsAppClient(
        settings.WHATSAPP_ACCESS_TOKEN,
        settings.WHATSAPP_PHONE_NUMBER_ID,
        settings.WHATSAPP_API_VERSION,
    )


async def send_booking_whatsapp(notice: BookingNotice) -> Optional[str]:
    if not notice.guest_phone:
        raise NotificationError("Guest has no phone number", status_code=400, code="MISSING_PHONE")
    message = create_booking_message(
        notice.guest_name, notice.villa_title, notice.check_in, notice.check_out, notice.booking_id
    )
    return await get_whatsapp_client().send_text(notice.guest_phone, message)


# ---------------------------
# Dispatch
# ---------------------------

async def dispatch_booking_event(notice: BookingNotice, event: BookingEvent) -> None:
    """
    Best-effort fan-out after a committed state change. Never raises.
    """
    try:
        results = await send_booking_emails(notice, event)
        logger.debug("booking %s %s emails: %s", notice.booking_id, event.value, results)
    except Exception:
        logger.exception("booking %s: %s emails failed", notice.booking_id, event.value)

    if event == BookingEvent.NEW_BOOKING and settings.WHATSAPP_ENABLED and notice.guest_phone:
        try:
            await send_booking_whatsapp(notice)
        except Exception:
            logger.exception("booking %s: WhatsApp notification failed", notice.booking_id)
