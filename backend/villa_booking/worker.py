"""
ARQ background worker.

Run with:  arq villa_booking.worker.WorkerSettings
"""
import logging
from datetime import date

from arq.connections import RedisSettings
from arq.cron import cron

from villa_booking.core.config import settings
from villa_booking.core.logging_config import configure_logging
from villa_booking.db.enums import BookingEvent
from villa_booking.db.session import AsyncSessionLocal
from villa_booking.services.bookings import complete_past_bookings
from villa_booking.services.notifications import BookingNotice, dispatch_booking_event

logger = logging.getLogger(__name__)


async def _notify_completed(booking) -> None:
    await dispatch_booking_event(BookingNotice.from_booking(booking), BookingEvent.BOOKING_COMPLETED)


async def auto_complete_bookings_task(ctx) -> dict:
    """
    Daily: CONFIRMED bookings whose check-out has passed become COMPLETED.
    """
    logger.info("Running auto-complete bookings job")
    async with AsyncSessionLocal() as db:
        summary = await complete_past_bookings(db, today=date.today(), on_completed=_notify_completed)
    logger.info("Auto-complete bookings job finished: %s", summary)
    return summary


async def startup(ctx) -> None:
    configure_logging(settings.LOG_LEVEL)


class WorkerSettings:
    functions = [auto_complete_bookings_task]
    cron_jobs = [
        cron(auto_complete_bookings_task, hour=2, minute=0),  # 02:00 daily
    ]
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    on_startup = startup
    max_jobs = 5
    job_timeout = 600
