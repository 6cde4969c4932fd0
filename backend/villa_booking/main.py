import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from villa_booking.core.config import settings
from villa_booking.core.errors import setup_exception_handlers
from villa_booking.core.logging_config import configure_logging
from villa_booking.db.base import Base
from villa_booking.db.session import engine
from villa_booking.api.routers import (
    auth as auth_router,
    users as users_router,
    villas as villas_router,
    bookings as bookings_router,
    services as services_router,
    contact as contact_router,
    notifications as notifications_router,
    stats as stats_router,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# ---------------------------
# CORS
# ---------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------
# Error envelope
# ---------------------------
setup_exception_handlers(app)

# ---------------------------
# Startup
# ---------------------------
@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)

# ---------------------------
# Routers
# ---------------------------
app.include_router(auth_router.router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router.router, prefix="/api/user", tags=["users"])
app.include_router(villas_router.router, prefix="/api/villas", tags=["villas"])
app.include_router(bookings_router.router, prefix="/api/bookings", tags=["bookings"])
app.include_router(services_router.router, prefix="/api/service", tags=["services"])
app.include_router(contact_router.router, prefix="/api/contact", tags=["contact"])
app.include_router(notifications_router.email_router, prefix="/api/email", tags=["email"])
app.include_router(notifications_router.whatsapp_router, prefix="/api/whatsapp", tags=["whatsapp"])
app.include_router(stats_router.router, prefix="/api/stats", tags=["stats"])

# ---------------------------
# Health check
# ---------------------------
@app.get("/ping")
async def ping():
    return {"status": "ok"}

# ---------------------------
# Run
# ---------------------------
if __name__ == "__main__":
    uvicorn.run("villa_booking.main:app", host="0.0.0.0", port=8000, reload=True)
