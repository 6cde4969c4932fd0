# villa_booking/api/routers/stats.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import require_roles
from villa_booking.core.responses import success_response
from villa_booking.db.enums import Role
from villa_booking.db.session import get_db
from villa_booking.services.stats import get_dashboard_stats

router = APIRouter()


@router.get("/dashboard")
async def dashboard(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    stats = await get_dashboard_stats(db)
    return success_response(stats, "Dashboard statistics retrieved successfully")
