# villa_booking/api/routers/services.py
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import require_roles
from villa_booking.core.errors import ForbiddenError, NotFoundError
from villa_booking.core.responses import paginated_response, success_response
from villa_booking.db import crud_services, crud_villas
from villa_booking.db.enums import Role, ServiceCategory, ServiceDifficulty
from villa_booking.db.session import get_db
from villa_booking.schemas.service import ServiceCreate, ServiceOut, ServiceUpdate
from villa_booking.services.booking_rules import to_money

router = APIRouter()


async def _check_villa_scope(db: AsyncSession, user, villa_id: Optional[int]) -> None:
    """A host may only scope a service to one of their own villas."""
    if villa_id is None:
        return
    villa = await crud_villas.get_villa(db, villa_id)
    if not villa:
        raise NotFoundError("Villa not found")
    if user.role != Role.ADMIN.value and villa.owner_id != user.id:
        raise ForbiddenError("You can only attach services to your own villas")


def _service_fields(data: dict) -> dict:
    for key in ("category", "difficulty"):
        if data.get(key) is not None:
            data[key] = data[key].value
    if data.get("price") is not None:
        data["price"] = to_money(data["price"])
    return data


@router.get("")
async def list_services(
    db: AsyncSession = Depends(get_db),
    category: Optional[ServiceCategory] = None,
    difficulty: Optional[ServiceDifficulty] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    max_group_size: Optional[int] = Query(None, ge=1),
    is_active: Optional[bool] = None,
    is_featured: Optional[bool] = None,
    villa_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["title", "price", "category", "difficulty", "created_at"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
):
    filters = {
        "category": category.value if category else None,
        "difficulty": difficulty.value if difficulty else None,
        "min_price": min_price,
        "max_price": max_price,
        "max_group_size": max_group_size,
        "is_active": is_active,
        "is_featured": is_featured,
        "villa_id": villa_id,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    services, total = await crud_services.list_services(db, filters=filters, page=page, limit=limit)
    return paginated_response(
        [ServiceOut.model_validate(s) for s in services],
        page=page,
        limit=limit,
        total=total,
        message="Services retrieved successfully",
    )


@router.get("/{service_id}")
async def get_service(service_id: int, db: AsyncSession = Depends(get_db)):
    service = await crud_services.get_service(db, service_id)
    if not service:
        raise NotFoundError("Service not found")
    return success_response(ServiceOut.model_validate(service), "Service retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_service(
    body: ServiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    await _check_villa_scope(db, current_user, body.villa_id)
    service = await crud_services.create_service(db, **_service_fields(body.model_dump()))
    return success_response(ServiceOut.model_validate(service), "Service created successfully")


@router.put("/{service_id}")
async def update_service(
    service_id: int,
    body: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.HOST)),
):
    service = await crud_services.get_service(db, service_id)
    if not service:
        raise NotFoundError("Service not found")
    await _check_villa_scope(db, current_user, body.villa_id)
    service = await crud_services.update_service(
        db, service, _service_fields(body.model_dump(exclude_unset=True))
    )
    return success_response(ServiceOut.model_validate(service), "Service updated successfully")


@router.delete("/{service_id}")
async def delete_service(
    service_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    service = await crud_services.get_service(db, service_id)
    if not service:
        raise NotFoundError("Service not found")
    await crud_services.delete_service(db, service)
    return success_response(None, "Service deleted successfully")
