# villa_booking/api/routers/contact.py
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import require_roles
from villa_booking.core.errors import NotFoundError
from villa_booking.core.responses import paginated_response, success_response
from villa_booking.db import crud_contacts
from villa_booking.db.enums import Role
from villa_booking.db.session import get_db
from villa_booking.schemas.contact import ContactCreate, ContactOut, ContactUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_or_404(db: AsyncSession, contact_id: int):
    contact = await crud_contacts.get_contact(db, contact_id)
    if not contact:
        raise NotFoundError("Contact message not found")
    return contact


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contact(body: ContactCreate, db: AsyncSession = Depends(get_db)):
    contact = await crud_contacts.create_contact(db, body.name, body.email, body.message)
    logger.info("contact message %s received", contact.id)
    return success_response(ContactOut.model_validate(contact), "Message sent successfully")


@router.get("")
async def list_contacts(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
    is_read: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort_by: Literal["created_at", "name", "email"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
):
    contacts, total = await crud_contacts.list_contacts(
        db, is_read=is_read, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return paginated_response(
        [ContactOut.model_validate(c) for c in contacts],
        page=page,
        limit=limit,
        total=total,
        message="Contacts retrieved successfully",
    )


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    return success_response({"count": await crud_contacts.count_unread(db)}, "Unread count retrieved")


@router.get("/{contact_id}")
async def get_contact(
    contact_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    contact = await _get_or_404(db, contact_id)
    return success_response(ContactOut.model_validate(contact), "Contact retrieved successfully")


@router.put("/{contact_id}")
async def update_contact(
    contact_id: int,
    body: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    contact = await crud_contacts.set_read(db, await _get_or_404(db, contact_id), body.is_read)
    return success_response(ContactOut.model_validate(contact), "Contact updated successfully")


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    await crud_contacts.delete_contact(db, await _get_or_404(db, contact_id))
    return success_response(None, "Contact deleted successfully")
