# villa_booking/db/crud_contacts.py

from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.db.models import Contact

CONTACT_SORT_FIELDS = {
    "created_at": Contact.created_at,
    "name": Contact.name,
    "email": Contact.email,
}


async def create_contact(db: AsyncSession, name: str, email: str, message: str) -> Contact:
    contact = Contact(name=name.strip(), email=email.lower(), message=message.strip())
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


async def list_contacts(
    db: AsyncSession,
    *,
    is_read: Optional[bool] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Contact], int]:
    stmt = select(Contact)
    if is_read is not None:
        stmt = stmt.where(Contact.is_read.is_(is_read))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = CONTACT_SORT_FIELDS.get(sort_by, Contact.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    res = await db.execute(
        stmt.order_by(order, Contact.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(res.scalars().all()), int(total)


async def get_contact(db: AsyncSession, contact_id: int) -> Optional[Contact]:
    res = await db.execute(select(Contact).where(Contact.id == contact_id))
    return res.scalar_one_or_none()


async def set_read(db: AsyncSession, contact: Contact, is_read: bool) -> Contact:
    contact.is_read = is_read
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


async def delete_contact(db: AsyncSession, contact: Contact) -> None:
    await db.delete(contact)
    await db.commit()


async def count_unread(db: AsyncSession) -> int:
    res = await db.execute(select(func.count(Contact.id)).where(Contact.is_read.is_(False)))
    return int(res.scalar_one())
