# villa_booking/db/crud_users.py

import re
from datetime import date
from typing import Optional, List, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.config import settings
from villa_booking.core.errors import BadRequestError, ConflictError, NotFoundError
from villa_booking.core.security import get_password_hash, verify_password
from villa_booking.db.enums import Role
from villa_booking.db.models import User, UserRefreshToken

PHONE_RE = re.compile(r"^\+?[1-9]\d{8,14}$")


def determine_user_role(email: str) -> Role:
    """
    The configured HOST_EMAIL registers as a host, everyone else as a guest.
    """
    if settings.HOST_EMAIL and email.lower() == settings.HOST_EMAIL.lower():
        return Role.HOST
    return Role.GUEST


def age_on(dob: date, today: date | None = None) -> int:
    today = today or date.today()
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def validate_phone(phone: str) -> str:
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if not PHONE_RE.match(cleaned):
        raise BadRequestError("Invalid phone number format")
    return phone


def validate_date_of_birth(dob: date) -> date:
    age = age_on(dob)
    if age < 18:
        raise BadRequestError("User must be at least 18 years old")
    if age > 120:
        raise BadRequestError("Invalid date of birth")
    return dob


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return res.scalar_one_or_none()


async def list_users(
    db: AsyncSession,
    *,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[User], int]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern))
        )

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    stmt = stmt.order_by(User.id.desc()).offset((page - 1) * limit).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total)


async def create_user(
    db: AsyncSession,
    full_name: str,
    email: str,
    password: str,
    phone: Optional[str] = None,
    date_of_birth: Optional[date] = None,
    role: Optional[Role] = None,
) -> User:
    """
    Create a user with hashed password. Role defaults to determine_user_role(email).
    """
    if await get_user_by_email(db, email):
        raise ConflictError("Email already in use", code="EMAIL_EXISTS")

    user = User(
        full_name=full_name,
        email=email,
        phone=phone,
        date_of_birth=date_of_birth,
        hashed_password=get_password_hash(password),
        role=(role or determine_user_role(email)).value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


async def update_user_role(db: AsyncSession, user_id: int, role: Role) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.role = role.value
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    *,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    date_of_birth: Optional[date] = None,
) -> User:
    """
    Apply only the fields that are provided and differ from the stored values.
    """
    changed = False
    if full_name and full_name != user.full_name:
        user.full_name = full_name
        changed = True
    if email and email.lower() != user.email.lower():
        other = await get_user_by_email(db, email)
        if other and other.id != user.id:
            raise ConflictError("Email already in use", code="EMAIL_EXISTS")
        user.email = email
        changed = True
    if phone and phone != user.phone:
        user.phone = validate_phone(phone)
        changed = True
    if date_of_birth and date_of_birth != user.date_of_birth:
        user.date_of_birth = validate_date_of_birth(date_of_birth)
        changed = True

    if changed:
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str
) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise BadRequestError("Current password is incorrect", code="INVALID_PASSWORD")
    if current_password == new_password:
        raise BadRequestError("New password must be different from the current password")
    user.hashed_password = get_password_hash(new_password)
    db.add(user)
    await db.commit()


async def deactivate_user(db: AsyncSession, user: User) -> User:
    user.is_active = False
    await db.execute(
        update(UserRefreshToken)
        .where(UserRefreshToken.user_id == user.id, UserRefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def missing_profile_fields(user: User) -> List[str]:
    """Fields a guest must fill in before booking."""
    missing = []
    if not user.phone:
        missing.append("phone")
    if not user.date_of_birth:
        missing.append("date_of_birth")
    return missing


async def save_refresh_token(db: AsyncSession, user_id: int, token: str) -> None:
    """
    Store a new refresh token for the user.
    Simple strategy: revoke existing, then insert new.
    """
    await db.execute(
        update(UserRefreshToken)
        .where(UserRefreshToken.user_id == user_id, UserRefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )

    db.add(UserRefreshToken(user_id=user_id, token=token))
    await db.commit()


async def is_refresh_token_active(db: AsyncSession, token: str) -> bool:
    res = await db.execute(
        select(UserRefreshToken.id).where(
            UserRefreshToken.token == token,
            UserRefreshToken.revoked == False,  # noqa: E712
        )
    )
    return res.first() is not None


async def revoke_refresh_token(db: AsyncSession, token: str) -> None:
    """
    Mark a single refresh token as revoked.
    """
    await db.execute(
        update(UserRefreshToken)
        .where(UserRefreshToken.token == token, UserRefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )
    await db.commit()
