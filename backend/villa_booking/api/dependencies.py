# villa_booking/api/dependencies.py
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.core.security import verify_access_token
from villa_booking.db import crud_users
from villa_booking.db.enums import Role
from villa_booking.db.models import User
from villa_booking.db.session import get_db

logger = logging.getLogger(__name__)

# Reusable HTTP bearer security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Extracts JWT from Authorization: Bearer <token>, verifies it,
    and returns the corresponding active User from DB.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError:
        logger.info("rejected access token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user = await crud_users.get_user(db, int(payload["user_id"]))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    return user


def require_roles(*roles: Role):
    """
    Dependency factory:
      current_user = Depends(require_roles(Role.HOST))
    Admins always pass.
    """
    allowed = {r.value for r in roles} | {Role.ADMIN.value}

    async def _inner(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return _inner

