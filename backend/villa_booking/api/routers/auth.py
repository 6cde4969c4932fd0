# villa_booking/api/routers/auth.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import get_current_user
from villa_booking.core.responses import success_response
from villa_booking.core.security import (
    create_access_token,
    create_refresh_token,
    token_claims,
    verify_refresh_token,
)
from villa_booking.db import crud_users
from villa_booking.db.session import get_db
from villa_booking.schemas.auth import RefreshRequest, Token
from villa_booking.schemas.user import UserCreate, UserLogin, UserOut, UserProfile
from villa_booking.services.notifications import send_welcome_email

logger = logging.getLogger(__name__)

router = APIRouter()


async def _issue_tokens(db: AsyncSession, user) -> Dict[str, Any]:
    """
    { access_token, refresh_token, token_type, user } with the refresh
    token persisted so it can be revoked.
    """
    claims = token_claims(user)
    access = create_access_token(claims)
    refresh = create_refresh_token(claims)
    await crud_users.save_refresh_token(db, user.id, refresh)
    return Token(
        access_token=access,
        refresh_token=refresh,
        user=UserOut.model_validate(user),
    ).model_dump()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    user = await crud_users.create_user(
        db=db,
        full_name=payload.full_name.strip(),
        email=payload.email,
        password=payload.password,
    )
    logger.info("user %s registered as %s", user.id, user.role)
    background_tasks.add_task(send_welcome_email, user.full_name, user.email)
    return success_response(await _issue_tokens(db, user), "User registered successfully")


@router.post("/login")
async def login(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await crud_users.authenticate_user(db, payload.email, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    return success_response(await _issue_tokens(db, user), "Login successful")


@router.post("/refresh")
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        payload = verify_refresh_token(body.refresh_token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    if not await crud_users.is_refresh_token_active(db, body.refresh_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token has been revoked",
        )

    user = await crud_users.get_user(db, int(payload["user_id"]))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return success_response(await _issue_tokens(db, user), "Token refreshed successfully")


@router.post("/logout")
async def logout(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    await crud_users.revoke_refresh_token(db, body.refresh_token)
    return success_response(None, "Logged out successfully")


@router.get("/me")
async def me(current_user=Depends(get_current_user)):
    return success_response(UserProfile.model_validate(current_user), "User retrieved successfully")
