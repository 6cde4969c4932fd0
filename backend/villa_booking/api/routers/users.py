# villa_booking/api/routers/users.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from villa_booking.api.dependencies import get_current_user, require_roles
from villa_booking.core.errors import BadRequestError
from villa_booking.core.responses import paginated_response, success_response
from villa_booking.db import crud_users
from villa_booking.db.enums import Role
from villa_booking.db.session import get_db
from villa_booking.schemas.user import (
    PasswordChange,
    ProfileCompleteness,
    UserProfile,
    UserProfileUpdate,
    UserRoleUpdate,
)

router = APIRouter()


@router.get("/profile")
async def get_profile(current_user=Depends(get_current_user)):
    return success_response(UserProfile.model_validate(current_user), "Profile retrieved successfully")


@router.put("/profile")
async def update_profile(
    body: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    user = await crud_users.update_profile(db, current_user, **body.model_dump())
    return success_response(UserProfile.model_validate(user), "Profile updated successfully")


@router.put("/password")
async def change_password(
    body: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    await crud_users.change_password(db, current_user, body.current_password, body.new_password)
    return success_response(None, "Password changed successfully")


@router.get("/profile/complete")
async def profile_completeness(current_user=Depends(get_current_user)):
    missing = crud_users.missing_profile_fields(current_user)
    return success_response(
        ProfileCompleteness(is_complete=not missing, missing_fields=missing),
        "Profile completeness checked",
    )


@router.delete("/account")
async def deactivate_account(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    await crud_users.deactivate_user(db, current_user)
    return success_response(None, "Account deactivated successfully")


@router.get("/all")
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    users, total = await crud_users.list_users(
        db,
        role=role.value if role else None,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
    )
    return paginated_response(
        [UserProfile.model_validate(u) for u in users],
        page=page,
        limit=limit,
        total=total,
        message="Users retrieved successfully",
    )


@router.put("/{user_id}/role")
async def set_role(
    user_id: int,
    body: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_roles(Role.ADMIN)),
):
    if user_id == current_user.id and body.role != Role.ADMIN:
        raise BadRequestError("Admins cannot demote themselves")
    user = await crud_users.update_user_role(db, user_id, body.role)
    return success_response(UserProfile.model_validate(user), "User role updated successfully")
