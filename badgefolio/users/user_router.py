import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user, require_roles
from badgefolio.database import get_db
from badgefolio.users import user_service as service
from badgefolio.users.user_schemas import (
    UserCreate, UserSummary, UserPublic,
    RoleUpdateByEmail, RoleUpdate, PasswordReset, BulkDeleteUsers,
    ProfileUpdate, PasswordChange
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])

require_admin = require_roles("admin", message="Forbidden - Admin access required")
require_staff = require_roles("admin", "teacher", message="Forbidden")


def internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception("%s failed", action)
    return HTTPException(status_code=500, detail={"error": f"Failed to {action}", "details": str(e)})

# ==================== USER MANAGEMENT ====================

@router.get("/users", response_model=List[UserSummary])
async def list_users(
    role: Optional[str] = Query(None),
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    List all users, optionally filtered by role
    """
    try:
        return await service.list_users(db, role)
    except Exception as e:
        raise internal_error("retrieve users", e)


@router.post("/users", response_model=UserSummary, status_code=201)
async def create_user(
    data: UserCreate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Create a user; only the super admin may create admins
    """
    try:
        return await service.create_user(db, admin, data.dict())
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("create user", e)


@router.get("/users/role")
async def list_manageable_users(
    user: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.list_manageable_users(db, user)
    except Exception as e:
        raise internal_error("fetch users", e)


@router.put("/users/role")
async def update_role_by_email(
    data: RoleUpdateByEmail,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Change a user's role and/or reset their password
    """
    try:
        return await service.update_role_and_password(
            db, user, data.email, role=data.role, new_password=data.new_password
        )
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("update user", e)


@router.get("/users/students")
async def list_students(
    user: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.list_by_role(db, "student")
    except Exception as e:
        raise internal_error("fetch students", e)


@router.get("/users/teachers")
async def list_teachers(
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.list_by_role(db, "teacher")
    except Exception as e:
        raise internal_error("fetch teachers", e)


@router.post("/users/bulk-delete")
async def bulk_delete_users(
    data: BulkDeleteUsers,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Delete several users; self, the super admin and (for regular admins)
    other admins are reported as protected
    """
    try:
        return await service.delete_users(db, admin, data.user_ids)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("delete users", e)


@router.get("/users/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_public_profile(db, user_id)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        result = await service.delete_users(db, admin, [user_id])
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("delete user", e)

    if result["protected_users"]:
        raise HTTPException(status_code=403, detail=result["protected_users"][0]["reason"])
    return result


@router.put("/users/{user_id}/role", response_model=UserSummary)
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    admin: UserContext = Depends(require_roles("admin", message="Forbidden - Only admins can update roles")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.update_role(db, admin, user_id, data.role)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("update user role", e)


@router.post("/users/{user_id}/reset-password")
async def reset_user_password(
    user_id: str,
    data: PasswordReset,
    user: UserContext = Depends(require_roles(
        "admin", "teacher", message="Forbidden - Only admins and teachers can reset passwords"
    )),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        await service.reset_password(db, user, user_id, data.new_password)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("reset password", e)

    return {
        "message": "Password reset successfully. User will be required to change password on next login."
    }

# ==================== OWN ACCOUNT ====================

@router.get("/user/profile")
async def get_my_profile(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_own_profile(db, user)


@router.put("/user/profile")
async def update_my_profile(
    data: ProfileUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.update_own_profile(db, user, data.dict(exclude_none=True))


@router.put("/user/password")
async def change_my_password(
    data: PasswordChange,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.change_own_password(db, user, data.current_password, data.new_password)
    return {"message": "Password updated successfully"}
