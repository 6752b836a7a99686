import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user, require_roles, require_super_admin
from badgefolio.badges import category_service as service
from badgefolio.badges.badge_schemas import CategoryCreate, CategoryUpdate, CategoryResponse
from badgefolio.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.list_categories(db)


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    admin: UserContext = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.create_category(db, data.dict())


@router.put("")
async def update_category(
    data: CategoryUpdate,
    admin: UserContext = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Update a category. With `update_badges` set, a rename is carried over
    to every badge in the category and the response's `cascade` reports
    how many badges still carry the old name.
    """
    try:
        return await service.update_category(db, data.category.dict(), data.update_badges)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error updating category %s", data.category.id)
        raise HTTPException(status_code=500, detail={"error": "Failed to update category", "details": str(e)})


@router.delete("")
async def delete_category(
    id: Optional[str] = Query(None),
    admin: UserContext = Depends(require_super_admin("Only super admin can delete categories")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.delete_category(db, id)
    return {"message": "Category deleted successfully"}
