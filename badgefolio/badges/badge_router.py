import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user, require_roles
from badgefolio.badges import badge_service as service
from badgefolio.badges.badge_schemas import (
    BadgeCreate, BadgeUpdate, BadgeApproval, BulkBadgeApproval, BulkBadgeDelete
)
from badgefolio.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/badges", tags=["Badges"])

require_reviewer = require_roles(
    "teacher", "admin", message="Only teachers and administrators can approve badges"
)
require_creator = require_roles(
    "teacher", "admin", message="Only teachers and administrators can create badges"
)
require_admin = require_roles("admin", message="Forbidden - Admin access required")

# ==================== APPROVAL ====================

@router.post("/approve")
async def approve_badge(
    data: BadgeApproval,
    user: UserContext = Depends(require_reviewer),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Approve or reject one badge. Rejections need a comment.
    """
    try:
        return await service.review_badge(db, user, data.badge_id, data.status, data.comment)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error approving badge %s", data.badge_id)
        raise HTTPException(status_code=500, detail={"error": "Failed to approve badge", "details": str(e)})


@router.put("/approve")
async def approve_badges(
    data: BulkBadgeApproval,
    user: UserContext = Depends(require_reviewer),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Apply the same review to many badges in one write
    """
    try:
        return await service.review_badges(db, user, data.badge_ids, data.status, data.comment)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error bulk approving badges")
        raise HTTPException(status_code=500, detail={"error": "Failed to approve badges", "details": str(e)})

# ==================== MAINTENANCE ====================

@router.post("/bulk-delete")
async def bulk_delete_badges(
    data: BulkBadgeDelete,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.bulk_delete_badges(db, admin, data.badge_ids)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error deleting badges")
        raise HTTPException(status_code=500, detail={"error": "Failed to delete badges", "details": str(e)})


@router.post("/cleanup-references")
async def cleanup_badge_references(
    admin: UserContext = Depends(require_roles("admin", message="Only admins can clean up badge references")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.cleanup_references(db)
    except Exception as e:
        logger.exception("Error cleaning up badge references")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to clean up badge references", "details": str(e)}
        )

# ==================== BADGES ====================

@router.post("", status_code=201)
async def create_badge(
    data: BadgeCreate,
    user: UserContext = Depends(require_creator),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Create a badge; it starts out pending approval
    """
    try:
        return await service.create_badge(db, user, data.dict())
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error creating badge")
        raise HTTPException(status_code=500, detail={"error": "Failed to create badge", "details": str(e)})


@router.get("")
async def list_badges(
    creator_id: Optional[str] = Query(None),
    is_public: Optional[str] = Query(None),
    approval_status: Optional[str] = Query(None),
    recent: bool = Query(False),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.list_badges(
        db, user,
        creator_id=creator_id,
        is_public=is_public,
        approval_status=approval_status,
        recent=recent
    )


@router.get("/{badge_id}")
async def get_badge(
    badge_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_badge(db, badge_id)


@router.put("/{badge_id}")
async def update_badge(
    badge_id: str,
    data: BadgeUpdate,
    user: UserContext = Depends(require_creator),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Edit a badge (teachers: own badges only)
    """
    return await service.update_badge(db, user, badge_id, data.dict(exclude_none=True))


@router.delete("/{badge_id}")
async def delete_badge(
    badge_id: str,
    user: UserContext = Depends(require_creator),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.delete_badge(db, user, badge_id)
    return {"message": "Badge deleted successfully"}
