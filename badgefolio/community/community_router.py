import logging

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user
from badgefolio.community import community_service as service
from badgefolio.community.community_schemas import BadgeReaction, EarnedBadgeReaction, ReactionToggle
from badgefolio.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Community"])

# ==================== FEED ====================

@router.get("/community")
async def get_feed(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Earned badges, newest first, with badge and student summaries
    """
    try:
        return await service.list_feed(db)
    except Exception as e:
        logger.exception("Error fetching community data")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch community data", "details": str(e)})


@router.post("/community")
async def react_from_feed(
    data: EarnedBadgeReaction,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Toggle a reaction and return the refreshed feed entry
    """
    return await service.react_to_earned_badge(db, user, data.earned_badge_id, data.type)

# ==================== REACTIONS ====================

@router.post("/community/{earned_badge_id}/react")
async def react_to_earned_badge(
    earned_badge_id: str,
    data: ReactionToggle,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.react_to_earned_badge(db, user, earned_badge_id, data.type)
    return {"success": True}


@router.post("/badges/react")
async def react_to_badge(
    data: BadgeReaction,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.react_to_badge(db, user, data.badge_id, data.type)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error updating badge reaction")
        raise HTTPException(status_code=500, detail={"error": "Failed to update reaction", "details": str(e)})
