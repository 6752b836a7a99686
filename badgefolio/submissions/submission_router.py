import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user, require_roles
from badgefolio.database import get_db
from badgefolio.submissions import submission_service as service
from badgefolio.submissions.submission_schemas import (
    SubmissionCreate, SubmissionReview, BulkSubmissionReview, VisibilityUpdate
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Submissions"])

require_reviewer = require_roles(
    "teacher", "admin", message="Only teachers and administrators can update submissions"
)

# ==================== SUBMISSIONS ====================

@router.post("/submissions", status_code=201)
async def create_submission(
    data: SubmissionCreate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Submit evidence for a badge. One pending submission per badge.
    """
    return await service.create_submission(db, user, data.dict())


@router.get("/submissions")
async def list_submissions(
    status: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.list_submissions(db, user, status=status, user_id=user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching submissions")
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch submissions", "details": str(e)})


@router.post("/submissions/bulk-update")
async def bulk_review_submissions(
    data: BulkSubmissionReview,
    user: UserContext = Depends(require_reviewer),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await service.review_submissions(db, user, data.submission_ids, data.status, data.comment)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error updating submissions")
        raise HTTPException(status_code=500, detail={"error": "Failed to update submissions", "details": str(e)})


@router.post("/submissions/cleanup")
async def cleanup_submissions(
    user: UserContext = Depends(require_roles(
        "teacher", "admin", message="Only teachers and administrators can clean up submissions"
    )),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.cleanup_submissions(db)


@router.put("/submissions/{submission_id}")
async def review_submission(
    submission_id: str,
    data: SubmissionReview,
    user: UserContext = Depends(require_reviewer),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Approve or reject a submission; approval records the earned badge
    """
    try:
        return await service.review_submission(db, user, submission_id, data.status, data.comment)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error updating submission %s", submission_id)
        raise HTTPException(status_code=500, detail={"error": "Failed to update submission", "details": str(e)})

# ==================== PORTFOLIO ====================

@router.put("/portfolio/visibility")
async def update_portfolio_visibility(
    data: VisibilityUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Show or hide an earned badge, or its evidence, on the student's portfolio
    """
    return await service.update_visibility(db, user, data.dict())
