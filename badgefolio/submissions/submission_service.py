import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from badgefolio.auth.auth_utils import UserContext
from badgefolio.database import serialize_doc, to_object_id
from badgefolio.submissions.submission_models import (
    EarnedBadge, ReviewComment, Submission, SubmissionStatus
)

logger = logging.getLogger(__name__)

REVIEW_STATUSES = {SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value}


async def _with_names(db, submissions: List[dict]) -> List[dict]:
    """Attach badge and student summaries to each submission"""
    badge_ids = list({s.get("badge_id") for s in submissions})
    student_ids = list({s.get("student_id") for s in submissions})

    badges = await db.badges.find({"_id": {"$in": badge_ids}}).to_list(length=None)
    students = await db.users.find({"_id": {"$in": student_ids}}).to_list(length=None)
    badge_map = {b["_id"]: b for b in badges}
    student_map = {u["_id"]: u for u in students}

    results = []
    for submission in submissions:
        item = serialize_doc(submission)
        badge = badge_map.get(submission.get("badge_id"))
        student = student_map.get(submission.get("student_id"))
        item["badge"] = {"id": str(badge["_id"]), "name": badge.get("name"), "image": badge.get("image")} if badge else None
        item["student"] = {"id": str(student["_id"]), "name": student.get("name"), "email": student.get("email")} if student else None
        results.append(item)
    return results


def _validate_review(status: str, comment: Optional[str]) -> str:
    if status not in REVIEW_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    comment = (comment or "").strip()
    if status == SubmissionStatus.REJECTED.value and not comment:
        raise HTTPException(status_code=400, detail="Comment is required for rejection")
    return comment


async def award_badge(db, submission: dict) -> bool:
    """
    Record the earned badge for an approved submission.
    Returns False when the student already held it.
    """
    badge_id = submission["badge_id"]
    student_id = submission["student_id"]

    await db.users.update_one({"_id": student_id}, {"$addToSet": {"earned_badges": badge_id}})

    if await db.earned_badges.find_one({"badge_id": badge_id, "student_id": student_id}):
        return False

    try:
        await db.earned_badges.insert_one(
            EarnedBadge(badge_id=badge_id, student_id=student_id, submission_id=submission["_id"]).dict()
        )
    except DuplicateKeyError:
        return False

    logger.info("Badge %s earned by %s", badge_id, student_id)
    return True


async def _apply_review(db, actor: UserContext, submission: dict, status: str, comment: str):
    update = {"$set": {"status": status, "updated_at": datetime.utcnow()}}
    if comment:
        update["$push"] = {"comments": ReviewComment(content=comment, user_id=actor.object_id).dict()}

    await db.submissions.update_one({"_id": submission["_id"]}, update)

    if status == SubmissionStatus.APPROVED.value:
        await award_badge(db, submission)

# ==================== STUDENT ====================

async def create_submission(db, actor: UserContext, data: dict) -> dict:
    badge_oid = to_object_id(data["badge_id"])
    if not badge_oid:
        raise HTTPException(status_code=400, detail="Invalid badge ID format")

    badge = await db.badges.find_one({"_id": badge_oid})
    if not badge:
        raise HTTPException(status_code=404, detail="Badge not found")

    pending = await db.submissions.find_one({
        "badge_id": badge_oid,
        "student_id": actor.object_id,
        "status": SubmissionStatus.PENDING.value
    })
    if pending:
        raise HTTPException(status_code=400, detail="You already have a pending submission for this badge")

    submission = Submission(
        badge_id=badge_oid,
        student_id=actor.object_id,
        teacher_id=badge["creator_id"],
        evidence=data["evidence"],
        show_evidence=data.get("show_evidence", True),
    )
    doc = submission.dict()
    result = await db.submissions.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info("Submission %s for badge %s by %s", doc["_id"], badge_oid, actor.email)
    return serialize_doc(doc)


async def update_visibility(db, actor: UserContext, data: dict) -> dict:
    fields = {k: data[k] for k in ("is_visible", "show_evidence") if data.get(k) is not None}
    if not fields:
        raise HTTPException(status_code=400, detail="Invalid request body")

    oid = to_object_id(data["submission_id"])
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid submission ID format")

    query = {"_id": oid, "student_id": actor.object_id, "status": SubmissionStatus.APPROVED.value}
    result = await db.submissions.update_one(query, {"$set": fields})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Submission not found")

    updated = await db.submissions.find_one({"_id": oid})
    return {
        "message": "Visibility settings updated successfully",
        "submission": serialize_doc(updated),
    }

# ==================== LISTING ====================

async def list_submissions(
    db,
    actor: UserContext,
    status: Optional[str] = None,
    user_id: Optional[str] = None
) -> List[dict]:
    """
    Admins see every submission, teachers those assigned to them,
    students their own. `user_id` narrows staff views to one student.
    """
    query = {}
    if status:
        query["status"] = status

    if actor.is_teacher:
        query["teacher_id"] = actor.object_id
    elif not actor.is_admin:
        query["student_id"] = actor.object_id

    if user_id and (actor.is_admin or actor.is_teacher):
        oid = to_object_id(user_id)
        if not oid:
            raise HTTPException(status_code=400, detail="Invalid user ID format")
        query["student_id"] = oid

    cursor = db.submissions.find(query).sort("created_at", -1)
    return await _with_names(db, await cursor.to_list(length=None))

# ==================== REVIEW ====================

async def review_submission(db, actor: UserContext, submission_id: str, status: str, comment: Optional[str]) -> dict:
    comment = _validate_review(status, comment)

    oid = to_object_id(submission_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid submission ID format")

    submission = await db.submissions.find_one({"_id": oid})
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    if not actor.is_admin and submission.get("teacher_id") != actor.object_id:
        raise HTTPException(status_code=403, detail="You can only review submissions assigned to you")

    await _apply_review(db, actor, submission, status, comment)
    logger.info("Submission %s %s by %s", oid, status, actor.email)

    updated = await db.submissions.find_one({"_id": oid})
    return {
        "success": True,
        "message": f"Submission {status}",
        "submission": serialize_doc(updated),
    }


async def review_submissions(db, actor: UserContext, submission_ids: List[str], status: str, comment: Optional[str]) -> dict:
    if not submission_ids:
        raise HTTPException(status_code=400, detail="No submission IDs provided")

    comment = _validate_review(status, comment)

    object_ids = [oid for oid in (to_object_id(s) for s in submission_ids) if oid]
    query = {"_id": {"$in": object_ids}}
    if not actor.is_admin:
        query["teacher_id"] = actor.object_id

    submissions = await db.submissions.find(query).to_list(length=None)
    if not submissions:
        raise HTTPException(status_code=404, detail="No valid submissions found")

    for submission in submissions:
        await _apply_review(db, actor, submission, status, comment)

    logger.info("%s %s %d submission(s)", actor.email, status, len(submissions))
    return {
        "message": f"Successfully {status} {len(submissions)} submissions",
        "updated_count": len(submissions),
    }


async def cleanup_submissions(db) -> dict:
    """Delete submissions whose evidence is missing or empty"""
    result = await db.submissions.delete_many({"$or": [{"evidence": None}, {"evidence": ""}]})
    if result.deleted_count:
        logger.info("Removed %d submission(s) without evidence", result.deleted_count)
    return {
        "message": f"Successfully cleaned up {result.deleted_count} old submissions",
        "count": result.deleted_count,
    }
