import logging
from datetime import datetime, timedelta
from typing import List, Optional

from bson import ObjectId
from fastapi import HTTPException

from badgefolio.auth.auth_utils import UserContext
from badgefolio.badges.badge_models import ApprovalStatus, Badge
from badgefolio.badges.category_service import ensure_category
from badgefolio.database import serialize_doc, to_object_id

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
RECENT_LIMIT = 10
LIST_LIMIT = 100

REVIEW_STATUSES = {ApprovalStatus.APPROVED.value, ApprovalStatus.REJECTED.value}


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.lower() == "true"


async def _attach_categories(db, badges: List[dict]) -> List[dict]:
    """Replace the category name with the full category document where one exists"""
    categories = await db.categories.find({}).to_list(length=None)
    by_name = {c["name"]: serialize_doc(c) for c in categories}

    results = []
    for badge in badges:
        item = serialize_doc(badge)
        item["category"] = by_name.get(badge.get("category"), badge.get("category"))
        results.append(item)
    return results


async def get_badge_or_404(db, badge_id: str) -> dict:
    oid = to_object_id(badge_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid badge ID format")
    badge = await db.badges.find_one({"_id": oid})
    if not badge:
        raise HTTPException(status_code=404, detail="Badge not found")
    return badge


def verify_badge_ownership(badge: dict, actor: UserContext):
    """Teachers manage their own badges; admins manage any"""
    if actor.is_admin:
        return
    if actor.is_teacher and badge.get("creator_id") == actor.object_id:
        return
    raise HTTPException(status_code=403, detail="You can only modify badges you created")

# ==================== CRUD ====================

async def create_badge(db, actor: UserContext, data: dict) -> dict:
    category = await ensure_category(db, data["category"])

    badge = Badge(
        **{**data, "category": category["name"]},
        creator_id=actor.object_id,
    )
    doc = badge.dict()
    result = await db.badges.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info("Badge %s created by %s in %s", doc["_id"], actor.email, category["name"])
    return serialize_doc(doc)


async def list_badges(
    db,
    actor: UserContext,
    creator_id: Optional[str] = None,
    is_public: Optional[str] = None,
    approval_status: Optional[str] = None,
    recent: bool = False
) -> List[dict]:
    """
    Badge listing.
        recent       -> newest public badges of the last 30 days
        super admin  -> everything, filters only narrow it
        others       -> public badges plus their own, unless a filter is given
    """
    query = {}

    if recent:
        query["is_public"] = True
        query["created_at"] = {"$gte": datetime.utcnow() - timedelta(days=RECENT_DAYS)}
        cursor = db.badges.find(query).sort("created_at", -1).limit(RECENT_LIMIT)
        return await _attach_categories(db, await cursor.to_list(length=None))

    public_flag = _parse_bool(is_public)
    if public_flag is not None:
        query["is_public"] = public_flag

    if creator_id:
        oid = to_object_id(creator_id)
        if not oid:
            raise HTTPException(status_code=400, detail="Invalid creator ID format")
        query["creator_id"] = oid

    if approval_status:
        query["approval_status"] = approval_status

    if not actor.is_super_admin and public_flag is None and not creator_id:
        query["$or"] = [{"is_public": True}, {"creator_id": actor.object_id}]

    cursor = db.badges.find(query).sort("created_at", -1).limit(LIST_LIMIT)
    return await _attach_categories(db, await cursor.to_list(length=None))


async def get_badge(db, badge_id: str) -> dict:
    badge = await get_badge_or_404(db, badge_id)
    return (await _attach_categories(db, [badge]))[0]


async def update_badge(db, actor: UserContext, badge_id: str, data: dict) -> dict:
    badge = await get_badge_or_404(db, badge_id)
    verify_badge_ownership(badge, actor)

    update_data = {k: v for k, v in data.items() if v is not None}
    if "category" in update_data:
        category = await ensure_category(db, update_data["category"].strip())
        update_data["category"] = category["name"]

    update_data["updated_at"] = datetime.utcnow()
    await db.badges.update_one({"_id": badge["_id"]}, {"$set": update_data})

    updated = await db.badges.find_one({"_id": badge["_id"]})
    return serialize_doc(updated)


async def delete_badge(db, actor: UserContext, badge_id: str):
    badge = await get_badge_or_404(db, badge_id)
    verify_badge_ownership(badge, actor)

    await db.badges.delete_one({"_id": badge["_id"]})
    logger.info("Badge %s deleted by %s", badge["_id"], actor.email)

# ==================== APPROVAL WORKFLOW ====================

def _review_fields(actor: UserContext, status: str, comment: Optional[str], noun: str) -> dict:
    """
    Fields written by a review. pending -> approved | rejected, and a
    reviewed badge may be reviewed again.
    """
    if status not in REVIEW_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")

    comment = (comment or "").strip()
    if status == ApprovalStatus.REJECTED.value and not comment:
        raise HTTPException(status_code=400, detail=f"Comment is required when rejecting {noun}")

    return {
        "approval_status": status,
        "approved_by": actor.object_id,
        "approval_date": datetime.utcnow(),
        "approval_comment": comment or None,
    }


async def review_badge(db, actor: UserContext, badge_id: str, status: str, comment: Optional[str] = None) -> dict:
    fields = _review_fields(actor, status, comment, "a badge")
    badge = await get_badge_or_404(db, badge_id)

    await db.badges.update_one({"_id": badge["_id"]}, {"$set": fields})
    logger.info("Badge %s %s by %s", badge["_id"], status, actor.email)

    updated = await db.badges.find_one({"_id": badge["_id"]})
    return {
        "message": f"Badge {status} successfully",
        "badge": serialize_doc(updated),
    }


async def review_badges(db, actor: UserContext, badge_ids: List[str], status: str, comment: Optional[str] = None) -> dict:
    """Single update_many over every valid id; no per-badge rollback"""
    if not badge_ids:
        raise HTTPException(status_code=400, detail="No badge IDs provided")

    fields = _review_fields(actor, status, comment, "badges")

    object_ids = [oid for oid in (to_object_id(b) for b in badge_ids) if oid]
    if not object_ids:
        raise HTTPException(status_code=400, detail="No valid badge IDs provided")

    result = await db.badges.update_many({"_id": {"$in": object_ids}}, {"$set": fields})
    logger.info("%d badge(s) %s by %s", result.modified_count, status, actor.email)

    return {
        "message": f"{result.modified_count} badges {status} successfully",
        "modified_count": result.modified_count,
    }

# ==================== MAINTENANCE ====================

async def bulk_delete_badges(db, actor: UserContext, badge_ids: List[str]) -> dict:
    object_ids = [oid for oid in (to_object_id(b) for b in badge_ids) if oid]
    if not object_ids:
        raise HTTPException(status_code=400, detail="Invalid badge IDs")

    result = await db.badges.delete_many({"_id": {"$in": object_ids}})
    logger.info("%s deleted %d badge(s)", actor.email, result.deleted_count)

    return {
        "message": f"Successfully deleted {result.deleted_count} badges",
        "deleted_count": result.deleted_count,
    }


async def cleanup_references(db) -> dict:
    """Remove submissions and earned badges pointing at badges that no longer exist"""
    badges = await db.badges.find({}, {"_id": 1}).to_list(length=None)
    valid_ids: List[ObjectId] = [b["_id"] for b in badges]

    submissions = await db.submissions.delete_many({"badge_id": {"$nin": valid_ids}})
    earned = await db.earned_badges.delete_many({"badge_id": {"$nin": valid_ids}})

    logger.info(
        "Reference cleanup: %d submission(s), %d earned badge(s) removed across %d valid badge(s)",
        submissions.deleted_count, earned.deleted_count, len(valid_ids)
    )
    return {
        "message": "Badge references cleaned up successfully",
        "submissions_removed": submissions.deleted_count,
        "portfolio_references_removed": earned.deleted_count,
    }
