"""
Community Service
Feed of earned badges and emoji reactions on earned badges and badges.
"""

import logging
from typing import List, Optional

from fastapi import HTTPException

from badgefolio.auth.auth_utils import UserContext
from badgefolio.community.community_models import REACTION_TYPES
from badgefolio.database import serialize_doc, to_object_id

logger = logging.getLogger(__name__)

BADGE_FIELDS = ("name", "description", "image", "difficulty")
STUDENT_FIELDS = ("name", "email", "image")


def toggle_reaction(reactions: Optional[List[dict]], reaction_type: str, email: str) -> List[dict]:
    """
    Add `email` to the reaction of `reaction_type`, or remove it when it is
    already there. Reactions left without users are dropped.
    """
    updated = [{"type": r["type"], "users": list(r.get("users", []))} for r in reactions or []]

    for reaction in updated:
        if reaction["type"] == reaction_type:
            if email in reaction["users"]:
                reaction["users"].remove(email)
            else:
                reaction["users"].append(email)
            break
    else:
        updated.append({"type": reaction_type, "users": [email]})

    return [r for r in updated if r["users"]]


def _check_type(reaction_type: str):
    if reaction_type not in REACTION_TYPES:
        raise HTTPException(status_code=400, detail="Invalid reaction type")


def _summary(doc: Optional[dict], fields) -> Optional[dict]:
    if not doc:
        return None
    summary = {"id": str(doc["_id"])}
    summary.update({f: doc.get(f) for f in fields})
    return summary

# ==================== FEED ====================

async def _feed_items(db, earned: List[dict]) -> List[dict]:
    """Attach badge and student summaries; entries whose badge or student is gone are skipped"""
    badge_ids = list({e.get("badge_id") for e in earned})
    student_ids = list({e.get("student_id") for e in earned})

    badges = await db.badges.find({"_id": {"$in": badge_ids}}).to_list(length=None)
    students = await db.users.find({"_id": {"$in": student_ids}}).to_list(length=None)
    badge_map = {b["_id"]: b for b in badges}
    student_map = {u["_id"]: u for u in students}

    items = []
    for entry in earned:
        badge = badge_map.get(entry.get("badge_id"))
        student = student_map.get(entry.get("student_id"))
        if not (badge and badge.get("name") and student and student.get("name")):
            continue

        item = serialize_doc(entry)
        item.setdefault("reactions", [])
        item["badge"] = _summary(badge, BADGE_FIELDS)
        item["student"] = _summary(student, STUDENT_FIELDS)
        items.append(item)
    return items


async def list_feed(db) -> List[dict]:
    earned = await db.earned_badges.find({}).sort("created_at", -1).to_list(length=None)
    items = await _feed_items(db, earned)
    if len(items) < len(earned):
        logger.info("Community feed skipped %d earned badge(s) with missing badge or student", len(earned) - len(items))
    return items

# ==================== REACTIONS ====================

async def react_to_earned_badge(db, actor: UserContext, earned_badge_id: str, reaction_type: str) -> dict:
    _check_type(reaction_type)

    oid = to_object_id(earned_badge_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid earned badge ID format")

    earned = await db.earned_badges.find_one({"_id": oid})
    if not earned:
        raise HTTPException(status_code=404, detail="Earned badge not found")

    reactions = toggle_reaction(earned.get("reactions"), reaction_type, actor.email)
    await db.earned_badges.update_one({"_id": oid}, {"$set": {"reactions": reactions}})

    earned["reactions"] = reactions
    items = await _feed_items(db, [earned])
    return items[0] if items else serialize_doc(earned)


async def react_to_badge(db, actor: UserContext, badge_id: str, reaction_type: str) -> dict:
    _check_type(reaction_type)

    oid = to_object_id(badge_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid badge ID format")

    badge = await db.badges.find_one({"_id": oid})
    if not badge:
        raise HTTPException(status_code=404, detail="Badge not found")

    reactions = toggle_reaction(badge.get("reactions"), reaction_type, actor.email)
    await db.badges.update_one({"_id": oid}, {"$set": {"reactions": reactions}})

    return {"success": True, "reactions": reactions}
