"""
Category Service
Category CRUD and propagation of renames onto the denormalized
`category` field of badges.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from badgefolio.badges.badge_models import Category
from badgefolio.config import AUTO_CATEGORY_COLOR
from badgefolio.database import serialize_doc, to_object_id

logger = logging.getLogger(__name__)


async def list_categories(db) -> List[dict]:
    categories = await db.categories.find({}).sort("name", 1).to_list(length=None)
    return [serialize_doc(c) for c in categories]


async def ensure_category(db, name: str) -> dict:
    """
    Return the category called `name`, creating it when missing so that
    every badge category string has a matching document
    """
    category = await db.categories.find_one({"name": name})
    if category:
        return category

    doc = Category(name=name, description=f"Badges in the {name} category", color=AUTO_CATEGORY_COLOR).dict()
    try:
        result = await db.categories.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Category %s created on demand", name)
        return doc
    except DuplicateKeyError:
        # Created concurrently by another request
        return await db.categories.find_one({"name": name})


async def create_category(db, data: dict) -> dict:
    if await db.categories.find_one({"name": data["name"]}):
        raise HTTPException(status_code=400, detail="Category already exists")

    doc = Category(**data).dict()
    result = await db.categories.insert_one(doc)
    doc["_id"] = result.inserted_id
    return serialize_doc(doc)


async def propagate_rename(db, old_name: str, new_name: str) -> dict:
    """
    Move every badge from `old_name` to `new_name`.

    A bulk update runs first; badges still carrying the old name after a
    re-count are updated one at a time. Not transactional: a non-zero
    `remaining` is reported back to the caller and the rename itself is
    never rolled back.
    """
    matched = await db.badges.count_documents({"category": old_name})
    logger.info("Renaming category %r -> %r on %d badge(s)", old_name, new_name, matched)

    result = await db.badges.update_many(
        {"category": old_name},
        {"$set": {"category": new_name, "updated_at": datetime.utcnow()}}
    )
    modified = result.modified_count

    remaining = await db.badges.count_documents({"category": old_name})
    if remaining:
        logger.warning("%d badge(s) still in %r after bulk update, retrying one by one", remaining, old_name)
        stragglers = await db.badges.find({"category": old_name}, {"_id": 1}).to_list(length=None)
        for badge in stragglers:
            try:
                single = await db.badges.update_one(
                    {"_id": badge["_id"]},
                    {"$set": {"category": new_name, "updated_at": datetime.utcnow()}}
                )
                modified += single.modified_count
            except Exception:
                logger.exception("Failed to move badge %s to category %r", badge["_id"], new_name)

        remaining = await db.badges.count_documents({"category": old_name})
        if remaining:
            logger.error("%d badge(s) still reference old category %r", remaining, old_name)

    return {"matched": matched, "modified": modified, "remaining": remaining}


async def update_category(db, changes: dict, update_badges: bool = False) -> dict:
    oid = to_object_id(changes["id"])
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid category ID format")

    name = changes["name"]
    conflict = await db.categories.find_one({"name": name, "_id": {"$ne": oid}})
    if conflict:
        raise HTTPException(status_code=400, detail="Category name already exists")

    previous = await db.categories.find_one({"_id": oid})
    if not previous:
        raise HTTPException(status_code=404, detail="Category not found")

    update_data = {"name": name, "updated_at": datetime.utcnow()}
    if changes.get("description") is not None:
        update_data["description"] = changes["description"]
    if changes.get("color"):
        update_data["color"] = changes["color"]

    await db.categories.update_one({"_id": oid}, {"$set": update_data})
    updated = await db.categories.find_one({"_id": oid})

    cascade: Optional[dict] = None
    if update_badges and previous["name"] != name:
        try:
            cascade = await propagate_rename(db, previous["name"], name)
        except Exception as e:
            # The category keeps its new name; the caller sees what is left behind
            logger.exception("Badge cascade for category %s failed", oid)
            cascade = {
                "matched": 0,
                "modified": 0,
                "remaining": await db.badges.count_documents({"category": previous["name"]}),
                "error": str(e),
            }

    return {**serialize_doc(updated), "cascade": cascade}


async def delete_category(db, category_id: Optional[str]):
    if not category_id:
        raise HTTPException(status_code=400, detail="Category ID is required")

    oid = to_object_id(category_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid category ID format")

    result = await db.categories.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
