import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from badgefolio.config import MONGO_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[DATABASE_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


def to_object_id(value) -> Optional[ObjectId]:
    """Parse a client-supplied id, returning None when it is not a valid ObjectId"""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """
    Make a Mongo document JSON friendly: `_id` becomes `id`,
    ObjectId values (also inside lists and nested dicts) become strings
    """
    if doc is None:
        return None

    def _convert(value):
        if isinstance(value, ObjectId):
            return str(value)
        if isinstance(value, dict):
            return {k: _convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_convert(v) for v in value]
        return value

    result = {k: _convert(v) for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        result["id"] = str(doc["_id"])
    return result


# ==================== DATABASE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Create database indexes
    Called during application startup
    """
    # Users
    await database.users.create_index("email", unique=True)
    await database.users.create_index([("role", 1), ("name", 1)])

    # Badges
    await database.badges.create_index("creator_id")
    await database.badges.create_index("category")
    await database.badges.create_index([("is_public", 1), ("created_at", -1)])
    await database.badges.create_index("approval_status")

    # Categories
    await database.categories.create_index("name", unique=True)

    # Submissions
    await database.submissions.create_index([("badge_id", 1), ("student_id", 1), ("status", 1)])
    await database.submissions.create_index("teacher_id")
    await database.submissions.create_index("student_id")

    # Earned badges
    await database.earned_badges.create_index([("badge_id", 1), ("student_id", 1)], unique=True)

    # Invitations
    await database.invitations.create_index("token", unique=True)
    await database.invitations.create_index([("email", 1), ("status", 1)])

    logger.info("Indexes created at %s", datetime.utcnow().isoformat())
