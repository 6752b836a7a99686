import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException

from badgefolio.auth.auth_utils import UserContext, hash_password, verify_password
from badgefolio.config import SUPER_ADMIN_EMAIL, normalize_email
from badgefolio.database import serialize_doc, to_object_id
from badgefolio.users import role_policy
from badgefolio.users.user_models import User, Role

logger = logging.getLogger(__name__)

HIDDEN_FIELDS = {"password_hash": 0}


def format_user(doc: dict) -> dict:
    user = serialize_doc(doc)
    user.pop("password_hash", None)
    return user


def _enforce(decision: role_policy.PolicyDecision):
    if not decision:
        raise HTTPException(status_code=403, detail=decision.reason)


async def get_user_or_404(db, user_id: str) -> dict:
    oid = to_object_id(user_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid user ID format")
    user = await db.users.find_one({"_id": oid})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_super_admin(db) -> Optional[dict]:
    return await db.users.find_one({"email": SUPER_ADMIN_EMAIL})

# ==================== LISTING ====================

async def list_users(db, role: Optional[str] = None) -> List[dict]:
    query = {}
    if role:
        query["role"] = role

    cursor = db.users.find(query, HIDDEN_FIELDS).sort([("role", 1), ("name", 1)])
    users = await cursor.to_list(length=None)
    return [format_user(u) for u in users]


async def list_by_role(db, role: str) -> List[dict]:
    cursor = db.users.find({"role": role}).sort("name", 1)
    users = await cursor.to_list(length=None)
    return [
        {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email"), "image": u.get("image")}
        for u in users
    ]


async def list_manageable_users(db, actor: UserContext) -> List[dict]:
    """Users shown on the role management screen; teachers only see students"""
    query = {}
    if actor.is_teacher and not actor.is_super_admin:
        query["role"] = Role.STUDENT.value

    cursor = db.users.find(query).sort("email", 1)
    users = await cursor.to_list(length=None)
    return [
        {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email"),
         "role": u.get("role"), "image": u.get("image")}
        for u in users
    ]


async def get_public_profile(db, user_id: str) -> dict:
    user = await get_user_or_404(db, user_id)
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "image": user.get("image"),
        "role": user.get("role"),
    }

# ==================== CREATION ====================

async def create_user(db, actor: UserContext, data: dict) -> dict:
    if data["role"] not in role_policy.VALID_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")
    _enforce(role_policy.check_user_creation(actor, data["role"]))

    email = normalize_email(data["email"])
    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    password = data.get("password")
    user = User(
        name=data["name"],
        email=email,
        role=data["role"],
        password_hash=hash_password(password) if password else None,
        require_password_change=True,
    )

    doc = user.dict()
    result = await db.users.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info("User %s created by %s with role %s", email, actor.email, data["role"])
    return format_user(doc)

# ==================== ROLE & PASSWORD ====================

async def update_role_and_password(
    db,
    actor: UserContext,
    email: str,
    role: Optional[str] = None,
    new_password: Optional[str] = None
) -> dict:
    """
    Combined role change / password reset addressed by email.
    Each requested change is checked independently against the policy.
    """
    if actor.is_student:
        raise HTTPException(status_code=403, detail="Students cannot modify roles")

    target = await db.users.find_one({"email": normalize_email(email)})
    if not target:
        raise HTTPException(status_code=404, detail="Target user not found")

    update_data = {}

    if role:
        if role not in role_policy.VALID_ROLES:
            raise HTTPException(status_code=400, detail="Invalid role")
        _enforce(role_policy.check_role_change(actor, target, role))
        update_data["role"] = role

    if new_password:
        _enforce(role_policy.check_password_reset(actor, target))
        update_data["password_hash"] = hash_password(new_password)
        update_data["require_password_change"] = True

    if not update_data:
        raise HTTPException(status_code=400, detail="No changes to apply")

    update_data["updated_at"] = datetime.utcnow()
    await db.users.update_one({"_id": target["_id"]}, {"$set": update_data})

    updated = await db.users.find_one({"_id": target["_id"]})
    logger.info("User %s updated by %s (fields: %s)", updated["email"], actor.email,
                ", ".join(k for k in update_data if k != "password_hash"))

    return {
        "message": "Role updated successfully" if role else "User updated successfully",
        "user": {
            "id": str(updated["_id"]),
            "name": updated.get("name"),
            "email": updated.get("email"),
            "role": updated.get("role"),
            "image": updated.get("image"),
            "password_reset": bool(new_password),
        },
    }


async def update_role(db, actor: UserContext, user_id: str, role: str) -> dict:
    if role not in role_policy.VALID_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")

    target = await get_user_or_404(db, user_id)
    _enforce(role_policy.check_role_change(actor, target, role))

    await db.users.update_one(
        {"_id": target["_id"]},
        {"$set": {"role": role, "updated_at": datetime.utcnow()}}
    )
    logger.info("Role of %s changed %s -> %s by %s", target["email"], target.get("role"), role, actor.email)

    updated = await db.users.find_one({"_id": target["_id"]}, HIDDEN_FIELDS)
    return format_user(updated)


async def reset_password(db, actor: UserContext, user_id: str, new_password: str):
    target = await get_user_or_404(db, user_id)
    _enforce(role_policy.check_password_reset(actor, target))

    await db.users.update_one(
        {"_id": target["_id"]},
        {"$set": {
            "password_hash": hash_password(new_password),
            "require_password_change": True,
            "updated_at": datetime.utcnow()
        }}
    )
    logger.info("Password of %s reset by %s", target["email"], actor.email)

# ==================== DELETION ====================

async def delete_users(db, actor: UserContext, user_ids: List[str]) -> dict:
    """
    Delete users one by one. Protected users are reported, not deleted.
    Badges created by a deleted user move to the super admin account.
    No rollback: a failure on one user does not undo the others.
    """
    object_ids = [oid for oid in (to_object_id(uid) for uid in user_ids) if oid]
    if not object_ids:
        raise HTTPException(status_code=400, detail="No valid user IDs provided")

    users = await db.users.find({"_id": {"$in": object_ids}}).to_list(length=None)
    if not users:
        raise HTTPException(status_code=404, detail="No matching users found")

    protected_users = []
    deletable = []
    for user in users:
        decision = role_policy.check_user_deletion(actor, user)
        if decision:
            deletable.append(user)
        else:
            protected_users.append({"id": str(user["_id"]), "name": user.get("name"), "reason": decision.reason})

    super_admin = await get_super_admin(db)
    if not super_admin:
        logger.warning("Super admin account %s not found; badges of deleted users keep their creator", SUPER_ADMIN_EMAIL)

    results = []
    totals = {
        "submissions_deleted": 0,
        "earned_badges_deleted": 0,
        "badges_reassigned": 0,
    }

    for user in deletable:
        user_id = user["_id"]
        try:
            deleted = await db.submissions.delete_many({"student_id": user_id})
            totals["submissions_deleted"] += deleted.deleted_count

            deleted = await db.earned_badges.delete_many({"student_id": user_id})
            totals["earned_badges_deleted"] += deleted.deleted_count

            if super_admin:
                reassigned = await db.badges.update_many(
                    {"creator_id": user_id},
                    {"$set": {"creator_id": super_admin["_id"]}}
                )
                totals["badges_reassigned"] += reassigned.modified_count

                await db.submissions.update_many(
                    {"teacher_id": user_id},
                    {"$set": {"teacher_id": super_admin["_id"]}}
                )

            await db.users.delete_one({"_id": user_id})

            results.append({
                "success": True,
                "id": str(user_id),
                "name": user.get("name"),
                "email": user.get("email"),
                "role": user.get("role"),
            })
        except Exception as e:
            logger.exception("Error deleting user %s", user_id)
            results.append({
                "success": False,
                "id": str(user_id),
                "name": user.get("name"),
                "email": user.get("email"),
                "error": str(e),
            })

    deleted_count = sum(1 for r in results if r["success"])
    logger.info("%s deleted %d user(s), %d protected", actor.email, deleted_count, len(protected_users))

    return {
        "message": f"Deleted {deleted_count} users",
        "summary": {
            "requested": len(user_ids),
            "protected": len(protected_users),
            "deleted": deleted_count,
            "failed": len(results) - deleted_count,
            **totals,
        },
        "protected_users": protected_users,
        "results": results,
    }

# ==================== OWN ACCOUNT ====================

async def get_own_profile(db, actor: UserContext) -> dict:
    user = await db.users.find_one({"_id": actor.object_id}, HIDDEN_FIELDS)
    return format_user(user)


async def update_own_profile(db, actor: UserContext, data: dict) -> dict:
    update_data = {k: v for k, v in data.items() if v is not None}
    if update_data:
        update_data["updated_at"] = datetime.utcnow()
        await db.users.update_one({"_id": actor.object_id}, {"$set": update_data})
    return await get_own_profile(db, actor)


async def change_own_password(db, actor: UserContext, current_password: str, new_password: str):
    user = await db.users.find_one({"_id": actor.object_id})

    # Accounts without a password (created without one) may set one directly
    if user.get("password_hash") and not verify_password(current_password, user["password_hash"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    await db.users.update_one(
        {"_id": actor.object_id},
        {"$set": {
            "password_hash": hash_password(new_password),
            "require_password_change": False,
            "updated_at": datetime.utcnow()
        }}
    )
