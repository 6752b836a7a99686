import logging
import secrets
from datetime import datetime, timedelta
from typing import List

from fastapi import HTTPException

from badgefolio.auth.auth_utils import UserContext, hash_password
from badgefolio.config import APP_BASE_URL, INVITATION_TTL_HOURS, normalize_email
from badgefolio.database import serialize_doc, to_object_id
from badgefolio.users import role_policy
from badgefolio.users.user_models import Invitation, InvitationStatus, Role, User

logger = logging.getLogger(__name__)


def generate_token() -> str:
    """64 hex characters"""
    return secrets.token_hex(32)


def format_invitation(doc: dict) -> dict:
    invitation = serialize_doc(doc)
    invitation.pop("token", None)
    invitation.pop("default_password_hash", None)
    return invitation


def invitation_link(token: str) -> str:
    return f"{APP_BASE_URL}/signup?token={token}"


def send_invitation_email(email: str, role: str, token: str):
    """
    Background task. Delivery through a mail provider is not wired in;
    the signup link is logged so an operator can forward it.
    """
    logger.info("Invitation for %s as %s: %s", email, role, invitation_link(token))

# ==================== INVITATIONS ====================

async def list_invitations(db) -> List[dict]:
    cursor = db.invitations.find({}).sort([("status", 1), ("created_at", -1)])
    invitations = await cursor.to_list(length=None)
    return [format_invitation(inv) for inv in invitations]


async def create_invitation(db, actor: UserContext, data: dict) -> dict:
    role = Role(data["role"]).value
    decision = role_policy.check_invitation(actor, role)
    if not decision:
        raise HTTPException(status_code=403, detail=decision.reason)

    email = normalize_email(data["email"])

    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    existing = await db.invitations.find_one({"email": email, "status": InvitationStatus.PENDING.value})
    if existing:
        raise HTTPException(status_code=400, detail="An active invitation for this email already exists")

    invitation = Invitation(
        email=email,
        role=role,
        token=generate_token(),
        default_password_hash=hash_password(data["default_password"]),
        invited_by=actor.email,
        expires_at=datetime.utcnow() + timedelta(hours=INVITATION_TTL_HOURS),
    )

    doc = invitation.dict()
    result = await db.invitations.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info("Invitation created for %s as %s by %s", email, role, actor.email)
    return doc


async def resend_invitation(db, email: str) -> dict:
    invitation = await db.invitations.find_one({
        "email": normalize_email(email),
        "status": InvitationStatus.PENDING.value
    })
    if not invitation:
        raise HTTPException(status_code=404, detail="No pending invitation found for this email")

    expires_at = datetime.utcnow() + timedelta(hours=INVITATION_TTL_HOURS)
    await db.invitations.update_one(
        {"_id": invitation["_id"]},
        {"$set": {"expires_at": expires_at, "updated_at": datetime.utcnow()}}
    )
    invitation["expires_at"] = expires_at
    return invitation


async def delete_invitation(db, actor: UserContext, invitation_id: str):
    oid = to_object_id(invitation_id)
    if not oid:
        raise HTTPException(status_code=400, detail="Invalid invitation ID format")

    invitation = await db.invitations.find_one({"_id": oid})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")

    decision = role_policy.check_invitation_deletion(actor, invitation)
    if not decision:
        raise HTTPException(status_code=403, detail=decision.reason)

    await db.invitations.delete_one({"_id": oid})

# ==================== REGISTRATION ====================

async def validate_token(db, token: str) -> dict:
    invitation = await db.invitations.find_one({"token": token, "status": InvitationStatus.PENDING.value})
    if not invitation:
        return {"valid": False, "message": "Invalid or already used invitation token"}

    if invitation["expires_at"] < datetime.utcnow():
        return {"valid": False, "message": "Invitation token has expired"}

    return {
        "valid": True,
        "email": invitation["email"],
        "role": invitation["role"],
        "expires_at": invitation["expires_at"],
    }


async def register_with_invitation(db, data: dict) -> dict:
    """
    Consume a pending invitation exactly once and create its user.
    The invitation is claimed with a conditional update before the
    user is written, so a token cannot be redeemed twice.
    """
    email = normalize_email(data["email"])
    invitation = await db.invitations.find_one({
        "token": data["token"],
        "email": email,
        "status": InvitationStatus.PENDING.value
    })
    if not invitation:
        raise HTTPException(status_code=400, detail="Invalid or expired invitation token")

    if invitation["expires_at"] < datetime.utcnow():
        raise HTTPException(status_code=400, detail="Invitation token has expired")

    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")

    claimed = await db.invitations.update_one(
        {"_id": invitation["_id"], "status": InvitationStatus.PENDING.value},
        {"$set": {"status": InvitationStatus.ACCEPTED.value, "updated_at": datetime.utcnow()}}
    )
    if claimed.modified_count == 0:
        raise HTTPException(status_code=400, detail="Invitation has already been used")

    password = data.get("password")
    user = User(
        name=data["name"],
        email=email,
        role=invitation["role"],
        password_hash=hash_password(password) if password else invitation["default_password_hash"],
        require_password_change=True,
    )
    doc = user.dict()
    try:
        result = await db.users.insert_one(doc)
    except Exception:
        logger.exception("Registration for %s failed, releasing invitation", email)
        await db.invitations.update_one(
            {"_id": invitation["_id"]},
            {"$set": {"status": InvitationStatus.PENDING.value, "updated_at": datetime.utcnow()}}
        )
        raise
    doc["_id"] = result.inserted_id

    logger.info("User %s registered from invitation as %s", email, invitation["role"])
    return doc
