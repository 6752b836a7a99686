import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import token_for_user, verify_password
from badgefolio.database import get_db
from badgefolio.users import invite_service
from badgefolio.users.user_schemas import LoginRequest, RegisterRequest
from badgefolio.users.user_service import format_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def session_payload(user: dict) -> dict:
    return {
        "access_token": token_for_user(user),
        "token_type": "bearer",
        "user": format_user(user),
    }


@router.post("/login")
async def login(data: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Exchange email and password for a bearer token
    """
    user = await db.users.find_one({"email": data.email})
    if not user or not verify_password(data.password, user.get("password_hash")):
        logger.warning("Failed login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return session_payload(user)


@router.get("/validate-token")
async def validate_invitation_token(
    token: str = Query(...),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Check an invitation token before showing the signup form
    """
    return await invite_service.validate_token(db, token)


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Create an account from a pending invitation; the invited role is applied
    """
    user = await invite_service.register_with_invitation(db, data.dict())
    return {
        "message": "Registration successful",
        **session_payload(user),
    }
