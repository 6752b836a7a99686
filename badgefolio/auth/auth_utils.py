from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase
from passlib.context import CryptContext

from badgefolio.config import (
    JWT_SECRET,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    is_super_admin_email,
)
from badgefolio.database import get_db, to_object_id

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def token_for_user(user: dict) -> str:
    return create_access_token({
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role"),
    })


def verify_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1]
    try:
        # Decodes and checks expiration/signature
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


class UserContext:
    """
    Authenticated actor, always built from the stored user document
    so that role changes take effect without a new token
    """
    def __init__(self, profile: dict):
        self.user_id = str(profile["_id"])
        self.object_id = profile["_id"]
        self.email = profile.get("email", "")
        self.name = profile.get("name")
        self.role = profile.get("role", "student")
        self.is_super_admin = is_super_admin_email(self.email)
        self.profile = profile

    @property
    def is_admin(self) -> bool:
        return self.role == "admin" or self.is_super_admin

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"

    @property
    def is_student(self) -> bool:
        return self.role == "student" and not self.is_super_admin


async def get_current_user(
    payload: dict = Depends(verify_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Dependency: resolves the bearer token to a stored user

    Raises:
        401: Invalid token or user no longer exists
    """
    user_id = to_object_id(payload.get("sub"))
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user id")

    profile = await db.users.find_one({"_id": user_id})
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")

    return UserContext(profile)


def require_roles(*roles: str, message: str = "Forbidden"):
    """
    Dependency factory gating an endpoint on the actor's role.
    The super admin passes every gate that admits admins.
    """
    async def _guard(user: UserContext = Depends(get_current_user)) -> UserContext:
        if user.role in roles:
            return user
        if "admin" in roles and user.is_super_admin:
            return user
        raise HTTPException(status_code=403, detail=message)

    return _guard


def require_super_admin(message: str = "Forbidden"):
    async def _guard(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not user.is_super_admin:
            raise HTTPException(status_code=403, detail=message)
        return user

    return _guard
