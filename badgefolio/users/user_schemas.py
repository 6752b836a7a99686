import re
from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from badgefolio.config import MIN_PASSWORD_LENGTH
from badgefolio.users.user_models import Role

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _clean_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value

# ==================== REQUEST SCHEMAS ====================

class LoginRequest(BaseModel):
    email: str
    password: str

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    role: str
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

class RoleUpdateByEmail(BaseModel):
    """PUT /api/users/role - role change and/or password reset"""
    email: str
    role: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

class RoleUpdate(BaseModel):
    role: str

class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

class BulkDeleteUsers(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

class InvitationCreate(BaseModel):
    email: str
    role: Role
    default_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

class InvitationResend(BaseModel):
    email: str

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    token: str
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)

    @validator("email")
    def validate_email(cls, v):
        return _clean_email(v)

# ==================== RESPONSE SCHEMAS ====================

class UserPublic(BaseModel):
    id: str
    name: str
    image: Optional[str] = None
    role: str

class UserSummary(BaseModel):
    id: str
    name: str
    email: str
    role: str
    image: Optional[str] = None
    require_password_change: bool = False
    created_at: Optional[datetime] = None

class InvitationResponse(BaseModel):
    id: str
    email: str
    role: str
    status: str
    invited_by: str
    expires_at: datetime
    created_at: datetime
