from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

# ==================== ENUMS ====================

class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"

class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"

# ==================== DATABASE MODELS ====================

class User(BaseModel):
    """
    Stored in `users`. The super admin is an ordinary document whose
    email matches SUPER_ADMIN_EMAIL
    """
    name: str
    email: str  # stored lowercase
    password_hash: Optional[str] = None
    image: Optional[str] = None
    role: Role = Role.STUDENT
    require_password_change: bool = False
    earned_badges: List[Any] = []  # badge ObjectIds, filled by $addToSet
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True

class Invitation(BaseModel):
    """
    Time-limited token permitting one registration at `role`
    """
    email: str
    role: Role
    token: str  # 64 hex chars
    default_password_hash: str
    status: InvitationStatus = InvitationStatus.PENDING
    invited_by: str  # inviter email
    expires_at: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True
