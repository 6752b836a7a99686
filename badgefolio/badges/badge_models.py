from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime
from enum import Enum
from badgefolio.community.community_models import Reaction
from badgefolio.config import DEFAULT_CATEGORY_COLOR

# ==================== ENUMS ====================

class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

# ==================== BADGES ====================

class Badge(BaseModel):
    name: str
    description: str
    criteria: str
    difficulty: int = Field(..., ge=1, le=5)
    # Denormalized category name; kept in step with categories.name on rename
    category: str
    creator_id: Any  # ObjectId
    is_public: bool = True
    image: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: Optional[Any] = None
    approval_date: Optional[datetime] = None
    approval_comment: Optional[str] = None
    reactions: List[Reaction] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True

class Category(BaseModel):
    name: str
    description: str = ""
    color: str = DEFAULT_CATEGORY_COLOR
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
