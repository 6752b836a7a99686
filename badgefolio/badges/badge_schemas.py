from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from badgefolio.config import DEFAULT_CATEGORY_COLOR

# ==================== BADGES ====================

class BadgeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    criteria: str = Field(..., min_length=1)
    difficulty: int = Field(..., ge=1, le=5)
    category: str = Field(..., min_length=1)
    is_public: bool = True
    image: Optional[str] = None

    @validator("name", "category")
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class BadgeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    criteria: Optional[str] = None
    difficulty: Optional[int] = Field(None, ge=1, le=5)
    category: Optional[str] = Field(None, min_length=1)
    is_public: Optional[bool] = None
    image: Optional[str] = None

    @validator("name", "category")
    def strip_text(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class BadgeApproval(BaseModel):
    """Status is checked in the service so that bad values get a readable error"""
    badge_id: str
    status: str
    comment: Optional[str] = None

class BulkBadgeApproval(BaseModel):
    badge_ids: List[str]
    status: str
    comment: Optional[str] = None

class BulkBadgeDelete(BaseModel):
    badge_ids: List[str]

# ==================== CATEGORIES ====================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    color: str = DEFAULT_CATEGORY_COLOR

    @validator("name")
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

class CategoryChanges(BaseModel):
    id: str
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None

    @validator("name")
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

class CategoryUpdate(BaseModel):
    category: CategoryChanges
    update_badges: bool = False

# ==================== RESPONSES ====================

class CategoryResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    color: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
