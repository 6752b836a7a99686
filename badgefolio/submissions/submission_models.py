from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime
from enum import Enum
from badgefolio.community.community_models import Reaction

# ==================== ENUMS ====================

class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

# ==================== DATABASE MODELS ====================

class ReviewComment(BaseModel):
    content: str
    user_id: Any  # reviewer ObjectId
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Submission(BaseModel):
    """
    Evidence a student hands in for a badge. Reviewed by the badge's
    creator (`teacher_id`) or an admin.
    """
    badge_id: Any
    student_id: Any
    teacher_id: Any
    evidence: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    comments: List[ReviewComment] = []
    show_evidence: bool = True
    is_visible: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True

class EarnedBadge(BaseModel):
    """One document per (badge, student); written on first approval"""
    badge_id: Any
    student_id: Any
    submission_id: Optional[Any] = None
    reactions: List[Reaction] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
