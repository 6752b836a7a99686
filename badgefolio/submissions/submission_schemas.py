from pydantic import BaseModel, validator
from typing import Optional, List

class SubmissionCreate(BaseModel):
    badge_id: str
    evidence: str
    show_evidence: bool = True

    @validator("evidence")
    def evidence_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Evidence is required")
        return v

class SubmissionReview(BaseModel):
    status: str
    comment: Optional[str] = None

class BulkSubmissionReview(BaseModel):
    submission_ids: List[str]
    status: str
    comment: Optional[str] = None

class VisibilityUpdate(BaseModel):
    submission_id: str
    is_visible: Optional[bool] = None
    show_evidence: Optional[bool] = None
