from pydantic import BaseModel

class ReactionToggle(BaseModel):
    """Type is checked in the service so that unknown emoji get a readable error"""
    type: str

class EarnedBadgeReaction(BaseModel):
    earned_badge_id: str
    type: str

class BadgeReaction(BaseModel):
    badge_id: str
    type: str
