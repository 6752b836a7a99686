from pydantic import BaseModel
from typing import List
from enum import Enum

# ==================== ENUMS ====================

class ReactionType(str, Enum):
    CLAP = "👏"
    PARTY = "🎉"
    STAR = "🌟"
    TROPHY = "🏆"
    STRONG = "💪"

REACTION_TYPES = {r.value for r in ReactionType}

# ==================== EMBEDDED DOCUMENTS ====================

class Reaction(BaseModel):
    """Embedded in badges and earned_badges; never stored with an empty `users`"""
    type: ReactionType
    users: List[str] = []  # reactor emails

    class Config:
        use_enum_values = True
