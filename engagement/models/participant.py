"""Per-participant engagement analysis."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class EngagementLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SUPERSTAR = "superstar"


class MomentumDirection(str, Enum):
    RISING = "rising"
    STABLE = "stable"
    DECLINING = "declining"


class ParticipantAnalysis(BaseModel):
    """
    Classification of one participant at evaluation time.

    Superseded wholesale every tick. `streak` is a score-derived proxy
    (total_score // 10, capped at 30), not a count of consecutive active minutes.
    """
    model_config = ConfigDict(frozen=True)

    participant_id: str
    engagement_level: EngagementLevel
    recent_activity_count: int = Field(..., ge=0)
    total_activity_count: int = Field(..., ge=0)
    total_score: float
    streak: int = Field(..., ge=0, le=30)
    momentum: MomentumDirection
    risk_of_dropoff: bool
    suggested_actions: List[str] = Field(default_factory=list)
