"""
Session engagement metrics.

One snapshot per session per evaluation tick. Derived, never stored
long-term; regenerated every tick.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EngagementMetrics(BaseModel):
    """
    Aggregate health of a session.

    Attributes:
        session_health: 0..100, recent activity vs expected, blended with organizer activity
        participation_rate: 0..100, share of participants active in the last 5 minutes
        engagement_velocity: actions per minute over the last 5 minutes
        attention_span: mean seconds between consecutive actions
        momentum_score: 0..100, recent vs older scored activity (50 = neutral)
        risk_level: derived from the fields above (see classify_risk)
        total_participants: participants known for the session
        active_participants: distinct participants active in the last 5 minutes
    """
    model_config = ConfigDict(frozen=True)

    session_health: int = Field(..., ge=0, le=100)
    participation_rate: int = Field(..., ge=0, le=100)
    engagement_velocity: float = Field(..., ge=0.0)
    attention_span: int = Field(..., ge=0)
    momentum_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    total_participants: int = Field(0, ge=0)
    active_participants: int = Field(0, ge=0)
