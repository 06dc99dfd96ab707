"""
Badge models.

Badge definitions are static configuration. Awards are created exactly once
per (participant_id, session_id, badge_id); the storage boundary reports
duplicates as AwardOutcome.ALREADY_EXISTS rather than raising.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BadgeCategory(str, Enum):
    POLL = "poll"
    QNA = "qna"
    RESOURCE = "resource"
    ATTENDANCE = "attendance"
    OVERALL = "overall"


class BadgeLevel(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class BadgeDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: BadgeCategory
    threshold: float
    level: BadgeLevel


class BadgeAward(BaseModel):
    model_config = ConfigDict(frozen=True)

    participant_id: str
    session_id: str
    badge_id: str
    earned_at: datetime


class AwardOutcome(str, Enum):
    """Result of an award insert at the storage boundary."""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    ERROR = "error"


class ScoreSnapshot(BaseModel):
    """Cumulative per-category scores for one participant in one session."""
    model_config = ConfigDict(frozen=True)

    poll_score: float = Field(0.0, ge=0.0)
    qna_score: float = Field(0.0, ge=0.0)
    resource_score: float = Field(0.0, ge=0.0)
    attendance_score: float = Field(0.0, ge=0.0)
    total_score: float = Field(0.0, ge=0.0)
    rank_percentile: Optional[float] = Field(None, ge=0.0, le=100.0)


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    participant_id: str
    rank: int = Field(..., ge=1)
    scores: ScoreSnapshot
