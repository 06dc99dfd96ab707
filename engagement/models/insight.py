"""
Insight models.

Insights are generated fresh every tick and never persisted. Each one
carries the metric values that triggered it so the organizer view can
explain itself.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field


class InsightType(str, Enum):
    RECOMMENDATION = "recommendation"
    ALERT = "alert"
    CELEBRATION = "celebration"
    TREND = "trend"


class InsightPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Higher is more pressing."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    InsightPriority.LOW: 1,
    InsightPriority.MEDIUM: 2,
    InsightPriority.HIGH: 3,
    InsightPriority.URGENT: 4,
}


class TargetRole(str, Enum):
    ORGANIZER = "organizer"
    PARTICIPANT = "participant"
    BOTH = "both"


class Insight(BaseModel):
    """A single prioritized, role-targeted observation or recommendation."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable within a tick; used for de-duplication")
    type: InsightType
    priority: InsightPriority
    title: str
    message: str
    target_role: TargetRole
    actionable: bool
    created_at: datetime
    metrics_snapshot: Dict[str, Union[int, float, str]] = Field(
        default_factory=dict,
        description="Snapshot of values that triggered this insight",
    )


class RecommendationBundle(BaseModel):
    """Short imperative advice for the organizer. Both lists are never empty."""
    model_config = ConfigDict(frozen=True)

    immediate: List[str] = Field(..., min_length=1)
    strategic: List[str] = Field(..., min_length=1)
