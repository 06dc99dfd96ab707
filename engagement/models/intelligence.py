"""
Session intelligence snapshot.

The cached, subscriber-facing result of one pipeline run.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from engagement.models.cluster import ActivityCluster
from engagement.models.insight import Insight, RecommendationBundle
from engagement.models.metrics import EngagementMetrics
from engagement.models.participant import ParticipantAnalysis


class HealthStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_ATTENTION = "needs_attention"
    CRITICAL = "critical"


class HealthSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    message: str


class SessionIntelligence(BaseModel):
    """
    Everything the organizer view needs for one session at one point in time.

    `degraded` is True when the activity store could not be read and the
    snapshot was synthesized instead of computed. `epoch` identifies the
    tracking generation that produced it.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str
    metrics: EngagementMetrics
    organizer_insights: List[Insight] = Field(default_factory=list)
    participant_insights: List[Insight] = Field(default_factory=list)
    participants: List[ParticipantAnalysis] = Field(default_factory=list)
    top_performers: List[ParticipantAnalysis] = Field(default_factory=list)
    at_risk_participants: List[ParticipantAnalysis] = Field(default_factory=list)
    clusters: List[ActivityCluster] = Field(default_factory=list)
    recommendations: RecommendationBundle
    health_summary: HealthSummary
    topic: Optional[str] = None
    degraded: bool = False
    epoch: int = 0
    last_updated: datetime

    def analysis_for(self, participant_id: str) -> Optional[ParticipantAnalysis]:
        for analysis in self.participants:
            if analysis.participant_id == participant_id:
                return analysis
        return None
