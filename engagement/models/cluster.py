"""
Activity cluster models.

Clusters are four fixed archetypes populated from the current participant
analyses. They are never persisted.
"""

from enum import Enum
from typing import Dict, FrozenSet

from pydantic import BaseModel, ConfigDict, Field


class ActivityCategory(str, Enum):
    """Weighted score categories, in tie-break order."""
    POLL = "poll"
    QNA = "qna"
    RESOURCE = "resource"
    ATTENDANCE = "attendance"


class ClusterArchetype(str, Enum):
    POLL_ENTHUSIASTS = "poll_enthusiasts"
    QNA_STARS = "qna_stars"
    RESOURCE_COLLECTORS = "resource_collectors"
    OBSERVERS = "observers"


class DominantActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ActivityCategory
    percentage_within_cluster: int = Field(..., ge=0, le=100)


class ActivityCluster(BaseModel):
    """A behavioral segment of the session's participants."""
    model_config = ConfigDict(frozen=True)

    cluster_id: int
    archetype: ClusterArchetype
    name: str
    description: str
    participant_ids: FrozenSet[str]
    population_percentage: int = Field(..., ge=0, le=100)
    dominant_activity: DominantActivity
    badge_distribution: Dict[str, int] = Field(default_factory=dict)
