"""
Activity domain models.

Activity records are the only input the engine reduces over. They are
append-only and immutable; ordering by occurred_at matters for windowing
and momentum comparison.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ActivityType(str, Enum):
    """Every scored or tracked participant action."""
    POLL = "poll"
    QUESTION = "question"
    ANSWER = "answer"
    RESOURCE_DOWNLOAD = "resource_download"
    SESSION_DURATION = "session_duration"
    GAME_STARTED = "game_started"
    GAME_COMPLETED = "game_completed"


class OrganizerActivityType(str, Enum):
    """Content the organizer creates during a session."""
    POLL = "poll"
    QUESTION = "question"
    RESOURCE = "resource"


class ActivityRecord(BaseModel):
    """A single participant action inside a session."""
    model_config = ConfigDict(frozen=True)

    participant_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    activity_type: ActivityType
    score: float = 0.0
    occurred_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("occurred_at")
    @classmethod
    def _normalize_occurred_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class OrganizerActivity(BaseModel):
    """A poll, question or resource created by the organizer side."""
    model_config = ConfigDict(frozen=True)

    type: OrganizerActivityType
    occurred_at: datetime
    participant_id: Optional[str] = None

    @field_validator("occurred_at")
    @classmethod
    def _normalize_occurred_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SessionMetadata(BaseModel):
    """Descriptive session data; every field is optional."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    organizer_id: Optional[str] = None
    started_at: Optional[datetime] = None

    @field_validator("started_at")
    @classmethod
    def _normalize_started_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None
