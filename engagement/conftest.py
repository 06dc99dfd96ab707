# engagement/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from engagement.core.metrics import METRICS
from engagement.features.gateway.memory import InMemoryActivityStore
from engagement.models.activity import (
    ActivityRecord,
    ActivityType,
    OrganizerActivity,
    OrganizerActivityType,
    SessionMetadata,
)


@pytest.fixture
def fixed_now():
    """Fixed timestamp for deterministic testing."""
    return datetime(2025, 12, 21, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Fresh in-memory activity store per test."""
    return InMemoryActivityStore()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Counters are process-global; start every test from zero."""
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def make_record(fixed_now):
    """
    Factory for activity records.

    `ago` is how long before fixed_now the action happened.
    """
    def _make(
        participant_id="p-1",
        activity_type=ActivityType.POLL,
        score=10.0,
        ago=timedelta(minutes=1),
        session_id="s-1",
        metadata=None,
    ):
        return ActivityRecord(
            participant_id=participant_id,
            session_id=session_id,
            activity_type=activity_type,
            score=score,
            occurred_at=fixed_now - ago,
            metadata=metadata or {},
        )

    return _make


@pytest.fixture
def make_organizer_activity(fixed_now):
    def _make(ago=timedelta(minutes=1), type_=OrganizerActivityType.POLL, participant_id="organizer-1"):
        return OrganizerActivity(type=type_, occurred_at=fixed_now - ago, participant_id=participant_id)

    return _make


@pytest.fixture
def session_metadata(fixed_now):
    """Untopical session that started 30 minutes before fixed_now."""
    return SessionMetadata(
        session_id="s-1",
        title="Weekly sync",
        description="Team updates",
        organizer_id="organizer-1",
        started_at=fixed_now - timedelta(minutes=30),
    )
