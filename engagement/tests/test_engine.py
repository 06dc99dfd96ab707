"""
engagement/tests/test_engine.py

Facade behaviour: cache vs on-demand computation, participant insights that
agree with the organizer view, score snapshots.
"""

import asyncio
from datetime import timedelta

import pytest

from engagement.engine import EngagementEngine
from engagement.models.activity import ActivityType
from engagement.models.badge import ScoreSnapshot


@pytest.fixture
def engine(store, fixed_now):
    return EngagementEngine(store, interval_seconds=60, clock=lambda: fixed_now)


async def _first_update(engine, session_id):
    received = []
    await engine.start_tracking(session_id, received.append)
    for _ in range(200):
        if received:
            return received[0]
        await asyncio.sleep(0.01)
    raise AssertionError("no update delivered")


class TestCurrentIntelligence:

    def test_untracked_is_computed_not_cached(self, engine, store, make_record, fixed_now):
        store.append_activity(make_record())

        intelligence = engine.get_current_intelligence("s-1")

        assert intelligence.last_updated == fixed_now
        assert engine.scheduler.get_cached("s-1") is None

    @pytest.mark.asyncio
    async def test_tracked_serves_cache(self, engine, store, make_record):
        store.append_activity(make_record())
        first = await _first_update(engine, "s-1")

        # New activity is not visible until the next tick
        store.append_activity(make_record("p-2"))

        assert engine.get_current_intelligence("s-1") is first
        assert engine.is_tracking("s-1") is True
        await engine.shutdown()
        assert engine.is_tracking("s-1") is False


class TestParticipantInsights:

    @pytest.mark.asyncio
    async def test_uses_cached_analysis(self, engine, store, make_record):
        store.append_activity(make_record("p-1", ago=timedelta(minutes=10)))
        await _first_update(engine, "s-1")

        # Fresh activity after the tick does not change the cached view
        store.append_activity(make_record("p-1"))
        insights = engine.get_participant_insights("s-1", "p-1")

        assert [i.title for i in insights] == ["Jump Back In!"]
        assert [i.title for i in engine.get_participant_insights("s-1", "p-silent")] == ["Stay Engaged"]
        await engine.shutdown()

    def test_untracked_reads_fresh_records(self, engine, store, make_record):
        for minute in (1, 2, 3):
            store.append_activity(make_record("p-1", score=50, ago=timedelta(minutes=minute)))

        insights = engine.get_participant_insights("s-1", "p-1")

        assert [i.title for i in insights] == ["You're on Fire!"]


class TestScores:

    def test_score_snapshot_includes_percentile(self, engine, store, make_record):
        store.append_activity(make_record("p-1", ActivityType.QUESTION, score=4))
        store.append_activity(make_record("p-2", ActivityType.POLL, score=1))

        snapshot = engine.get_score_snapshot("p-1", "s-1")

        assert snapshot.qna_score == 4
        assert snapshot.rank_percentile == 100

    def test_evaluate_badges_uses_engine_clock(self, engine, fixed_now):
        awards = engine.evaluate_badges("p-1", "s-1", ScoreSnapshot(attendance_score=85, rank_percentile=0))

        assert [a.badge_id for a in awards] == ["dedicated_learner"]
        assert awards[0].earned_at == fixed_now
        assert engine.get_badge_awards("s-1") == awards

    def test_badge_catalog(self):
        assert len(EngagementEngine.list_badge_definitions()) == 7
