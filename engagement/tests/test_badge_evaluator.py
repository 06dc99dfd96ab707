"""
engagement/tests/test_badge_evaluator.py

Guardrail tests for badge evaluation.

Verifies:
- Threshold crossing awards once, re-evaluation awards nothing
- ALREADY_EXISTS is success but not returned as new
- One failing badge never blocks its siblings
- Overall rank percentile comes from the store when missing
- Concurrent triggers create exactly one award
"""

import threading
from datetime import timedelta

from engagement.core.metrics import badge_awards_total
from engagement.features.badges.catalog import BADGE_DEFINITIONS, get_badge_definition
from engagement.features.badges.service import BadgeEvaluator, category_score
from engagement.features.gateway.memory import InMemoryActivityStore
from engagement.models.activity import ActivityType
from engagement.models.badge import AwardOutcome, BadgeAward, ScoreSnapshot


def _ids(awards):
    return sorted(a.badge_id for a in awards)


class FailingAwardStore(InMemoryActivityStore):
    """Raises on one badge id; everything else behaves normally."""

    def __init__(self, failing_badge_id):
        super().__init__()
        self.failing_badge_id = failing_badge_id

    def create_badge_award(self, award):
        if award.badge_id == self.failing_badge_id:
            raise RuntimeError("insert failed")
        return super().create_badge_award(award)


class BrokenLookupStore(InMemoryActivityStore):
    def has_badge(self, participant_id, session_id, badge_id):
        raise RuntimeError("lookup failed")


class ErrorOutcomeStore(InMemoryActivityStore):
    def create_badge_award(self, award):
        return AwardOutcome.ERROR


class TestCatalog:

    def test_seven_badges_with_unique_ids(self):
        assert len(BADGE_DEFINITIONS) == 7
        assert len({d.id for d in BADGE_DEFINITIONS}) == 7

    def test_lookup(self):
        assert get_badge_definition("curious_mind").threshold == 3
        assert get_badge_definition("missing") is None

    def test_overall_uses_percentile(self):
        champion = get_badge_definition("engagement_champion")

        assert category_score(champion, ScoreSnapshot(total_score=500)) is None
        assert category_score(champion, ScoreSnapshot(rank_percentile=95)) == 95


class TestEvaluate:

    def test_threshold_crossing_awards_once(self, store, fixed_now):
        """poll_score 4 -> nothing, 6 -> Poll Enthusiast, 6 again -> nothing."""
        evaluator = BadgeEvaluator(store)

        assert evaluator.evaluate("p-1", "s-1", ScoreSnapshot(poll_score=4), now=fixed_now) == []

        awards = evaluator.evaluate("p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now)
        assert _ids(awards) == ["poll_participant"]
        assert awards[0].earned_at == fixed_now

        assert evaluator.evaluate("p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now) == []
        assert _ids(store.get_badge_awards("s-1")) == ["poll_participant"]

    def test_awards_are_per_session(self, store, fixed_now):
        evaluator = BadgeEvaluator(store)
        snapshot = ScoreSnapshot(qna_score=3)

        evaluator.evaluate("p-1", "s-1", snapshot, now=fixed_now)
        awards = evaluator.evaluate("p-1", "s-2", snapshot, now=fixed_now)

        assert _ids(awards) == ["curious_mind"]

    def test_several_badges_at_once(self, store, fixed_now):
        snapshot = ScoreSnapshot(poll_score=15, qna_score=5, resource_score=3, attendance_score=80)
        awards = BadgeEvaluator(store).evaluate("p-1", "s-1", snapshot, now=fixed_now)

        assert _ids(awards) == [
            "curious_mind",
            "dedicated_learner",
            "knowledge_sharer",
            "poll_expert",
            "poll_participant",
            "resource_explorer",
        ]
        assert badge_awards_total.value({"outcome": "created"}) == 6

    def test_already_existing_award_is_not_returned(self, store, fixed_now):
        store.create_badge_award(
            BadgeAward(participant_id="p-1", session_id="s-1", badge_id="poll_participant", earned_at=fixed_now)
        )
        awards = BadgeEvaluator(store).evaluate("p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now)

        assert awards == []

    def test_failing_badge_does_not_block_siblings(self, fixed_now):
        store = FailingAwardStore("poll_participant")
        snapshot = ScoreSnapshot(poll_score=6, qna_score=3)

        awards = BadgeEvaluator(store).evaluate("p-1", "s-1", snapshot, now=fixed_now)

        assert _ids(awards) == ["curious_mind"]
        assert badge_awards_total.value({"outcome": "error"}) == 1

    def test_error_outcome_is_not_an_award(self, fixed_now):
        awards = BadgeEvaluator(ErrorOutcomeStore()).evaluate(
            "p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now
        )

        assert awards == []
        assert badge_awards_total.value({"outcome": "error"}) == 1

    def test_lookup_failure_still_attempts_award(self, fixed_now):
        store = BrokenLookupStore()
        evaluator = BadgeEvaluator(store)

        first = evaluator.evaluate("p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now)
        second = evaluator.evaluate("p-1", "s-1", ScoreSnapshot(poll_score=6), now=fixed_now)

        assert _ids(first) == ["poll_participant"]
        assert second == []
        assert badge_awards_total.value({"outcome": "already_exists"}) == 1


class TestRankPercentile:

    def _leaderboard(self, store, make_record):
        for i in range(11):
            store.append_activity(make_record(f"p-{i}", score=i * 10 + 1))

    def test_percentile_fetched_from_store(self, store, fixed_now, make_record):
        self._leaderboard(store, make_record)
        evaluator = BadgeEvaluator(store)

        top = evaluator.evaluate("p-10", "s-1", ScoreSnapshot(), now=fixed_now)
        middle = evaluator.evaluate("p-5", "s-1", ScoreSnapshot(), now=fixed_now)

        assert _ids(top) == ["engagement_champion"]
        assert middle == []

    def test_supplied_percentile_is_used(self, store, fixed_now):
        awards = BadgeEvaluator(store).evaluate("p-1", "s-1", ScoreSnapshot(rank_percentile=90), now=fixed_now)

        assert _ids(awards) == ["engagement_champion"]


class TestEvaluateFromHistory:

    def test_snapshot_derived_from_records(self, store, fixed_now, make_record):
        for minute in range(3):
            store.append_activity(
                make_record("p-1", ActivityType.QUESTION, score=1, ago=timedelta(minutes=minute))
            )
        store.append_activity(make_record("p-2", ActivityType.POLL, score=1))

        awards = BadgeEvaluator(store).evaluate_from_history("p-1", "s-1", now=fixed_now)

        # p-1 outscores p-2, so p-1 is also at the top of a two-person board
        assert _ids(awards) == ["curious_mind", "engagement_champion"]


class TestConcurrentTriggers:

    def test_racing_triggers_create_one_award(self, fixed_now):
        store = InMemoryActivityStore()
        evaluator = BadgeEvaluator(store)
        snapshot = ScoreSnapshot(poll_score=6, rank_percentile=0)
        results = []
        barrier = threading.Barrier(8)

        def trigger():
            barrier.wait()
            results.append(evaluator.evaluate("p-1", "s-1", snapshot, now=fixed_now))

        threads = [threading.Thread(target=trigger) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        created = [award for batch in results for award in batch]
        assert _ids(created) == ["poll_participant"]
        assert len(store.get_badge_awards("s-1")) == 1
