"""
engagement/tests/test_insight_generator.py

Guardrail tests for insight generation.

Verifies:
- Each organizer rule fires on its condition and only then
- Personal participant insights
- Ranking, de-duplication and determinism
- Topic phrasing never changes type or priority
- Recommendation bundle and health summary
"""

from datetime import timedelta

import pytest

from engagement.features.insights.service import InsightGenerator, rank_insights
from engagement.features.insights.topics import GENERIC_PHRASES, TOPIC_FAMILIES
from engagement.features.metrics.calculator import classify_risk
from engagement.models.insight import Insight, InsightPriority, InsightType, TargetRole
from engagement.models.intelligence import HealthStatus
from engagement.models.metrics import EngagementMetrics
from engagement.models.participant import EngagementLevel, MomentumDirection, ParticipantAnalysis

AI_PHRASES = TOPIC_FAMILIES[0][2]


def _metrics(health=60, participation=60, momentum=50, attention=60, total=10):
    return EngagementMetrics(
        session_health=health,
        participation_rate=participation,
        engagement_velocity=1.0,
        attention_span=attention,
        momentum_score=momentum,
        risk_level=classify_risk(health, participation, total),
        total_participants=total,
        active_participants=0,
    )


def _analysis(pid="p-1", level=EngagementLevel.MEDIUM, recent=2, total=4, at_risk=False,
              momentum=MomentumDirection.STABLE):
    return ParticipantAnalysis(
        participant_id=pid,
        engagement_level=level,
        recent_activity_count=recent,
        total_activity_count=total,
        total_score=30.0,
        streak=3,
        momentum=momentum,
        risk_of_dropoff=at_risk,
        suggested_actions=[],
    )


@pytest.fixture
def generator():
    return InsightGenerator()


@pytest.fixture
def organizer_now(fixed_now, make_organizer_activity):
    """Organizer posted a minute ago: silence rules stay quiet."""
    return [make_organizer_activity(ago=timedelta(minutes=1))]


def _titles(insights):
    return [i.title for i in insights]


class TestOrganizerRules:

    def test_quiet_healthy_session_has_no_alerts(self, generator, fixed_now, organizer_now):
        insights = generator.organizer_insights(
            "s-1", _metrics(total=1), [_analysis()], organizer_now, 15, fixed_now
        )
        assert insights == []

    def test_organizer_silence_without_any_activity(self, generator, fixed_now):
        insights = generator.organizer_insights("s-1", _metrics(), [], [], 5, fixed_now)
        silence = next(i for i in insights if i.title == "Organizer Action Needed")

        assert silence.priority == InsightPriority.URGENT
        assert silence.type == InsightType.ALERT
        assert silence.target_role == TargetRole.ORGANIZER
        assert silence.id == "organizer-inactive-s-1"
        assert "No organizer activity yet" in silence.message

    def test_organizer_silence_reports_minutes(self, generator, fixed_now, make_organizer_activity):
        organizer = [make_organizer_activity(ago=timedelta(minutes=8))]
        insights = generator.organizer_insights("s-1", _metrics(), [], organizer, 5, fixed_now)
        silence = next(i for i in insights if i.title == "Organizer Action Needed")

        assert "8 minutes" in silence.message
        assert silence.metrics_snapshot["seconds_since_organizer_activity"] == 480

    def test_organizer_silence_needs_more_than_five_minutes(self, generator, fixed_now, make_organizer_activity):
        organizer = [make_organizer_activity(ago=timedelta(minutes=4))]
        insights = generator.organizer_insights("s-1", _metrics(), [], organizer, 5, fixed_now)

        assert "Organizer Action Needed" not in _titles(insights)

    def test_stagnation_after_ten_minutes(self, generator, fixed_now, make_organizer_activity):
        organizer = [make_organizer_activity(ago=timedelta(minutes=6))]

        long_run = generator.organizer_insights("s-1", _metrics(), [], organizer, 11, fixed_now)
        short_run = generator.organizer_insights("s-1", _metrics(), [], organizer, 10, fixed_now)

        boost = next(i for i in long_run if i.title == "Boost Session Energy")
        assert boost.priority == InsightPriority.HIGH
        assert boost.message == GENERIC_PHRASES.immediate
        assert "Boost Session Energy" not in _titles(short_run)

    def test_unresponsive_participants(self, generator, fixed_now, organizer_now):
        participants = [
            _analysis("p-1", recent=0, total=0),
            _analysis("p-2", recent=0, total=0),
            _analysis("p-3"),
        ]
        insights = generator.organizer_insights(
            "s-1", _metrics(total=len(participants)), participants, organizer_now, 5, fixed_now
        )
        alert = next(i for i in insights if i.title == "Participants Not Responding")

        assert alert.priority == InsightPriority.MEDIUM
        assert alert.message.startswith("2 participants haven't engaged recently.")

    def test_at_risk_participants_are_not_unresponsive(self, generator, fixed_now, organizer_now):
        participants = [_analysis(f"p-{i}", recent=0, at_risk=True) for i in range(3)]
        insights = generator.organizer_insights(
            "s-1", _metrics(total=len(participants)), participants, organizer_now, 5, fixed_now
        )

        assert "Participants Not Responding" not in _titles(insights)

    def test_roster_without_activity_counts_as_unresponsive(self, generator, fixed_now, organizer_now):
        insights = generator.organizer_insights(
            "s-1", _metrics(total=10), [_analysis("p-1")], organizer_now, 5, fixed_now
        )
        alert = next(i for i in insights if i.title == "Participants Not Responding")

        assert alert.message.startswith("9 participants haven't engaged recently.")
        assert alert.metrics_snapshot == {"unresponsive": 9, "participants": 10}

    def test_silent_roster_share_must_exceed_threshold(self, generator, fixed_now, organizer_now):
        participants = [_analysis(f"p-{i}") for i in range(7)]
        insights = generator.organizer_insights(
            "s-1", _metrics(total=10), participants, organizer_now, 5, fixed_now
        )

        assert "Participants Not Responding" not in _titles(insights)

    @pytest.mark.parametrize(
        "health,participation,title,priority",
        [
            (20, 60, "Critical: Low Engagement", InsightPriority.URGENT),
            (45, 60, "Engagement Opportunity", InsightPriority.MEDIUM),
            (85, 60, "Excellent Engagement!", InsightPriority.LOW),
        ],
    )
    def test_health_rules_are_exclusive(self, generator, fixed_now, organizer_now, health, participation, title, priority):
        insights = generator.organizer_insights(
            "s-1", _metrics(health=health, participation=participation), [], organizer_now, 5, fixed_now
        )
        health_titles = {"Critical: Low Engagement", "Engagement Opportunity", "Excellent Engagement!"}
        fired = [i for i in insights if i.title in health_titles]

        assert len(fired) == 1
        assert fired[0].title == title
        assert fired[0].priority == priority

    def test_low_participation_needs_more_than_two_participants(self, generator, fixed_now, organizer_now):
        metrics = _metrics(participation=25)
        three = [_analysis(f"p-{i}") for i in range(3)]
        two = three[:2]

        fired = generator.organizer_insights("s-1", metrics, three, organizer_now, 5, fixed_now)
        quiet = generator.organizer_insights("s-1", metrics, two, organizer_now, 5, fixed_now)

        low = next(i for i in fired if i.title == "Low Participation Rate")
        assert low.priority == InsightPriority.HIGH
        assert low.message.startswith("Only 25% active.")
        assert "Low Participation Rate" not in _titles(quiet)

    def test_momentum_rules(self, generator, fixed_now, organizer_now):
        high = generator.organizer_insights("s-1", _metrics(momentum=80), [], organizer_now, 5, fixed_now)
        low = generator.organizer_insights("s-1", _metrics(momentum=20), [], organizer_now, 5, fixed_now)

        assert "Great Momentum!" in _titles(high)
        declining = next(i for i in low if i.title == "Momentum Declining")
        assert declining.priority == InsightPriority.MEDIUM
        assert declining.type == InsightType.ALERT

    def test_checkpoint_after_twenty_minutes(self, generator, fixed_now, make_organizer_activity):
        organizer = [make_organizer_activity(ago=timedelta(minutes=4))]
        stale = [make_organizer_activity(ago=timedelta(minutes=6))]

        with_recent = generator.organizer_insights("s-1", _metrics(), [], organizer, 25, fixed_now)
        without_recent = generator.organizer_insights("s-1", _metrics(), [], stale, 25, fixed_now)

        assert "Session Checkpoint" not in _titles(with_recent)
        checkpoint = next(i for i in without_recent if i.title == "Session Checkpoint")
        assert checkpoint.message.startswith("25 minutes in.")


class TestRankingAndDeterminism:

    def test_urgent_first_stable_within_priority(self, generator, fixed_now):
        insights = generator.organizer_insights(
            "s-1", _metrics(health=20, momentum=10), [], [], 25, fixed_now
        )
        ranks = [i.priority.rank for i in insights]

        assert ranks == sorted(ranks, reverse=True)
        assert _titles(insights)[:2] == ["Organizer Action Needed", "Critical: Low Engagement"]

    def test_rank_insights_dedupes_by_id(self, fixed_now):
        first = Insight(id="x", type=InsightType.ALERT, priority=InsightPriority.LOW, title="a",
                        message="m", target_role=TargetRole.ORGANIZER, actionable=False, created_at=fixed_now)
        dup = first.model_copy(update={"title": "b"})

        assert _titles(rank_insights([first, dup])) == ["a"]

    def test_same_inputs_same_insights(self, generator, fixed_now):
        args = ("s-1", _metrics(health=20, participation=10), [_analysis(f"p-{i}") for i in range(4)], [], 30, fixed_now)

        assert generator.organizer_insights(*args) == generator.organizer_insights(*args)

    def test_topic_changes_message_only(self, generator, fixed_now):
        args = ("s-1", _metrics(health=20, participation=10, momentum=10), [_analysis(f"p-{i}") for i in range(4)], [], 30, fixed_now)
        generic = generator.organizer_insights(*args, phrases=GENERIC_PHRASES)
        ai = generator.organizer_insights(*args, phrases=AI_PHRASES)

        assert [(i.id, i.type, i.priority) for i in generic] == [(i.id, i.type, i.priority) for i in ai]
        assert [i.message for i in generic] != [i.message for i in ai]


class TestParticipantInsights:

    def test_superstar_celebration(self, generator, fixed_now):
        insights = generator.participant_insights(
            _analysis(level=EngagementLevel.SUPERSTAR, recent=3), fixed_now
        )

        assert len(insights) == 1
        assert insights[0].type == InsightType.CELEBRATION
        assert insights[0].target_role == TargetRole.PARTICIPANT

    def test_at_risk_jump_back_in(self, generator, fixed_now):
        insights = generator.participant_insights(_analysis(recent=0, at_risk=True), fixed_now)

        assert _titles(insights) == ["Jump Back In!"]
        assert insights[0].priority == InsightPriority.MEDIUM
        assert insights[0].type == InsightType.ALERT
        assert insights[0].id == "participant-risk-p-1"

    def test_inactive_not_at_risk_stay_engaged(self, generator, fixed_now):
        insights = generator.participant_insights(_analysis(recent=0, total=0), fixed_now)

        assert _titles(insights) == ["Stay Engaged"]
        assert insights[0].type == InsightType.RECOMMENDATION

    def test_all_participant_insights_collects_everyone(self, generator, fixed_now):
        participants = [
            _analysis("p-1", recent=0, at_risk=True),
            _analysis("p-2", level=EngagementLevel.SUPERSTAR),
        ]
        insights = generator.all_participant_insights(participants, fixed_now)

        assert [i.id for i in insights] == ["participant-risk-p-1", "participant-superstar-p-2"]


class TestRecommendations:

    def test_both_lists_have_defaults(self, generator):
        bundle = generator.recommendations(_metrics(), [], [], "generic")

        assert bundle.immediate == InsightGenerator.default_immediate()
        assert bundle.strategic == InsightGenerator.default_strategic()

    def test_ai_defaults(self, generator):
        bundle = generator.recommendations(_metrics(), [], [], "ai_ml", AI_PHRASES)

        assert "AI/ML" in bundle.immediate[0]

    def test_critical_session(self, generator, fixed_now):
        metrics = _metrics(health=15, participation=0, momentum=10, attention=120, total=3)
        participants = [_analysis(f"p-{i}", recent=0, at_risk=True) for i in range(3)]
        insights = generator.organizer_insights("s-1", metrics, participants, [], 30, fixed_now)
        bundle = generator.recommendations(metrics, participants, insights, "generic")

        assert "Create an interactive poll now" in bundle.immediate
        assert "Increase organizer engagement with participants" in bundle.immediate
        assert len(bundle.immediate) == len(set(bundle.immediate))
        assert bundle.strategic == [
            "Review session structure and pacing",
            "Prepare more interactive backup content",
            "Consider shorter content segments",
            "Implement regular engagement checkpoints",
            "Break content into 5-10 minute chunks",
            "Add interactive elements every few minutes",
            "Redesign session flow for better engagement",
            "Add more variety in content delivery methods",
        ]

    def test_unresponsive_adds_topic_prompt(self, generator, fixed_now, organizer_now):
        participants = [_analysis(f"p-{i}", recent=0, total=0) for i in range(3)]
        insights = generator.organizer_insights("s-1", _metrics(), participants, organizer_now, 5, fixed_now, AI_PHRASES)
        bundle = generator.recommendations(_metrics(), participants, insights, "ai_ml", AI_PHRASES)

        assert f"Try: {AI_PHRASES.engagement}" in bundle.immediate
        assert 'Try "raise your hand" or "type in chat" prompts' in bundle.immediate


class TestHealthSummary:

    @pytest.mark.parametrize(
        "health,participation,status",
        [
            (80, 70, HealthStatus.EXCELLENT),
            (79, 90, HealthStatus.GOOD),
            (60, 50, HealthStatus.GOOD),
            (59, 10, HealthStatus.NEEDS_ATTENTION),
            (10, 30, HealthStatus.NEEDS_ATTENTION),
            (39, 29, HealthStatus.CRITICAL),
        ],
    )
    def test_status(self, health, participation, status):
        summary = InsightGenerator.health_summary(_metrics(health=health, participation=participation))
        assert summary.status == status
