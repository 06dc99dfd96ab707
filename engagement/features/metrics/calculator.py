"""
Metrics Calculator

Pure, deterministic reduction of a session's activity into EngagementMetrics.
No external calls, no randomness, no side effects.

Scoring philosophy:
- Health compares recent actions against what the room should be producing,
  blended with how active the organizer has been
- Participation counts distinct participants active in the recent window
- Attention span and momentum read the same recent window; momentum compares
  the newest scored records against the ones before them (50 = neutral)
- Every bounded field is clamped, and risk is derived from the rounded fields
"""

from datetime import datetime, timedelta
from typing import List, Sequence

from engagement.models.activity import ActivityRecord, OrganizerActivity, ensure_utc
from engagement.models.metrics import EngagementMetrics, RiskLevel


def classify_risk(session_health: int, participation_rate: int, total_participants: int) -> RiskLevel:
    """
    Risk level as a pure function of the rounded metrics.

    high:   health < 25, or participation < 20 with more than one participant
    medium: health < 50, or participation < 40
    low:    otherwise
    """
    if session_health < 25 or (participation_rate < 20 and total_participants > 1):
        return RiskLevel.HIGH
    if session_health < 50 or participation_rate < 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class MetricsCalculator:
    """Pure deterministic engagement metrics."""

    # Windows
    RECENT_WINDOW = timedelta(minutes=5)
    ORGANIZER_WINDOW = timedelta(minutes=10)
    ORGANIZER_PREP_WINDOW = timedelta(minutes=5)

    # Health
    LONG_SESSION_MINUTES = 30
    HEALTH_FLOOR = 15.0
    HEALTH_FLOOR_BASE_BELOW = 30.0
    ORGANIZER_FACTOR_FLOOR_BELOW = 0.5
    ORGANIZER_WEIGHT = 0.3
    PREP_POINTS_PER_ACTION = 25.0
    PREP_HEALTH_CAP = 75.0

    # Attention span (seconds)
    DEFAULT_ATTENTION_SPAN = 60
    MAX_ATTENTION_GAP = 600

    # Momentum
    MOMENTUM_SLICE = 10
    MOMENTUM_NEUTRAL = 50.0
    MOMENTUM_FRESH_START = 75.0

    @staticmethod
    def compute(
        records: Sequence[ActivityRecord],
        organizer_activity: Sequence[OrganizerActivity],
        total_participants: int,
        duration_minutes: float,
        now: datetime,
    ) -> EngagementMetrics:
        """
        Compute a metrics snapshot for one session.

        Args:
            records: Full activity history for the session (any order)
            organizer_activity: Organizer-created content (any order)
            total_participants: Participants known for the session
            duration_minutes: Minutes since the session started
            now: Evaluation time

        Returns:
            EngagementMetrics with every field rounded and clamped
        """
        now = ensure_utc(now)
        total_participants = max(0, total_participants)
        duration_minutes = max(0.0, duration_minutes)

        recent = MetricsCalculator.recent_records(records, now)
        active_participants = len({r.participant_id for r in recent})

        health = MetricsCalculator._session_health(
            recent_count=len(recent),
            total_participants=total_participants,
            duration_minutes=duration_minutes,
            organizer_activity=organizer_activity,
            now=now,
        )

        if total_participants > 0:
            participation = active_participants / total_participants * 100
        else:
            participation = 0.0

        velocity = len(recent) / (MetricsCalculator.RECENT_WINDOW.total_seconds() / 60)

        session_health = int(round(_clamp(health)))
        participation_rate = int(round(_clamp(participation)))

        return EngagementMetrics(
            session_health=session_health,
            participation_rate=participation_rate,
            engagement_velocity=round(max(0.0, velocity), 1),
            attention_span=int(round(max(0.0, MetricsCalculator._attention_span(recent)))),
            momentum_score=int(round(_clamp(MetricsCalculator._momentum(recent)))),
            risk_level=classify_risk(session_health, participation_rate, total_participants),
            total_participants=total_participants,
            active_participants=active_participants,
        )

    @staticmethod
    def recent_records(records: Sequence[ActivityRecord], now: datetime) -> List[ActivityRecord]:
        """Records inside the trailing five-minute window (inclusive)."""
        since = ensure_utc(now) - MetricsCalculator.RECENT_WINDOW
        return [r for r in records if r.occurred_at >= since]

    @staticmethod
    def _count_organizer_since(organizer_activity: Sequence[OrganizerActivity], since: datetime) -> int:
        return sum(1 for a in organizer_activity if a.occurred_at >= since)

    @staticmethod
    def _session_health(
        recent_count: int,
        total_participants: int,
        duration_minutes: float,
        organizer_activity: Sequence[OrganizerActivity],
        now: datetime,
    ) -> float:
        """
        Session health, 0..100.

        With no participants yet, health reflects organizer preparation only.
        """
        if total_participants == 0:
            prep = MetricsCalculator._count_organizer_since(
                organizer_activity, now - MetricsCalculator.ORGANIZER_PREP_WINDOW
            )
            return min(prep * MetricsCalculator.PREP_POINTS_PER_ACTION, MetricsCalculator.PREP_HEALTH_CAP)

        expected = 2 if duration_minutes > MetricsCalculator.LONG_SESSION_MINUTES else 1
        base = min(recent_count / max(total_participants * expected, 1) * 100, 100.0)

        recent_organizer = MetricsCalculator._count_organizer_since(
            organizer_activity, now - MetricsCalculator.ORGANIZER_WINDOW
        )
        organizer_factor = min(recent_organizer / max(duration_minutes / 10, 1), 1.0)

        if base < MetricsCalculator.HEALTH_FLOOR_BASE_BELOW and organizer_factor < MetricsCalculator.ORGANIZER_FACTOR_FLOOR_BELOW:
            return max(base * 0.7, MetricsCalculator.HEALTH_FLOOR)
        return base * (1 - MetricsCalculator.ORGANIZER_WEIGHT + MetricsCalculator.ORGANIZER_WEIGHT * organizer_factor)

    @staticmethod
    def _attention_span(records: Sequence[ActivityRecord]) -> float:
        """
        Mean gap in seconds between consecutive recent actions.

        Gaps of MAX_ATTENTION_GAP or more are pauses, not attention, and are
        skipped. Simultaneous actions carry no gap signal either.
        """
        if len(records) < 2:
            return MetricsCalculator.DEFAULT_ATTENTION_SPAN

        ordered = sorted(r.occurred_at for r in records)
        gaps = []
        for earlier, later in zip(ordered, ordered[1:]):
            gap = (later - earlier).total_seconds()
            if 0 < gap < MetricsCalculator.MAX_ATTENTION_GAP:
                gaps.append(gap)

        if not gaps:
            return MetricsCalculator.DEFAULT_ATTENTION_SPAN
        return sum(gaps) / len(gaps)

    @staticmethod
    def _momentum(records: Sequence[ActivityRecord]) -> float:
        """
        Momentum, 0..100.

        Compares the summed score of the newest MOMENTUM_SLICE records with
        the MOMENTUM_SLICE records before them, all inside the recent window.
        The slices are record counts, so busy sessions compare over shorter
        spans.
        """
        size = MetricsCalculator.MOMENTUM_SLICE
        newest_first = sorted(records, key=lambda r: r.occurred_at, reverse=True)
        recent_sum = sum(r.score for r in newest_first[:size])
        older_sum = sum(r.score for r in newest_first[size:size * 2])

        if older_sum > 0:
            return min(recent_sum / older_sum * 50, 100.0)
        if recent_sum > 0:
            return MetricsCalculator.MOMENTUM_FRESH_START
        return MetricsCalculator.MOMENTUM_NEUTRAL
