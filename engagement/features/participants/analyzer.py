"""
Participant Analyzer

Pure reduction: (records, now) -> one ParticipantAnalysis per participant
with at least one record. Same input, same output.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Sequence

from engagement.models.activity import ActivityRecord, ensure_utc
from engagement.models.participant import EngagementLevel, MomentumDirection, ParticipantAnalysis


# Two suggestions per level, most useful first
SUGGESTION_LADDER: Dict[EngagementLevel, List[str]] = {
    EngagementLevel.LOW: [
        "Ask a question to get started",
        "Participate in the next poll",
    ],
    EngagementLevel.MEDIUM: [
        "You're doing great! Keep the momentum going",
        "Try downloading a resource for extra points",
    ],
    EngagementLevel.HIGH: [
        "You're a top performer! Help others by answering questions",
        "Share your insights in the discussion",
    ],
    EngagementLevel.SUPERSTAR: [
        "Amazing engagement! You're setting the standard",
        "Consider becoming a session ambassador",
    ],
}

REENGAGE_SUGGESTION = "Jump back in - the discussion is heating up!"


class ParticipantAnalyzer:
    """Classifies every participant from their full activity history."""

    RECENT_WINDOW = timedelta(minutes=5)

    # Strictly-greater-than score thresholds
    SUPERSTAR_ABOVE = 100
    HIGH_ABOVE = 50
    MEDIUM_ABOVE = 20

    # streak = total_score // STREAK_DIVISOR, capped. This is a score proxy,
    # not a count of consecutive active intervals.
    STREAK_DIVISOR = 10
    STREAK_CAP = 30

    @staticmethod
    def analyze(records: Sequence[ActivityRecord], now: datetime) -> List[ParticipantAnalysis]:
        """
        Analyze every participant in the session.

        Returns:
            Analyses sorted by participant_id
        """
        by_participant: Dict[str, List[ActivityRecord]] = defaultdict(list)
        for record in records:
            by_participant[record.participant_id].append(record)

        return [
            ParticipantAnalyzer.analyze_participant(participant_id, by_participant[participant_id], now)
            for participant_id in sorted(by_participant)
        ]

    @staticmethod
    def analyze_participant(
        participant_id: str,
        records: Sequence[ActivityRecord],
        now: datetime,
    ) -> ParticipantAnalysis:
        since = ensure_utc(now) - ParticipantAnalyzer.RECENT_WINDOW
        recent_count = sum(1 for r in records if r.occurred_at >= since)
        total_count = len(records)
        older_count = total_count - recent_count
        total_score = sum(r.score for r in records)

        level = ParticipantAnalyzer.classify_level(total_score)
        momentum = ParticipantAnalyzer.classify_momentum(recent_count, older_count)

        suggestions = list(SUGGESTION_LADDER[level])
        if momentum == MomentumDirection.DECLINING:
            suggestions.append(REENGAGE_SUGGESTION)

        return ParticipantAnalysis(
            participant_id=participant_id,
            engagement_level=level,
            recent_activity_count=recent_count,
            total_activity_count=total_count,
            total_score=total_score,
            streak=ParticipantAnalyzer.streak(total_score),
            momentum=momentum,
            risk_of_dropoff=recent_count == 0 and total_count > 0,
            suggested_actions=suggestions,
        )

    @staticmethod
    def classify_level(total_score: float) -> EngagementLevel:
        if total_score > ParticipantAnalyzer.SUPERSTAR_ABOVE:
            return EngagementLevel.SUPERSTAR
        if total_score > ParticipantAnalyzer.HIGH_ABOVE:
            return EngagementLevel.HIGH
        if total_score > ParticipantAnalyzer.MEDIUM_ABOVE:
            return EngagementLevel.MEDIUM
        return EngagementLevel.LOW

    @staticmethod
    def classify_momentum(recent_count: int, older_count: int) -> MomentumDirection:
        if recent_count > older_count:
            return MomentumDirection.RISING
        if recent_count < older_count and older_count > 0:
            return MomentumDirection.DECLINING
        return MomentumDirection.STABLE

    @staticmethod
    def streak(total_score: float) -> int:
        if total_score <= 0:
            return 0
        return min(int(total_score // ParticipantAnalyzer.STREAK_DIVISOR), ParticipantAnalyzer.STREAK_CAP)
