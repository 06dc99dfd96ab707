"""
Session Insight Engine - Computation Service

Turns metrics, participant analyses, organizer activity and the detected topic
into ranked insights, a recommendation bundle and a health summary.
All rules are evaluated every tick; none short-circuits another.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union

from engagement.features.insights.topics import GENERIC_PHRASES, PhraseTable
from engagement.models.activity import OrganizerActivity, ensure_utc
from engagement.models.insight import (
    Insight,
    InsightPriority,
    InsightType,
    RecommendationBundle,
    TargetRole,
)
from engagement.models.intelligence import HealthStatus, HealthSummary
from engagement.models.metrics import EngagementMetrics, RiskLevel
from engagement.models.participant import EngagementLevel, ParticipantAnalysis

Snapshot = Dict[str, Union[int, float, str]]


def rank_insights(insights: Iterable[Insight]) -> List[Insight]:
    """
    De-duplicate by id (first wins) and order by priority, most pressing first.

    Equal priorities keep their generation order.
    """
    seen = set()
    unique = []
    for insight in insights:
        if insight.id in seen:
            continue
        seen.add(insight.id)
        unique.append(insight)
    return sorted(unique, key=lambda i: -i.priority.rank)


def _dedupe(items: Iterable[str]) -> List[str]:
    result = []
    for item in items:
        if item not in result:
            result.append(item)
    return result


class InsightGenerator:
    """
    Computes organizer and participant insights.

    All methods are pure functions (deterministic, no side effects).
    """

    # Configuration thresholds
    ORGANIZER_SILENCE_SECONDS = 300
    ORGANIZER_RECENT_WINDOW = timedelta(minutes=5)
    STAGNATION_MIN_DURATION = 10
    CHECKPOINT_MIN_DURATION = 20
    UNRESPONSIVE_SHARE = 0.3
    AT_RISK_SHARE = 0.3
    EXCELLENT_HEALTH_ABOVE = 80
    LOW_PARTICIPATION_BELOW = 30
    LOW_PARTICIPATION_MIN_PARTICIPANTS = 2
    HIGH_MOMENTUM_ABOVE = 75
    LOW_MOMENTUM_BELOW = 25
    LONG_ATTENTION_SPAN_ABOVE = 90

    def organizer_insights(
        self,
        session_id: str,
        metrics: EngagementMetrics,
        participants: Sequence[ParticipantAnalysis],
        organizer_activity: Sequence[OrganizerActivity],
        duration_minutes: float,
        now: datetime,
        phrases: PhraseTable = GENERIC_PHRASES,
    ) -> List[Insight]:
        """
        Evaluate every organizer rule.

        Args:
            session_id: Session being analyzed (used in insight ids)
            metrics: Current metrics snapshot
            participants: Current participant analyses
            organizer_activity: Organizer-created content (any order)
            duration_minutes: Minutes since the session started
            now: Evaluation time
            phrases: Topic phrase table for message text

        Returns:
            Ranked, de-duplicated organizer insights
        """
        now = ensure_utc(now)
        insights: List[Insight] = []

        recent_cutoff = now - self.ORGANIZER_RECENT_WINDOW
        recent_organizer = [a for a in organizer_activity if a.occurred_at >= recent_cutoff]
        last_organizer = max((a.occurred_at for a in organizer_activity), default=None)
        seconds_since_organizer = (now - last_organizer).total_seconds() if last_organizer else None

        # Roster members without records never reach the analyzer but are silent too
        roster_size = max(metrics.total_participants, len(participants))
        unresponsive = sum(1 for p in participants if p.recent_activity_count == 0 and not p.risk_of_dropoff)
        unresponsive += roster_size - len(participants)

        def add(rule, type_, priority, title, message, actionable, snapshot):
            insights.append(
                self._insight(f"{rule}-{session_id}", type_, priority, title, message,
                              TargetRole.ORGANIZER, actionable, now, snapshot)
            )

        # Organizer activity
        if seconds_since_organizer is None or seconds_since_organizer > self.ORGANIZER_SILENCE_SECONDS:
            if seconds_since_organizer is None:
                message = "No organizer activity yet. Participants need your engagement!"
                snapshot: Snapshot = {"seconds_since_organizer_activity": "never"}
            else:
                minutes = round(seconds_since_organizer / 60)
                message = f"No organizer activity for {minutes} minutes. Participants need your engagement!"
                snapshot = {"seconds_since_organizer_activity": int(seconds_since_organizer)}
            add("organizer-inactive", InsightType.ALERT, InsightPriority.URGENT,
                "Organizer Action Needed", message, True, snapshot)

        if not recent_organizer and duration_minutes > self.STAGNATION_MIN_DURATION:
            add("organizer-engagement", InsightType.RECOMMENDATION, InsightPriority.HIGH,
                "Boost Session Energy", phrases.immediate, True,
                {"recent_organizer_activity": 0, "duration_minutes": round(duration_minutes, 1)})

        # Participant responsiveness
        if unresponsive > roster_size * self.UNRESPONSIVE_SHARE:
            add("participants-unresponsive", InsightType.ALERT, InsightPriority.MEDIUM,
                "Participants Not Responding",
                f"{unresponsive} participants haven't engaged recently. Try: {phrases.engagement}",
                True, {"unresponsive": unresponsive, "participants": roster_size})

        # Session health
        health_snapshot: Snapshot = {
            "session_health": metrics.session_health,
            "risk_level": metrics.risk_level.value,
        }
        if metrics.risk_level == RiskLevel.HIGH:
            add("health-critical", InsightType.ALERT, InsightPriority.URGENT,
                "Critical: Low Engagement",
                f"Session health at {metrics.session_health}%. {phrases.urgent}",
                True, health_snapshot)
        elif metrics.risk_level == RiskLevel.MEDIUM:
            add("health-medium", InsightType.RECOMMENDATION, InsightPriority.MEDIUM,
                "Engagement Opportunity",
                f"Session health at {metrics.session_health}%. {phrases.medium}",
                True, health_snapshot)
        elif metrics.session_health > self.EXCELLENT_HEALTH_ABOVE:
            add("health-excellent", InsightType.CELEBRATION, InsightPriority.LOW,
                "Excellent Engagement!",
                f"Amazing {metrics.session_health}% session health! {phrases.success}",
                False, health_snapshot)

        # Participation
        if (
            metrics.participation_rate < self.LOW_PARTICIPATION_BELOW
            and len(participants) > self.LOW_PARTICIPATION_MIN_PARTICIPANTS
        ):
            add("participation-low", InsightType.RECOMMENDATION, InsightPriority.HIGH,
                "Low Participation Rate",
                f"Only {metrics.participation_rate}% active. {phrases.participation}",
                True, {"participation_rate": metrics.participation_rate, "participants": len(participants)})

        # Momentum
        momentum_snapshot: Snapshot = {"momentum_score": metrics.momentum_score}
        if metrics.momentum_score > self.HIGH_MOMENTUM_ABOVE:
            add("momentum-high", InsightType.CELEBRATION, InsightPriority.LOW,
                "Great Momentum!",
                f"Excellent momentum score of {metrics.momentum_score}%! {phrases.momentum}",
                False, momentum_snapshot)
        elif metrics.momentum_score < self.LOW_MOMENTUM_BELOW:
            add("momentum-low", InsightType.ALERT, InsightPriority.MEDIUM,
                "Momentum Declining",
                f"Momentum at {metrics.momentum_score}%. {phrases.reengage}",
                True, momentum_snapshot)

        # Time checkpoint
        if duration_minutes > self.CHECKPOINT_MIN_DURATION and not recent_organizer:
            add("session-checkpoint", InsightType.RECOMMENDATION, InsightPriority.MEDIUM,
                "Session Checkpoint",
                f"{round(duration_minutes)} minutes in. {phrases.checkpoint}",
                True, {"duration_minutes": round(duration_minutes, 1)})

        return rank_insights(insights)

    def participant_insights(self, analysis: ParticipantAnalysis, now: datetime) -> List[Insight]:
        """Personal insights for one participant."""
        now = ensure_utc(now)
        pid = analysis.participant_id
        snapshot: Snapshot = {
            "recent_activity_count": analysis.recent_activity_count,
            "engagement_level": analysis.engagement_level.value,
            "total_score": analysis.total_score,
        }
        insights: List[Insight] = []

        if analysis.risk_of_dropoff:
            insights.append(self._insight(
                f"participant-risk-{pid}", InsightType.ALERT, InsightPriority.MEDIUM,
                "Jump Back In!",
                "You've been quiet for over 30 seconds. The discussion is getting interesting!",
                TargetRole.PARTICIPANT, True, now, snapshot,
            ))

        if analysis.recent_activity_count == 0 and not analysis.risk_of_dropoff:
            insights.append(self._insight(
                f"participant-inactive-{pid}", InsightType.RECOMMENDATION, InsightPriority.MEDIUM,
                "Stay Engaged",
                "No recent activity detected. Try answering the current poll or asking a question!",
                TargetRole.PARTICIPANT, True, now, snapshot,
            ))

        if analysis.engagement_level == EngagementLevel.SUPERSTAR:
            insights.append(self._insight(
                f"participant-superstar-{pid}", InsightType.CELEBRATION, InsightPriority.LOW,
                "You're on Fire!",
                "Amazing engagement! You're setting the standard for others.",
                TargetRole.PARTICIPANT, False, now, snapshot,
            ))

        return rank_insights(insights)

    def all_participant_insights(self, participants: Sequence[ParticipantAnalysis], now: datetime) -> List[Insight]:
        insights: List[Insight] = []
        for analysis in participants:
            insights.extend(self.participant_insights(analysis, now))
        return rank_insights(insights)

    def recommendations(
        self,
        metrics: EngagementMetrics,
        participants: Sequence[ParticipantAnalysis],
        insights: Sequence[Insight],
        topic: str,
        phrases: PhraseTable = GENERIC_PHRASES,
    ) -> RecommendationBundle:
        """
        Short imperative advice derived from insights and session patterns.

        Both lists are always non-empty.
        """
        immediate: List[str] = []
        strategic: List[str] = []

        for insight in insights:
            if not insight.actionable or insight.priority not in (InsightPriority.HIGH, InsightPriority.URGENT):
                continue
            message = insight.message.lower()
            if "poll" in message:
                immediate.append("Create an interactive poll now")
            elif "question" in message:
                immediate.append("Ask an engaging question to the group")
            elif "activity" in message:
                immediate.append("Launch an interactive activity")
            else:
                immediate.append(insight.title)

        if any(i.id.startswith("organizer-") for i in insights):
            immediate.append("Increase organizer engagement with participants")
            immediate.append("Create new content or activities")

        if any(i.id.startswith("participants-unresponsive-") for i in insights):
            immediate.append(f"Try: {phrases.engagement}")
            immediate.append('Try "raise your hand" or "type in chat" prompts')
            if topic == "ai_ml":
                immediate.append('Try: "What AI tool have you used recently?" or "Share an AI experience"')
                immediate.append('Create poll: "Which is more important: Data Quality or Algorithm Choice?"')

        if metrics.risk_level == RiskLevel.HIGH:
            strategic.append("Review session structure and pacing")
            strategic.append("Prepare more interactive backup content")

        at_risk = sum(1 for p in participants if p.risk_of_dropoff)
        if at_risk > len(participants) * self.AT_RISK_SHARE:
            strategic.append("Consider shorter content segments")
            strategic.append("Implement regular engagement checkpoints")

        if metrics.attention_span > self.LONG_ATTENTION_SPAN_ABOVE:
            strategic.append("Break content into 5-10 minute chunks")
            strategic.append("Add interactive elements every few minutes")

        if metrics.momentum_score < self.LOW_MOMENTUM_BELOW:
            strategic.append("Redesign session flow for better engagement")
            strategic.append("Add more variety in content delivery methods")

        if not immediate:
            immediate = self.default_immediate(topic)
        if not strategic:
            strategic = self.default_strategic()

        return RecommendationBundle(immediate=_dedupe(immediate), strategic=_dedupe(strategic))

    @staticmethod
    def default_immediate(topic: Optional[str] = None) -> List[str]:
        if topic == "ai_ml":
            return [
                'Ask: "What\'s your biggest AI/ML question?"',
                'Create poll: "Supervised vs Unsupervised learning preference?"',
            ]
        return [
            "Maintain current engagement momentum",
            "Consider introducing new discussion topics",
        ]

    @staticmethod
    def default_strategic() -> List[str]:
        return [
            "Continue monitoring real-time engagement patterns",
            "Develop contingency plans for engagement drops",
        ]

    @staticmethod
    def health_summary(metrics: EngagementMetrics) -> HealthSummary:
        """Quick overview of session health."""
        health = metrics.session_health
        participation = metrics.participation_rate

        if health >= 80 and participation >= 70:
            return HealthSummary(
                status=HealthStatus.EXCELLENT,
                message="Session is thriving! Participants are highly engaged.",
            )
        if health >= 60 and participation >= 50:
            return HealthSummary(
                status=HealthStatus.GOOD,
                message="Good engagement levels. Keep the momentum going.",
            )
        if health >= 40 or participation >= 30:
            return HealthSummary(
                status=HealthStatus.NEEDS_ATTENTION,
                message="Engagement is declining. Consider interactive elements.",
            )
        return HealthSummary(
            status=HealthStatus.CRITICAL,
            message="Low engagement detected. Immediate action recommended.",
        )

    @staticmethod
    def _insight(
        insight_id: str,
        type_: InsightType,
        priority: InsightPriority,
        title: str,
        message: str,
        target_role: TargetRole,
        actionable: bool,
        now: datetime,
        snapshot: Snapshot,
    ) -> Insight:
        return Insight(
            id=insight_id,
            type=type_,
            priority=priority,
            title=title,
            message=message,
            target_role=target_role,
            actionable=actionable,
            created_at=now,
            metrics_snapshot=snapshot,
        )
