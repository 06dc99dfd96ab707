"""
Session intelligence pipeline.

Runs the whole pipeline once for one session:
    gateway read -> metrics + participant analyses -> clusters
    -> insights + recommendations -> SessionIntelligence

A collaborator read failure never escapes: it produces a degraded snapshot.
"""

from datetime import datetime, timezone
from typing import List, Optional

from engagement.core.config import Settings, settings as default_settings
from engagement.core.logging import log_event
from engagement.features.clusters.engine import cluster_participants
from engagement.features.gateway.contracts import ActivityStoreGateway
from engagement.features.insights.service import InsightGenerator
from engagement.features.insights.topics import detect_topic
from engagement.features.metrics.calculator import MetricsCalculator
from engagement.features.participants.analyzer import ParticipantAnalyzer
from engagement.models.activity import ActivityRecord, SessionMetadata, ensure_utc
from engagement.models.insight import (
    Insight,
    InsightPriority,
    InsightType,
    RecommendationBundle,
    TargetRole,
)
from engagement.models.intelligence import SessionIntelligence
from engagement.models.metrics import EngagementMetrics, RiskLevel
from engagement.models.participant import EngagementLevel, MomentumDirection, ParticipantAnalysis


def build_degraded_intelligence(session_id: str, now: datetime, epoch: int = 0) -> SessionIntelligence:
    """
    Valid snapshot for when the activity store cannot be read.

    Zeroed metrics, high risk and a single explanatory alert.
    """
    now = ensure_utc(now)
    metrics = EngagementMetrics(
        session_health=0,
        participation_rate=0,
        engagement_velocity=0.0,
        attention_span=MetricsCalculator.DEFAULT_ATTENTION_SPAN,
        momentum_score=0,
        risk_level=RiskLevel.HIGH,
    )
    alert = Insight(
        id=f"analysis-unavailable-{session_id}",
        type=InsightType.ALERT,
        priority=InsightPriority.MEDIUM,
        title="Analysis Unavailable",
        message="Unable to analyze session data. Please check your connection.",
        target_role=TargetRole.ORGANIZER,
        actionable=False,
        created_at=now,
        metrics_snapshot={"degraded": "true"},
    )
    return SessionIntelligence(
        session_id=session_id,
        metrics=metrics,
        organizer_insights=[alert],
        recommendations=RecommendationBundle(
            immediate=["Check session connectivity"],
            strategic=["Review session setup"],
        ),
        health_summary=InsightGenerator.health_summary(metrics),
        degraded=True,
        epoch=epoch,
        last_updated=now,
    )


def session_duration_minutes(
    now: datetime,
    metadata: Optional[SessionMetadata],
    records: List[ActivityRecord],
    tracking_started_at: Optional[datetime] = None,
) -> float:
    """
    Minutes since the session started.

    Start time preference: session metadata, then when tracking began, then
    the first recorded activity. Unknown start means zero.
    """
    started_at = metadata.started_at if metadata is not None else None
    if started_at is None:
        started_at = tracking_started_at
    if started_at is None and records:
        started_at = min(r.occurred_at for r in records)
    if started_at is None:
        return 0.0
    return max(0.0, (ensure_utc(now) - ensure_utc(started_at)).total_seconds() / 60)


def top_performers(participants: List[ParticipantAnalysis], limit: int) -> List[ParticipantAnalysis]:
    """High and superstar participants, most recently active first."""
    ranked = [
        p for p in participants
        if p.engagement_level in (EngagementLevel.HIGH, EngagementLevel.SUPERSTAR)
    ]
    ranked.sort(key=lambda p: -p.recent_activity_count)
    return ranked[:limit]


def at_risk_participants(participants: List[ParticipantAnalysis], limit: int) -> List[ParticipantAnalysis]:
    """Participants likely to drop off or already slowing down."""
    return [
        p for p in participants
        if p.risk_of_dropoff or p.momentum == MomentumDirection.DECLINING
    ][:limit]


class IntelligenceService:
    """Computes SessionIntelligence snapshots from the activity store."""

    def __init__(
        self,
        gateway: ActivityStoreGateway,
        generator: Optional[InsightGenerator] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.generator = generator or InsightGenerator()
        self.settings = settings or default_settings

    def generate(
        self,
        session_id: str,
        now: Optional[datetime] = None,
        epoch: int = 0,
        tracking_started_at: Optional[datetime] = None,
    ) -> SessionIntelligence:
        """
        Run the pipeline once.

        Args:
            session_id: Session to analyze
            now: Evaluation time (for testing; defaults to utcnow)
            epoch: Tracking generation stamped onto the snapshot
            tracking_started_at: When tracking began, used as a start-time fallback

        Returns:
            SessionIntelligence; degraded when the store could not be read
        """
        if now is None:
            now = datetime.now(timezone.utc)
        now = ensure_utc(now)

        try:
            records = self.gateway.get_activity_records(session_id)
            organizer_activity = self.gateway.get_organizer_activity(session_id)
            metadata = self.gateway.get_session_metadata(session_id)
            total_participants = self.gateway.get_total_participant_count(session_id)
            awards = self.gateway.get_badge_awards(session_id)
        except Exception as e:
            log_event(
                "error",
                "Activity store read failed; serving degraded intelligence",
                session_id=session_id,
                event_type="gateway.read_failed",
                error_code=type(e).__name__,
                extra={"error": e},
            )
            return build_degraded_intelligence(session_id, now, epoch)

        # Participants who acted are participants, even if the roster lags
        total_participants = max(total_participants, len({r.participant_id for r in records}))
        duration = session_duration_minutes(now, metadata, records, tracking_started_at)

        metrics = MetricsCalculator.compute(
            records=records,
            organizer_activity=organizer_activity,
            total_participants=total_participants,
            duration_minutes=duration,
            now=now,
        )
        participants = ParticipantAnalyzer.analyze(records, now)
        clusters = cluster_participants(participants, records, awards)

        topic, phrases = detect_topic(metadata)
        organizer_insights = self.generator.organizer_insights(
            session_id=session_id,
            metrics=metrics,
            participants=participants,
            organizer_activity=organizer_activity,
            duration_minutes=duration,
            now=now,
            phrases=phrases,
        )
        participant_insights = self.generator.all_participant_insights(participants, now)
        recommendations = self.generator.recommendations(
            metrics, participants, organizer_insights, topic, phrases
        )

        return SessionIntelligence(
            session_id=session_id,
            metrics=metrics,
            organizer_insights=organizer_insights,
            participant_insights=participant_insights,
            participants=participants,
            top_performers=top_performers(participants, self.settings.TOP_PERFORMER_LIMIT),
            at_risk_participants=at_risk_participants(participants, self.settings.AT_RISK_LIMIT),
            clusters=clusters,
            recommendations=recommendations,
            health_summary=self.generator.health_summary(metrics),
            topic=topic,
            degraded=False,
            epoch=epoch,
            last_updated=now,
        )

    def participant_insights(
        self,
        session_id: str,
        participant_id: str,
        now: Optional[datetime] = None,
    ) -> List[Insight]:
        """
        Personal insights for one participant, computed from fresh records.

        A participant with no records yet is analyzed from an empty history,
        which is what the "Stay Engaged" nudge is for.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        records = [
            r for r in self.gateway.get_activity_records(session_id)
            if r.participant_id == participant_id
        ]
        analysis = ParticipantAnalyzer.analyze_participant(participant_id, records, now)
        return self.generator.participant_insights(analysis, now)
