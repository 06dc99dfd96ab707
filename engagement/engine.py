"""
Engagement engine facade.

The surface the surrounding application talks to:
- start_tracking / stop_tracking: periodic intelligence per session
- get_current_intelligence: cached snapshot, or a synchronous computation
- get_participant_insights: personal insights for one participant
- evaluate_badges: idempotent badge awards after a scoring event

Direct store reads outside the pipeline raise CollaboratorError; the
pipeline itself degrades instead.
"""

from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from engagement.core.config import Settings, settings as default_settings
from engagement.core.errors import CollaboratorError, NotFoundError
from engagement.core.logging import log_event
from engagement.features.badges.catalog import BADGE_DEFINITIONS, get_badge_definition
from engagement.features.badges.scoring import rank_percentile, reduce_leaderboard, reduce_score_snapshot
from engagement.features.badges.service import BadgeEvaluator
from engagement.features.gateway.contracts import ActivityStoreGateway
from engagement.features.insights.service import InsightGenerator
from engagement.features.intelligence.scheduler import IntelligenceScheduler, utcnow
from engagement.features.intelligence.service import IntelligenceService
from engagement.features.participants.analyzer import ParticipantAnalyzer
from engagement.models.badge import BadgeAward, BadgeDefinition, LeaderboardEntry, ScoreSnapshot
from engagement.models.insight import Insight
from engagement.models.intelligence import SessionIntelligence
from engagement.realtime.hub import SessionHub, Subscriber

T = TypeVar("T")


class EngagementEngine:
    """
    One engine per process (or per test). All tracking state lives on the
    instance.
    """

    def __init__(
        self,
        gateway: ActivityStoreGateway,
        settings: Optional[Settings] = None,
        hub: Optional[SessionHub] = None,
        interval_seconds: Optional[float] = None,
        clock=utcnow,
    ):
        self.gateway = gateway
        self.settings = settings or default_settings
        self.clock = clock
        self.generator = InsightGenerator()
        self.intelligence = IntelligenceService(gateway, generator=self.generator, settings=self.settings)
        self.badges = BadgeEvaluator(gateway)
        self.scheduler = IntelligenceScheduler(
            self.intelligence,
            hub=hub,
            interval_seconds=(
                interval_seconds if interval_seconds is not None
                else self.settings.INTELLIGENCE_INTERVAL_SECONDS
            ),
            clock=clock,
        )

    # Tracking ---------------------------------------------------------

    async def start_tracking(self, session_id: str, on_update: Optional[Subscriber] = None) -> int:
        return await self.scheduler.start(session_id, on_update)

    async def stop_tracking(self, session_id: str) -> bool:
        return await self.scheduler.stop(session_id)

    async def shutdown(self) -> None:
        await self.scheduler.stop_all()

    def is_tracking(self, session_id: str) -> bool:
        return self.scheduler.is_tracking(session_id)

    # Intelligence -----------------------------------------------------

    def get_current_intelligence(self, session_id: str, now: Optional[datetime] = None) -> SessionIntelligence:
        """
        Serve the cached snapshot; compute one synchronously when none exists.

        A computed snapshot is not cached: only the tracking task writes the
        cache.
        """
        cached = self.scheduler.get_cached(session_id)
        if cached is not None:
            return cached
        return self.intelligence.generate(session_id, now=now or self.clock())

    def get_participant_insights(
        self,
        session_id: str,
        participant_id: str,
        now: Optional[datetime] = None,
    ) -> List[Insight]:
        """
        Personal insights for one participant.

        Uses the cached analysis when the session is tracked, so the result
        agrees with the organizer view; otherwise reads fresh records.
        """
        cached = self.scheduler.get_cached(session_id)
        if cached is not None and not cached.degraded:
            analysis = cached.analysis_for(participant_id)
            if analysis is None:
                analysis = ParticipantAnalyzer.analyze_participant(participant_id, [], cached.last_updated)
            return self.generator.participant_insights(analysis, cached.last_updated)
        return self._read(
            session_id,
            lambda: self.intelligence.participant_insights(session_id, participant_id, now=now or self.clock()),
        )

    # Badges -----------------------------------------------------------

    def evaluate_badges(
        self,
        participant_id: str,
        session_id: str,
        score_snapshot: ScoreSnapshot,
        now: Optional[datetime] = None,
    ) -> List[BadgeAward]:
        return self.badges.evaluate(participant_id, session_id, score_snapshot, now=now or self.clock())

    def evaluate_badges_from_history(
        self,
        participant_id: str,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> List[BadgeAward]:
        return self._read(
            session_id,
            lambda: self.badges.evaluate_from_history(participant_id, session_id, now=now or self.clock()),
        )

    def get_score_snapshot(self, participant_id: str, session_id: str) -> ScoreSnapshot:
        """Cumulative scores plus leaderboard rank percentile."""
        records = self._read(session_id, lambda: self.gateway.get_activity_records(session_id))
        percentile = rank_percentile(participant_id, reduce_leaderboard(records))
        return reduce_score_snapshot(participant_id, records, rank_percentile=percentile)

    def get_leaderboard(self, session_id: str, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        records = self._read(session_id, lambda: self.gateway.get_activity_records(session_id))
        return reduce_leaderboard(records, limit=limit)

    def get_badge_awards(self, session_id: str) -> List[BadgeAward]:
        return self._read(session_id, lambda: self.gateway.get_badge_awards(session_id))

    @staticmethod
    def list_badge_definitions() -> List[BadgeDefinition]:
        return list(BADGE_DEFINITIONS)

    @staticmethod
    def get_badge_definition(badge_id: str) -> BadgeDefinition:
        definition = get_badge_definition(badge_id)
        if definition is None:
            raise NotFoundError(f"Unknown badge: {badge_id}")
        return definition

    @staticmethod
    def _read(session_id: str, read: Callable[[], T]) -> T:
        """Run a direct store read; a failure surfaces as CollaboratorError."""
        try:
            return read()
        except Exception as e:
            log_event(
                "error",
                "Activity store read failed",
                session_id=session_id,
                event_type="gateway.read_failed",
                error_code=type(e).__name__,
                extra={"error": e},
            )
            raise CollaboratorError("Activity store unavailable", session_id=session_id) from e
