"""
Badge evaluation service.

Runs per scoring event, not on the intelligence timer. Awards are idempotent:
the storage boundary owns uniqueness and reports a duplicate as
AwardOutcome.ALREADY_EXISTS, which counts as success. Each badge is evaluated
in isolation, so one failed award never blocks its siblings.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from engagement.core.logging import log_event
from engagement.core.metrics import badge_awards_total
from engagement.features.badges.catalog import BADGE_DEFINITIONS
from engagement.features.badges.scoring import reduce_score_snapshot
from engagement.features.gateway.contracts import ActivityStoreGateway
from engagement.models.badge import (
    AwardOutcome,
    BadgeAward,
    BadgeCategory,
    BadgeDefinition,
    ScoreSnapshot,
)


def category_score(definition: BadgeDefinition, snapshot: ScoreSnapshot) -> Optional[float]:
    """Score compared against the badge threshold (None when unknown)."""
    if definition.category == BadgeCategory.POLL:
        return snapshot.poll_score
    if definition.category == BadgeCategory.QNA:
        return snapshot.qna_score
    if definition.category == BadgeCategory.RESOURCE:
        return snapshot.resource_score
    if definition.category == BadgeCategory.ATTENDANCE:
        return snapshot.attendance_score
    if definition.category == BadgeCategory.OVERALL:
        return snapshot.rank_percentile
    raise ValueError(f"Unknown badge category: {definition.category}")


class BadgeEvaluator:
    """Decides which badges are newly earned and requests their awards."""

    def __init__(
        self,
        gateway: ActivityStoreGateway,
        definitions: Sequence[BadgeDefinition] = BADGE_DEFINITIONS,
    ):
        self.gateway = gateway
        self.definitions = list(definitions)

    def evaluate(
        self,
        participant_id: str,
        session_id: str,
        snapshot: ScoreSnapshot,
        now: Optional[datetime] = None,
    ) -> List[BadgeAward]:
        """
        Award every badge whose threshold the snapshot satisfies.

        Args:
            participant_id: Participant being evaluated
            session_id: Session the scores belong to
            snapshot: Cumulative per-category scores
            now: Award time (for testing; defaults to utcnow)

        Returns:
            Awards created by this call. Badges another trigger created first
            are not returned.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        needs_percentile = any(d.category == BadgeCategory.OVERALL for d in self.definitions)
        if needs_percentile and snapshot.rank_percentile is None:
            snapshot = self._with_rank_percentile(participant_id, session_id, snapshot)

        created: List[BadgeAward] = []
        for definition in self.definitions:
            try:
                award = self._evaluate_one(participant_id, session_id, definition, snapshot, now)
            except Exception as e:
                badge_awards_total.inc({"outcome": AwardOutcome.ERROR.value})
                log_event(
                    "error",
                    "Badge evaluation failed",
                    session_id=session_id,
                    participant_id=participant_id,
                    event_type="badge.award_failed",
                    error_code=type(e).__name__,
                    extra={"badge_id": definition.id, "error": e},
                )
                continue
            if award is not None:
                created.append(award)
        return created

    def evaluate_from_history(
        self,
        participant_id: str,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> List[BadgeAward]:
        """Derive the score snapshot from the session's records, then evaluate."""
        snapshot = reduce_score_snapshot(participant_id, self.gateway.get_activity_records(session_id))
        return self.evaluate(participant_id, session_id, snapshot, now=now)

    def _evaluate_one(
        self,
        participant_id: str,
        session_id: str,
        definition: BadgeDefinition,
        snapshot: ScoreSnapshot,
        now: datetime,
    ) -> Optional[BadgeAward]:
        if self._already_awarded(participant_id, session_id, definition.id):
            return None

        score = category_score(definition, snapshot)
        if score is None or score < definition.threshold:
            return None

        award = BadgeAward(
            participant_id=participant_id,
            session_id=session_id,
            badge_id=definition.id,
            earned_at=now,
        )
        outcome = self.gateway.create_badge_award(award)
        badge_awards_total.inc({"outcome": outcome.value})

        if outcome == AwardOutcome.CREATED:
            log_event(
                "info",
                "Badge awarded",
                session_id=session_id,
                participant_id=participant_id,
                event_type="badge.awarded",
                extra={"badge_id": definition.id, "level": definition.level.value},
            )
            return award
        if outcome == AwardOutcome.ERROR:
            log_event(
                "warning",
                "Badge award not persisted",
                session_id=session_id,
                participant_id=participant_id,
                event_type="badge.award_failed",
                error_code="award_error",
                extra={"badge_id": definition.id},
            )
        # ALREADY_EXISTS: another trigger won the race; the award exists once
        return None

    def _already_awarded(self, participant_id: str, session_id: str, badge_id: str) -> bool:
        try:
            return self.gateway.has_badge(participant_id, session_id, badge_id)
        except Exception as e:
            # The unique constraint still guards the insert
            log_event(
                "warning",
                "Badge lookup failed; attempting award",
                session_id=session_id,
                participant_id=participant_id,
                event_type="badge.lookup_failed",
                error_code=type(e).__name__,
                extra={"badge_id": badge_id},
            )
            return False

    def _with_rank_percentile(self, participant_id: str, session_id: str, snapshot: ScoreSnapshot) -> ScoreSnapshot:
        try:
            percentile = self.gateway.get_leaderboard_rank_percentile(participant_id, session_id)
        except Exception as e:
            log_event(
                "warning",
                "Rank percentile unavailable",
                session_id=session_id,
                participant_id=participant_id,
                event_type="gateway.read_failed",
                error_code=type(e).__name__,
            )
            return snapshot
        return snapshot.model_copy(update={"rank_percentile": percentile})
