"""
Activity store gateway protocol.

The engine never owns session, poll, question or resource data. It reads
activity through this narrow interface and writes nothing but badge awards.
This allows swapping stores without changing any engine logic.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from engagement.models.activity import ActivityRecord, OrganizerActivity, SessionMetadata
from engagement.models.badge import AwardOutcome, BadgeAward


class ActivityStoreGateway(Protocol):
    """
    Protocol for activity stores.

    Read methods may raise on store failure; the intelligence pipeline turns
    that into a degraded snapshot. `create_badge_award` must not raise on a
    duplicate: it reports AwardOutcome.ALREADY_EXISTS, because the invariant is
    "the award exists exactly once", not "this call created it".
    """

    def get_activity_records(self, session_id: str, since: Optional[datetime] = None) -> List[ActivityRecord]:
        """
        Activity records for a session, oldest first.

        Args:
            session_id: Session to read
            since: Only records with occurred_at >= since (optional)
        """
        ...

    def get_organizer_activity(self, session_id: str) -> List[OrganizerActivity]:
        """Polls, questions and resources created on the organizer side, newest first."""
        ...

    def get_session_metadata(self, session_id: str) -> Optional[SessionMetadata]:
        """Title/description/organizer; None when the session has none."""
        ...

    def get_total_participant_count(self, session_id: str) -> int:
        ...

    def get_leaderboard_rank_percentile(self, participant_id: str, session_id: str) -> float:
        """0..100, where 100 is the top of the session leaderboard."""
        ...

    def has_badge(self, participant_id: str, session_id: str, badge_id: str) -> bool:
        ...

    def create_badge_award(self, award: BadgeAward) -> AwardOutcome:
        """Insert-if-absent with a uniqueness guarantee on (participant, session, badge)."""
        ...

    def get_badge_awards(self, session_id: str) -> List[BadgeAward]:
        ...
