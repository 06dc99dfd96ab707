"""
In-memory activity store.

Append-only, instance-scoped implementation of ActivityStoreGateway used for
tests, demos and single-process deployments. Every read returns a copy.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from engagement.features.badges.scoring import rank_percentile, reduce_leaderboard
from engagement.models.activity import ActivityRecord, OrganizerActivity, SessionMetadata, ensure_utc
from engagement.models.badge import AwardOutcome, BadgeAward, LeaderboardEntry

AwardKey = Tuple[str, str, str]


class InMemoryActivityStore:
    """
    Activity store backed by process memory.

    Badge award inserts are atomic under a lock, so concurrent triggers for
    the same (participant, session, badge) create exactly one award.
    """

    def __init__(self):
        self._records: Dict[str, List[ActivityRecord]] = defaultdict(list)
        self._organizer: Dict[str, List[OrganizerActivity]] = defaultdict(list)
        self._metadata: Dict[str, SessionMetadata] = {}
        self._participants: Dict[str, Set[str]] = defaultdict(set)
        self._awards: Dict[AwardKey, BadgeAward] = {}
        self._lock = threading.Lock()

    # Writes -----------------------------------------------------------

    def append_activity(self, record: ActivityRecord) -> None:
        with self._lock:
            self._records[record.session_id].append(record)
            self._participants[record.session_id].add(record.participant_id)

    def record_organizer_activity(self, session_id: str, activity: OrganizerActivity) -> None:
        with self._lock:
            self._organizer[session_id].append(activity)

    def upsert_session(self, metadata: SessionMetadata) -> None:
        with self._lock:
            self._metadata[metadata.session_id] = metadata

    def add_participant(self, session_id: str, participant_id: str) -> None:
        """Register a joined participant who may not have acted yet."""
        with self._lock:
            self._participants[session_id].add(participant_id)

    # Reads ------------------------------------------------------------

    def get_activity_records(self, session_id: str, since: Optional[datetime] = None) -> List[ActivityRecord]:
        with self._lock:
            records = list(self._records.get(session_id, []))
        if since is not None:
            since = ensure_utc(since)
            records = [r for r in records if r.occurred_at >= since]
        return sorted(records, key=lambda r: r.occurred_at)

    def get_organizer_activity(self, session_id: str) -> List[OrganizerActivity]:
        with self._lock:
            activity = list(self._organizer.get(session_id, []))
        return sorted(activity, key=lambda a: a.occurred_at, reverse=True)

    def get_session_metadata(self, session_id: str) -> Optional[SessionMetadata]:
        with self._lock:
            return self._metadata.get(session_id)

    def get_total_participant_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._participants.get(session_id, set()))

    def get_leaderboard(self, session_id: str, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        return reduce_leaderboard(self.get_activity_records(session_id), limit=limit)

    def get_leaderboard_rank_percentile(self, participant_id: str, session_id: str) -> float:
        return rank_percentile(participant_id, self.get_leaderboard(session_id))

    def has_badge(self, participant_id: str, session_id: str, badge_id: str) -> bool:
        with self._lock:
            return (participant_id, session_id, badge_id) in self._awards

    def create_badge_award(self, award: BadgeAward) -> AwardOutcome:
        key = (award.participant_id, award.session_id, award.badge_id)
        with self._lock:
            if key in self._awards:
                return AwardOutcome.ALREADY_EXISTS
            self._awards[key] = award
            return AwardOutcome.CREATED

    def get_badge_awards(self, session_id: str) -> List[BadgeAward]:
        with self._lock:
            awards = [a for a in self._awards.values() if a.session_id == session_id]
        return sorted(awards, key=lambda a: (a.earned_at, a.participant_id, a.badge_id))

    def clear(self) -> None:
        """Drop everything. FOR TESTING ONLY."""
        with self._lock:
            self._records.clear()
            self._organizer.clear()
            self._metadata.clear()
            self._participants.clear()
            self._awards.clear()
