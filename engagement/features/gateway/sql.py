"""
SQL-backed activity store.

Implements ActivityStoreGateway over the SQLAlchemy Core tables in
engagement.core.database while keeping the same semantics as the in-memory
store:
- Oldest-first activity reads, newest-first organizer reads
- Deterministic ordering (occurred_at, then id)
- Badge awards guarded by the UNIQUE (participant_id, session_id, badge_id)
  constraint; a conflict is reported as AwardOutcome.ALREADY_EXISTS
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, delete, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from engagement.core.database import (
    activity_records,
    badge_awards,
    db_session,
    organizer_activity,
    session_participants,
    sessions,
)
from engagement.core.logging import log_event
from engagement.features.badges.scoring import rank_percentile, reduce_leaderboard
from engagement.models.activity import (
    ActivityRecord,
    ActivityType,
    OrganizerActivity,
    OrganizerActivityType,
    SessionMetadata,
    ensure_utc,
)
from engagement.models.badge import AwardOutcome, BadgeAward, LeaderboardEntry


class SqlActivityStore:
    """
    Activity store persisted through SQLAlchemy.

    Maintains the identical interface to InMemoryActivityStore.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # Writes -----------------------------------------------------------

    def append_activity(self, record: ActivityRecord) -> None:
        with db_session(self.engine) as session:
            session.execute(
                insert(activity_records).values(
                    session_id=record.session_id,
                    participant_id=record.participant_id,
                    activity_type=record.activity_type.value,
                    score=record.score,
                    occurred_at=record.occurred_at,
                    payload=dict(record.metadata),
                )
            )
        self.add_participant(record.session_id, record.participant_id)

    def record_organizer_activity(self, session_id: str, activity: OrganizerActivity) -> None:
        with db_session(self.engine) as session:
            session.execute(
                insert(organizer_activity).values(
                    session_id=session_id,
                    activity_type=activity.type.value,
                    participant_id=activity.participant_id,
                    occurred_at=activity.occurred_at,
                )
            )

    def upsert_session(self, metadata: SessionMetadata) -> None:
        values = {
            "title": metadata.title,
            "description": metadata.description,
            "organizer_id": metadata.organizer_id,
            "started_at": metadata.started_at,
        }
        with db_session(self.engine) as session:
            exists = session.execute(
                select(sessions.c.id).where(sessions.c.id == metadata.session_id)
            ).first()
            if exists:
                session.execute(
                    sessions.update().where(sessions.c.id == metadata.session_id).values(**values)
                )
            else:
                session.execute(insert(sessions).values(id=metadata.session_id, **values))

    def add_participant(self, session_id: str, participant_id: str) -> None:
        try:
            with db_session(self.engine) as session:
                session.execute(
                    insert(session_participants).values(
                        session_id=session_id,
                        participant_id=participant_id,
                    )
                )
        except IntegrityError:
            # Already registered
            pass

    # Reads ------------------------------------------------------------

    def get_activity_records(self, session_id: str, since: Optional[datetime] = None) -> List[ActivityRecord]:
        query = select(activity_records).where(activity_records.c.session_id == session_id)
        if since is not None:
            query = query.where(activity_records.c.occurred_at >= ensure_utc(since))
        query = query.order_by(activity_records.c.occurred_at, activity_records.c.id)

        with db_session(self.engine) as session:
            rows = session.execute(query).all()

        return [
            ActivityRecord(
                participant_id=row.participant_id,
                session_id=row.session_id,
                activity_type=ActivityType(row.activity_type),
                score=row.score,
                occurred_at=row.occurred_at,
                metadata=dict(row.payload) if row.payload else {},
            )
            for row in rows
        ]

    def get_organizer_activity(self, session_id: str) -> List[OrganizerActivity]:
        query = (
            select(organizer_activity)
            .where(organizer_activity.c.session_id == session_id)
            .order_by(organizer_activity.c.occurred_at.desc(), organizer_activity.c.id.desc())
        )
        with db_session(self.engine) as session:
            rows = session.execute(query).all()

        return [
            OrganizerActivity(
                type=OrganizerActivityType(row.activity_type),
                occurred_at=row.occurred_at,
                participant_id=row.participant_id,
            )
            for row in rows
        ]

    def get_session_metadata(self, session_id: str) -> Optional[SessionMetadata]:
        with db_session(self.engine) as session:
            row = session.execute(select(sessions).where(sessions.c.id == session_id)).first()

        if row is None:
            return None
        return SessionMetadata(
            session_id=row.id,
            title=row.title,
            description=row.description,
            organizer_id=row.organizer_id,
            started_at=row.started_at,
        )

    def get_total_participant_count(self, session_id: str) -> int:
        with db_session(self.engine) as session:
            count = session.execute(
                select(func.count())
                .select_from(session_participants)
                .where(session_participants.c.session_id == session_id)
            ).scalar()
        return int(count or 0)

    def get_leaderboard(self, session_id: str, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        return reduce_leaderboard(self.get_activity_records(session_id), limit=limit)

    def get_leaderboard_rank_percentile(self, participant_id: str, session_id: str) -> float:
        return rank_percentile(participant_id, self.get_leaderboard(session_id))

    def has_badge(self, participant_id: str, session_id: str, badge_id: str) -> bool:
        with db_session(self.engine) as session:
            row = session.execute(
                select(badge_awards.c.id).where(
                    and_(
                        badge_awards.c.participant_id == participant_id,
                        badge_awards.c.session_id == session_id,
                        badge_awards.c.badge_id == badge_id,
                    )
                )
            ).first()
        return row is not None

    def create_badge_award(self, award: BadgeAward) -> AwardOutcome:
        """
        Insert the award; the unique constraint decides who wins a race.

        Returns:
            CREATED on insert, ALREADY_EXISTS on a unique-key conflict,
            ERROR on any other database failure
        """
        try:
            with db_session(self.engine) as session:
                session.execute(
                    insert(badge_awards).values(
                        participant_id=award.participant_id,
                        session_id=award.session_id,
                        badge_id=award.badge_id,
                        earned_at=award.earned_at,
                    )
                )
            return AwardOutcome.CREATED
        except IntegrityError:
            return AwardOutcome.ALREADY_EXISTS
        except SQLAlchemyError as e:
            log_event(
                "error",
                "Badge award insert failed",
                session_id=award.session_id,
                participant_id=award.participant_id,
                event_type="badge.award_failed",
                error_code=type(e).__name__,
                extra={"badge_id": award.badge_id},
            )
            return AwardOutcome.ERROR

    def get_badge_awards(self, session_id: str) -> List[BadgeAward]:
        query = (
            select(badge_awards)
            .where(badge_awards.c.session_id == session_id)
            .order_by(badge_awards.c.earned_at, badge_awards.c.participant_id, badge_awards.c.badge_id)
        )
        with db_session(self.engine) as session:
            rows = session.execute(query).all()

        return [
            BadgeAward(
                participant_id=row.participant_id,
                session_id=row.session_id,
                badge_id=row.badge_id,
                earned_at=ensure_utc(row.earned_at),
            )
            for row in rows
        ]

    def clear(self) -> None:
        """Delete every row. FOR TESTING ONLY."""
        with db_session(self.engine) as session:
            for table in (badge_awards, organizer_activity, activity_records, session_participants, sessions):
                session.execute(delete(table))
