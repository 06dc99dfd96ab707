"""
Pure reducers from activity records to badge scores.

All reducers: (records) -> immutable read model. Same records, same output.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from engagement.models.activity import ActivityRecord, ActivityType
from engagement.models.badge import LeaderboardEntry, ScoreSnapshot
from engagement.models.cluster import ActivityCategory


# Activity type -> score category. Games count toward the total only.
ACTIVITY_CATEGORY: Dict[ActivityType, Optional[ActivityCategory]] = {
    ActivityType.POLL: ActivityCategory.POLL,
    ActivityType.QUESTION: ActivityCategory.QNA,
    ActivityType.ANSWER: ActivityCategory.QNA,
    ActivityType.RESOURCE_DOWNLOAD: ActivityCategory.RESOURCE,
    ActivityType.SESSION_DURATION: ActivityCategory.ATTENDANCE,
    ActivityType.GAME_STARTED: None,
    ActivityType.GAME_COMPLETED: None,
}

_SNAPSHOT_FIELD = {
    ActivityCategory.POLL: "poll_score",
    ActivityCategory.QNA: "qna_score",
    ActivityCategory.RESOURCE: "resource_score",
    ActivityCategory.ATTENDANCE: "attendance_score",
}


def reduce_score_snapshot(
    participant_id: str,
    records: Iterable[ActivityRecord],
    rank_percentile: Optional[float] = None,
) -> ScoreSnapshot:
    """
    Sum one participant's scores per category.

    Negative scores are ignored so the snapshot stays non-negative.
    """
    totals = {name: 0.0 for name in _SNAPSHOT_FIELD.values()}
    total = 0.0
    for record in records:
        if record.participant_id != participant_id:
            continue
        score = max(0.0, record.score)
        category = ACTIVITY_CATEGORY[record.activity_type]
        if category is not None:
            totals[_SNAPSHOT_FIELD[category]] += score
        total += score

    return ScoreSnapshot(total_score=total, rank_percentile=rank_percentile, **totals)


def reduce_leaderboard(records: Iterable[ActivityRecord], limit: Optional[int] = None) -> List[LeaderboardEntry]:
    """
    Rank participants by total score (descending), ties by participant id.
    """
    by_participant: Dict[str, List[ActivityRecord]] = defaultdict(list)
    for record in records:
        by_participant[record.participant_id].append(record)

    snapshots = [
        (participant_id, reduce_score_snapshot(participant_id, participant_records))
        for participant_id, participant_records in by_participant.items()
    ]
    snapshots.sort(key=lambda item: (-item[1].total_score, item[0]))

    entries = [
        LeaderboardEntry(participant_id=participant_id, rank=index + 1, scores=snapshot)
        for index, (participant_id, snapshot) in enumerate(snapshots)
    ]
    return entries[:limit] if limit is not None else entries


def rank_percentile(participant_id: str, leaderboard: List[LeaderboardEntry]) -> float:
    """
    Share of other participants scoring strictly below this one (0..100).

    A lone participant is at the top (100). Unknown participants are at 0.
    """
    entry = next((e for e in leaderboard if e.participant_id == participant_id), None)
    if entry is None:
        return 0.0
    if len(leaderboard) == 1:
        return 100.0
    below = sum(1 for e in leaderboard if e.scores.total_score < entry.scores.total_score)
    return round(below / (len(leaderboard) - 1) * 100, 1)
