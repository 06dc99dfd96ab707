"""
Activity Cluster Engine: Pure Deterministic Functions

Groups participants into four fixed archetypes by the activity category that
dominates their weighted score. Same inputs => same clusters.

Rules:
1. A weighted total below OBSERVER_THRESHOLD always means Observers
2. Otherwise the single highest category wins, ties go to the earlier
   category (poll > qna > resource > attendance)
3. Attendance dominance is passive, so it maps to Observers
4. Empty clusters are dropped; every analysed participant lands in exactly one
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from engagement.models.activity import ActivityRecord, ActivityType
from engagement.models.badge import BadgeAward
from engagement.models.cluster import (
    ActivityCategory,
    ActivityCluster,
    ClusterArchetype,
    DominantActivity,
)
from engagement.models.participant import ParticipantAnalysis


OBSERVER_THRESHOLD = 5.0
ATTENDANCE_CAP_MINUTES = 60.0

# Points per action
POLL_WEIGHT = 10.0
QUESTION_WEIGHT = 8.0
ANSWER_WEIGHT = 6.0
RESOURCE_WEIGHT = 5.0

# Archetype -> (cluster_id, name, description, dominant category)
CLUSTER_ARCHETYPES = {
    ClusterArchetype.POLL_ENTHUSIASTS: (
        1, "Poll Enthusiasts", "Participants who actively engage with polls", ActivityCategory.POLL,
    ),
    ClusterArchetype.QNA_STARS: (
        2, "Q&A Stars", "Participants who ask and answer questions", ActivityCategory.QNA,
    ),
    ClusterArchetype.RESOURCE_COLLECTORS: (
        3, "Resource Collectors", "Participants who download resources", ActivityCategory.RESOURCE,
    ),
    ClusterArchetype.OBSERVERS: (
        4, "Observers", "Participants with minimal engagement", ActivityCategory.ATTENDANCE,
    ),
}

CATEGORY_ARCHETYPE = {
    ActivityCategory.POLL: ClusterArchetype.POLL_ENTHUSIASTS,
    ActivityCategory.QNA: ClusterArchetype.QNA_STARS,
    ActivityCategory.RESOURCE: ClusterArchetype.RESOURCE_COLLECTORS,
    ActivityCategory.ATTENDANCE: ClusterArchetype.OBSERVERS,
}


def _attendance_minutes(record: ActivityRecord) -> float:
    minutes = record.metadata.get("minutes")
    if isinstance(minutes, (int, float)) and not isinstance(minutes, bool):
        return float(minutes)
    return record.score


def weighted_scores(records: Iterable[ActivityRecord]) -> Dict[str, Dict[ActivityCategory, float]]:
    """
    Weighted category vector per participant.

    Returns:
        dict mapping participant_id to {category: weighted score}
    """
    counts: Dict[str, Dict[ActivityType, int]] = defaultdict(lambda: defaultdict(int))
    attendance: Dict[str, float] = defaultdict(float)

    for record in records:
        counts[record.participant_id][record.activity_type] += 1
        if record.activity_type == ActivityType.SESSION_DURATION:
            attendance[record.participant_id] += _attendance_minutes(record)

    vectors = {}
    for participant_id, by_type in counts.items():
        vectors[participant_id] = {
            ActivityCategory.POLL: by_type[ActivityType.POLL] * POLL_WEIGHT,
            ActivityCategory.QNA: (
                by_type[ActivityType.QUESTION] * QUESTION_WEIGHT
                + by_type[ActivityType.ANSWER] * ANSWER_WEIGHT
            ),
            ActivityCategory.RESOURCE: by_type[ActivityType.RESOURCE_DOWNLOAD] * RESOURCE_WEIGHT,
            ActivityCategory.ATTENDANCE: min(max(attendance[participant_id], 0.0), ATTENDANCE_CAP_MINUTES),
        }
    return vectors


def assign_archetype(vector: Dict[ActivityCategory, float]) -> ClusterArchetype:
    """Archetype for one weighted vector."""
    if sum(vector.values()) < OBSERVER_THRESHOLD:
        return ClusterArchetype.OBSERVERS

    dominant = ActivityCategory.ATTENDANCE
    best = 0.0
    # Enum order is the tie-break order; only a strictly higher score displaces
    for category in ActivityCategory:
        score = vector.get(category, 0.0)
        if score > best:
            best = score
            dominant = category
    return CATEGORY_ARCHETYPE[dominant]


def cluster_participants(
    analyses: Sequence[ParticipantAnalysis],
    records: Iterable[ActivityRecord],
    awards: Iterable[BadgeAward] = (),
) -> List[ActivityCluster]:
    """
    Partition the analysed participants into archetype clusters.

    Args:
        analyses: Participant analyses for the session (defines who is clustered)
        records: Session activity records (source of the weighted vectors)
        awards: Badge awards for the session (for badge_distribution)

    Returns:
        Non-empty clusters in archetype order
    """
    if not analyses:
        return []

    vectors = weighted_scores(records)
    badges_by_participant: Dict[str, List[str]] = defaultdict(list)
    for award in awards:
        badges_by_participant[award.participant_id].append(award.badge_id)

    members: Dict[ClusterArchetype, List[str]] = defaultdict(list)
    for analysis in analyses:
        vector = vectors.get(analysis.participant_id, {})
        members[assign_archetype(vector)].append(analysis.participant_id)

    analysed = len(analyses)
    clusters = []
    for archetype, (cluster_id, name, description, category) in CLUSTER_ARCHETYPES.items():
        participant_ids = members.get(archetype)
        if not participant_ids:
            continue

        cluster_total = 0.0
        category_total = 0.0
        distribution: Dict[str, int] = defaultdict(int)
        for participant_id in participant_ids:
            vector = vectors.get(participant_id, {})
            cluster_total += sum(vector.values())
            category_total += vector.get(category, 0.0)
            for badge_id in badges_by_participant.get(participant_id, []):
                distribution[badge_id] += 1

        share = round(category_total / cluster_total * 100) if cluster_total > 0 else 0

        clusters.append(
            ActivityCluster(
                cluster_id=cluster_id,
                archetype=archetype,
                name=name,
                description=description,
                participant_ids=frozenset(participant_ids),
                population_percentage=round(len(participant_ids) / analysed * 100),
                dominant_activity=DominantActivity(type=category, percentage_within_cluster=share),
                badge_distribution=dict(sorted(distribution.items())),
            )
        )
    return clusters
