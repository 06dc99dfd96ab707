"""
Badge catalog.

Static configuration: every badge a participant can earn in a session.
"""

from typing import Dict, List, Optional

from engagement.models.badge import BadgeCategory, BadgeDefinition, BadgeLevel


BADGE_DEFINITIONS: List[BadgeDefinition] = [
    # Poll
    BadgeDefinition(
        id="poll_participant",
        name="Poll Enthusiast",
        description="Participated in 5+ polls",
        category=BadgeCategory.POLL,
        threshold=5,
        level=BadgeLevel.BRONZE,
    ),
    BadgeDefinition(
        id="poll_expert",
        name="Poll Master",
        description="Participated in 15+ polls",
        category=BadgeCategory.POLL,
        threshold=15,
        level=BadgeLevel.GOLD,
    ),
    # Q&A
    BadgeDefinition(
        id="curious_mind",
        name="Curious Mind",
        description="Asked 3+ questions",
        category=BadgeCategory.QNA,
        threshold=3,
        level=BadgeLevel.BRONZE,
    ),
    BadgeDefinition(
        id="knowledge_sharer",
        name="Knowledge Sharer",
        description="Answered 5+ questions",
        category=BadgeCategory.QNA,
        threshold=5,
        level=BadgeLevel.SILVER,
    ),
    # Resources
    BadgeDefinition(
        id="resource_explorer",
        name="Resource Explorer",
        description="Downloaded 3+ resources",
        category=BadgeCategory.RESOURCE,
        threshold=3,
        level=BadgeLevel.BRONZE,
    ),
    # Attendance (percentage of session time)
    BadgeDefinition(
        id="dedicated_learner",
        name="Dedicated Learner",
        description="Attended 80%+ of session time",
        category=BadgeCategory.ATTENDANCE,
        threshold=80,
        level=BadgeLevel.SILVER,
    ),
    # Overall (rank percentile)
    BadgeDefinition(
        id="engagement_champion",
        name="Engagement Champion",
        description="Top 10% in session engagement",
        category=BadgeCategory.OVERALL,
        threshold=90,
        level=BadgeLevel.PLATINUM,
    ),
]

_BY_ID: Dict[str, BadgeDefinition] = {badge.id: badge for badge in BADGE_DEFINITIONS}


def get_badge_definition(badge_id: str) -> Optional[BadgeDefinition]:
    return _BY_ID.get(badge_id)
