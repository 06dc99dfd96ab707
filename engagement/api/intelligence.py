"""
Session intelligence API.

Thin REST surface over the EngagementEngine. Handlers are plain `def` so the
blocking store reads run in the threadpool.

Optional 'now' query parameters exist for deterministic testing.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel

from engagement.core.errors import ValidationError
from engagement.core.logging import session_context
from engagement.engine import EngagementEngine
from engagement.models.activity import ensure_utc
from engagement.models.badge import BadgeAward, BadgeDefinition, LeaderboardEntry, ScoreSnapshot
from engagement.models.insight import Insight
from engagement.models.intelligence import SessionIntelligence

router = APIRouter(prefix="/api", tags=["intelligence"])


class BadgeEvaluationResponse(BaseModel):
    participant_id: str
    session_id: str
    awarded: List[BadgeAward]


def get_engine(request: Request) -> EngagementEngine:
    """Engine instance attached to the app at startup."""
    return request.app.state.engine


def _parse_now(now: Optional[str]) -> Optional[datetime]:
    if not now:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(now))
    except ValueError:
        raise ValidationError("Invalid 'now' timestamp format. Use ISO 8601.")


@router.get("/sessions/{session_id}/intelligence", response_model=SessionIntelligence)
def get_session_intelligence(
    session_id: str,
    engine: EngagementEngine = Depends(get_engine),
    now: Optional[str] = Query(None, description="Optional ISO timestamp for deterministic testing"),
) -> SessionIntelligence:
    """
    Current intelligence for a session.

    Serves the cached snapshot for tracked sessions, otherwise computes one.
    Store failures come back as a degraded snapshot, never as an error.
    """
    with session_context(session_id):
        return engine.get_current_intelligence(session_id, now=_parse_now(now))


@router.get("/sessions/{session_id}/participants/{participant_id}/insights", response_model=List[Insight])
def get_participant_insights(
    session_id: str,
    participant_id: str,
    engine: EngagementEngine = Depends(get_engine),
    now: Optional[str] = Query(None, description="Optional ISO timestamp for deterministic testing"),
) -> List[Insight]:
    with session_context(session_id):
        return engine.get_participant_insights(session_id, participant_id, now=_parse_now(now))


@router.post(
    "/sessions/{session_id}/participants/{participant_id}/badges/evaluate",
    response_model=BadgeEvaluationResponse,
)
def evaluate_badges(
    session_id: str,
    participant_id: str,
    snapshot: Optional[ScoreSnapshot] = Body(None),
    engine: EngagementEngine = Depends(get_engine),
) -> BadgeEvaluationResponse:
    """
    Evaluate badges after a scoring event.

    With a body, the given score snapshot is used; without one, scores are
    derived from the session's activity history. Only newly created awards
    are returned.
    """
    with session_context(session_id):
        if snapshot is None:
            awarded = engine.evaluate_badges_from_history(participant_id, session_id)
        else:
            awarded = engine.evaluate_badges(participant_id, session_id, snapshot)
    return BadgeEvaluationResponse(participant_id=participant_id, session_id=session_id, awarded=awarded)


@router.get("/sessions/{session_id}/badges", response_model=List[BadgeAward])
def list_session_badges(
    session_id: str,
    engine: EngagementEngine = Depends(get_engine),
) -> List[BadgeAward]:
    return engine.get_badge_awards(session_id)


@router.get("/sessions/{session_id}/leaderboard", response_model=List[LeaderboardEntry])
def get_leaderboard(
    session_id: str,
    engine: EngagementEngine = Depends(get_engine),
    limit: Optional[int] = Query(None, ge=1, le=100),
) -> List[LeaderboardEntry]:
    return engine.get_leaderboard(session_id, limit=limit)


@router.get("/sessions/{session_id}/participants/{participant_id}/scores", response_model=ScoreSnapshot)
def get_score_snapshot(
    session_id: str,
    participant_id: str,
    engine: EngagementEngine = Depends(get_engine),
) -> ScoreSnapshot:
    """Cumulative category scores and leaderboard rank percentile."""
    with session_context(session_id):
        return engine.get_score_snapshot(participant_id, session_id)


@router.get("/badges", response_model=List[BadgeDefinition])
def list_badges(engine: EngagementEngine = Depends(get_engine)) -> List[BadgeDefinition]:
    return engine.list_badge_definitions()


@router.get("/badges/{badge_id}", response_model=BadgeDefinition)
def get_badge(badge_id: str, engine: EngagementEngine = Depends(get_engine)) -> BadgeDefinition:
    return engine.get_badge_definition(badge_id)
