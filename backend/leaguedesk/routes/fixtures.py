"""
Fixture API Routes: league fixtures, live status/score updates, and knockout advancement.

Status lifecycle: upcoming -> live -> completed (completed is terminal).
When a knockout fixture becomes completed, its winner is advanced into the
fixtures it feeds in the same request.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, model_validator
from sqlmodel import Session, select

from leaguedesk.database import get_session
from leaguedesk.models.fixture import Fixture
from leaguedesk.models.team import Team
from leaguedesk.models.tournament import Tournament
from leaguedesk.services.progression_service import AdvancementOutcome, advance_fixture
from leaguedesk.services.progression_types import (
    FixtureStatus,
    IncompleteFixture,
    InvalidPhaseTransition,
    InvalidScore,
    Phase,
    UnknownFixtureReference,
)
from leaguedesk.services.score_parser import parse_score, score_to_json, validate_completed_score

router = APIRouter()

STATUS_UPCOMING = FixtureStatus.UPCOMING.value
STATUS_LIVE = FixtureStatus.LIVE.value
STATUS_COMPLETED = FixtureStatus.COMPLETED.value


class FixtureCreate(BaseModel):
    team1_id: int
    team2_id: int
    ground: str = "TBD"
    date_time: Optional[datetime] = None
    referee: Optional[str] = None
    status: str = STATUS_UPCOMING
    score: Optional[Union[Dict[str, Any], str]] = None

    @model_validator(mode="after")
    def validate_teams(self):
        if self.team1_id == self.team2_id:
            raise ValueError("a team cannot play itself")
        return self


class FixtureUpdate(BaseModel):
    status: Optional[str] = None
    score: Optional[Union[Dict[str, Any], str]] = None
    ground: Optional[str] = None
    date_time: Optional[datetime] = None
    referee: Optional[str] = None


class FixtureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    ground: str
    date_time: Optional[datetime] = None
    referee: Optional[str] = None
    status: str
    stage: Optional[str] = None
    score_json: Optional[Dict[str, Any]] = None
    bracket_code: Optional[str] = None
    round_index: Optional[int] = None
    position: Optional[int] = None
    winner_team_id: Optional[int] = None
    completed_at: Optional[datetime] = None


class AdvancementResponse(BaseModel):
    fixture_id: int
    advanced_count: int = 0
    updated_fixture_ids: List[int] = []
    ready_fixture_ids: List[int] = []
    phase: str
    already_advanced: bool = False


class FixtureUpdateResponse(BaseModel):
    fixture: FixtureResponse
    advancement: Optional[AdvancementResponse] = None


def _advancement_response(outcome: AdvancementOutcome) -> AdvancementResponse:
    return AdvancementResponse(
        fixture_id=outcome.fixture_id,
        advanced_count=outcome.advanced_count,
        updated_fixture_ids=outcome.updated_fixture_ids,
        ready_fixture_ids=outcome.ready_fixture_ids,
        phase=outcome.phase,
        already_advanced=outcome.already_advanced,
    )


def _validate_status_transition(current: str, new: str) -> None:
    if new not in (STATUS_UPCOMING, STATUS_LIVE, STATUS_COMPLETED):
        raise HTTPException(status_code=422, detail=f"Invalid status: {new}")
    if current == STATUS_COMPLETED:
        raise HTTPException(status_code=422, detail="completed is terminal; cannot change")
    if new == STATUS_UPCOMING and current != STATUS_UPCOMING:
        raise HTTPException(status_code=422, detail="Cannot revert to upcoming")


def _normalized_completed_score(raw) -> Dict[str, Any]:
    try:
        score = validate_completed_score(parse_score(raw))
    except InvalidScore as e:
        raise HTTPException(status_code=422, detail=str(e))
    return score_to_json(score)


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _run_advancement(session: Session, tournament_id: int, fixture_id: int) -> AdvancementOutcome:
    try:
        return advance_fixture(session, tournament_id, fixture_id)
    except UnknownFixtureReference as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidPhaseTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (IncompleteFixture, InvalidScore) as e:
        raise HTTPException(status_code=422, detail=str(e))


# ============================================================================
# League fixtures
# ============================================================================


@router.get("/tournaments/{tournament_id}/fixtures", response_model=List[FixtureResponse])
def list_fixtures(tournament_id: int, session: Session = Depends(get_session)):
    """Round-robin fixtures first, then knockout fixtures by round and position"""
    _get_tournament_or_404(session, tournament_id)
    fixtures = session.exec(select(Fixture).where(Fixture.tournament_id == tournament_id)).all()
    return sorted(
        fixtures,
        key=lambda f: (f.stage is not None, f.round_index or 0, f.position or 0, f.id),
    )


@router.post("/tournaments/{tournament_id}/fixtures", response_model=FixtureResponse, status_code=201)
def create_fixture(tournament_id: int, payload: FixtureCreate, session: Session = Depends(get_session)):
    """Create a round-robin fixture. Only allowed while the tournament is in round-robin."""
    tournament = _get_tournament_or_404(session, tournament_id)
    if tournament.phase != Phase.ROUND_ROBIN.value:
        raise HTTPException(
            status_code=409,
            detail=f"League fixtures can only be added in round-robin (phase is {tournament.phase})",
        )
    for team_id in (payload.team1_id, payload.team2_id):
        if not session.get(Team, team_id):
            raise HTTPException(status_code=404, detail=f"Team {team_id} not found")
    _validate_status_transition(STATUS_UPCOMING, payload.status)

    score_json = None
    completed_at = None
    if payload.status == STATUS_COMPLETED:
        score_json = _normalized_completed_score(payload.score)
        completed_at = datetime.utcnow()
    elif payload.score is not None:
        parsed = parse_score(payload.score)
        if parsed is None:
            raise HTTPException(status_code=422, detail="Score could not be parsed")
        score_json = score_to_json(parsed)

    fixture = Fixture(
        tournament_id=tournament_id,
        team1_id=payload.team1_id,
        team2_id=payload.team2_id,
        ground=payload.ground,
        date_time=payload.date_time,
        referee=payload.referee,
        status=payload.status,
        score_json=score_json,
        completed_at=completed_at,
    )
    session.add(fixture)
    session.commit()
    session.refresh(fixture)
    return fixture


# ============================================================================
# Live updates
# ============================================================================


@router.patch("/tournaments/{tournament_id}/fixtures/{fixture_id}", response_model=FixtureUpdateResponse)
def update_fixture(
    tournament_id: int,
    fixture_id: int,
    payload: FixtureUpdate,
    session: Session = Depends(get_session),
) -> FixtureUpdateResponse:
    """Update status/score/logistics. A knockout fixture reaching completed is advanced."""
    _get_tournament_or_404(session, tournament_id)
    fixture = session.get(Fixture, fixture_id)
    if not fixture or fixture.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Fixture not found")

    current = fixture.status or STATUS_UPCOMING
    if current == STATUS_COMPLETED and (payload.status is not None or payload.score is not None):
        raise HTTPException(status_code=422, detail="completed is terminal; cannot change")

    if payload.status is not None:
        _validate_status_transition(current, payload.status)
        if payload.status != STATUS_UPCOMING and (fixture.team1_id is None or fixture.team2_id is None):
            raise HTTPException(status_code=422, detail="Both teams must be known before the fixture is played")

    raw_score = payload.score if payload.score is not None else fixture.score_json
    if payload.status == STATUS_COMPLETED:
        fixture.score_json = _normalized_completed_score(raw_score)
        fixture.status = STATUS_COMPLETED
        fixture.completed_at = datetime.utcnow()
    else:
        if payload.status is not None:
            fixture.status = payload.status
        if payload.score is not None:
            parsed = parse_score(payload.score)
            if parsed is None:
                raise HTTPException(status_code=422, detail="Score could not be parsed")
            fixture.score_json = score_to_json(parsed)

    for field_name in ("ground", "date_time", "referee"):
        value = getattr(payload, field_name)
        if value is not None:
            setattr(fixture, field_name, value)

    session.add(fixture)
    session.commit()
    session.refresh(fixture)

    advancement = None
    if fixture.status == STATUS_COMPLETED and fixture.bracket_code is not None and fixture.advanced_at is None:
        advancement = _advancement_response(_run_advancement(session, tournament_id, fixture_id))
        session.refresh(fixture)

    return FixtureUpdateResponse(
        fixture=FixtureResponse.model_validate(fixture),
        advancement=advancement,
    )


@router.post("/tournaments/{tournament_id}/fixtures/{fixture_id}/advance", response_model=AdvancementResponse)
def advance(tournament_id: int, fixture_id: int, session: Session = Depends(get_session)) -> AdvancementResponse:
    """
    Manually run advancement for a completed knockout fixture (repair/replay).

    A fixture that was already advanced is a no-op reported with
    already_advanced=true.
    """
    _get_tournament_or_404(session, tournament_id)
    fixture = session.get(Fixture, fixture_id)
    if not fixture or fixture.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Fixture not found")
    return _advancement_response(_run_advancement(session, tournament_id, fixture_id))
