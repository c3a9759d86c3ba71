"""
Tournament API Routes
Create/read tournaments, league standings, and the knockout transition.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session, select

from leaguedesk.database import get_session
from leaguedesk.models.tournament import Tournament
from leaguedesk.services.progression_service import (
    conclude_league_phase,
    get_tournament_standings,
    load_bracket,
)
from leaguedesk.services.progression_types import (
    Bye,
    Concrete,
    InsufficientTeams,
    InvalidPhaseTransition,
    PendingLoserOf,
    PendingWinnerOf,
    Slot,
)
from leaguedesk.services.standings import TeamStanding

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TournamentCreate(BaseModel):
    name: str
    division: str

    @field_validator("name", "division")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    division: str
    phase: str
    qualifier_count: Optional[int] = None
    third_place_match: bool
    bracket_size: Optional[int] = None
    knockout_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class StandingResponse(BaseModel):
    rank: int
    team_id: int
    team_name: str
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    games_played: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int


class ConcludeLeagueRequest(BaseModel):
    qualifier_count: int = Field(ge=2)
    third_place_match: bool = False


class QualifierResponse(BaseModel):
    seed: int
    team_id: int
    team_name: str


class SlotResponse(BaseModel):
    kind: str  # "team" | "winner_of" | "loser_of" | "bye"
    team_id: Optional[int] = None
    fixture_code: Optional[str] = None


class BracketFixtureResponse(BaseModel):
    fixture_id: Optional[int] = None
    code: str
    stage: str
    round_index: int
    position: int
    status: str
    slot1: SlotResponse
    slot2: SlotResponse
    ready: bool
    advanced: bool


class BracketResponse(BaseModel):
    tournament_id: int
    phase: str
    size: int
    rounds: List[List[BracketFixtureResponse]]
    third_place: Optional[BracketFixtureResponse] = None


class ConcludeLeagueResponse(BaseModel):
    tournament: TournamentResponse
    qualifiers: List[QualifierResponse]
    created_fixture_ids: List[int]


def _standing_response(rank: int, s: TeamStanding) -> StandingResponse:
    return StandingResponse(
        rank=rank,
        team_id=s.team_id,
        team_name=s.team_name,
        short_name=s.short_name,
        logo_url=s.logo_url,
        games_played=s.games_played,
        wins=s.wins,
        draws=s.draws,
        losses=s.losses,
        goals_for=s.goals_for,
        goals_against=s.goals_against,
        goal_difference=s.goal_difference,
        points=s.points,
    )


def _slot_response(slot: Slot) -> SlotResponse:
    if isinstance(slot, Concrete):
        return SlotResponse(kind="team", team_id=slot.team_id)
    if isinstance(slot, PendingWinnerOf):
        return SlotResponse(kind="winner_of", fixture_code=slot.fixture_code)
    if isinstance(slot, PendingLoserOf):
        return SlotResponse(kind="loser_of", fixture_code=slot.fixture_code)
    if isinstance(slot, Bye):
        return SlotResponse(kind="bye")
    raise TypeError(f"Unknown slot type {type(slot).__name__}")


def _bracket_fixture_response(bf) -> BracketFixtureResponse:
    return BracketFixtureResponse(
        fixture_id=bf.fixture_id,
        code=bf.code,
        stage=bf.stage,
        round_index=bf.round_index,
        position=bf.position,
        status=bf.status.value,
        slot1=_slot_response(bf.slot1),
        slot2=_slot_response(bf.slot2),
        ready=bf.is_ready,
        advanced=bf.advanced,
    )


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


# ============================================================================
# Tournament Endpoints
# ============================================================================


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.name)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament; it starts in the round-robin phase"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return _get_tournament_or_404(session, tournament_id)


@router.get("/tournaments/{tournament_id}/standings", response_model=List[StandingResponse])
def get_standings(
    tournament_id: int,
    include_teams_with_no_games: bool = Query(default=False),
    session: Session = Depends(get_session),
):
    """
    League table from completed round-robin fixtures.

    Ranked by points, goal difference, goals for, then team name.
    Recomputed on every request.
    """
    _get_tournament_or_404(session, tournament_id)
    standings = get_tournament_standings(
        session, tournament_id, include_teams_with_no_games=include_teams_with_no_games
    )
    return [_standing_response(rank, s) for rank, s in enumerate(standings, start=1)]


@router.post("/tournaments/{tournament_id}/conclude-league-phase", response_model=ConcludeLeagueResponse)
def conclude_league(
    tournament_id: int,
    payload: ConcludeLeagueRequest,
    session: Session = Depends(get_session),
):
    """
    Close the round-robin phase: rank teams, take the top qualifier_count,
    and create the whole knockout bracket in one commit.

    409 if the tournament is not in round-robin or already has a bracket;
    422 if fewer teams are ranked than qualifier_count.
    """
    _get_tournament_or_404(session, tournament_id)
    try:
        outcome = conclude_league_phase(
            session,
            tournament_id,
            qualifier_count=payload.qualifier_count,
            third_place_match=payload.third_place_match,
        )
    except InvalidPhaseTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InsufficientTeams as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ConcludeLeagueResponse(
        tournament=TournamentResponse.model_validate(outcome.tournament),
        qualifiers=[
            QualifierResponse(seed=seed, team_id=q.team_id, team_name=q.name)
            for seed, q in enumerate(outcome.qualifiers, start=1)
        ],
        created_fixture_ids=[f.id for f in outcome.fixtures],
    )


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Knockout bracket by round. Bye entries are resolved at creation and not listed."""
    tournament = _get_tournament_or_404(session, tournament_id)
    bracket = load_bracket(session, tournament_id)
    if bracket is None:
        raise HTTPException(status_code=404, detail="No knockout bracket for this tournament yet")

    third = bracket.third_place
    return BracketResponse(
        tournament_id=tournament_id,
        phase=tournament.phase,
        size=bracket.size,
        rounds=[[_bracket_fixture_response(bf) for bf in rnd] for rnd in bracket.rounds],
        third_place=_bracket_fixture_response(third) if third else None,
    )
