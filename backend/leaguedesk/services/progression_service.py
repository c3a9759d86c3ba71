"""
Progression ledger: loads fixtures for the engine and persists its output.

The two mutation points (bracket creation, slot substitution) each run
under a row lock on the tournament and end in a single commit, so a
partial bracket or a half-applied advancement is never visible. Any
failure rolls the session back.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from leaguedesk.models.fixture import Fixture
from leaguedesk.models.team import Team
from leaguedesk.models.tournament import Tournament
from leaguedesk.services.bracket_advancer import advance_bracket
from leaguedesk.services.phase_controller import conclude_league_phase as run_league_conclusion
from leaguedesk.services.progression_types import (
    ROLE_LOSER,
    ROLE_WINNER,
    AlreadyAdvanced,
    Bracket,
    BracketFixture,
    Concrete,
    FixtureStatus,
    LeagueFixture,
    PendingLoserOf,
    PendingWinnerOf,
    Phase,
    Slot,
    TeamInfo,
    UnknownFixtureReference,
    slot_team_id,
)
from leaguedesk.services.score_parser import parse_score
from leaguedesk.services.standings import TeamStanding, compute_standings

logger = logging.getLogger(__name__)

PLACEHOLDER_GROUND = "TBD"


@dataclass
class ConclusionOutcome:
    tournament: Tournament
    standings: List[TeamStanding]
    qualifiers: List[TeamInfo]
    fixtures: List[Fixture]


@dataclass
class AdvancementOutcome:
    fixture_id: int
    advanced_count: int = 0
    updated_fixture_ids: List[int] = field(default_factory=list)
    ready_fixture_ids: List[int] = field(default_factory=list)
    phase: str = Phase.KNOCKOUT.value
    already_advanced: bool = False


# ============================================================================
# Row <-> engine conversion
# ============================================================================


def team_directory(session: Session, division: Optional[str] = None) -> Dict[int, TeamInfo]:
    query = select(Team)
    if division is not None:
        query = query.where(Team.division == division)
    return {
        t.id: TeamInfo(team_id=t.id, name=t.name, short_name=t.short_name, logo_url=t.logo_url, division=t.division)
        for t in session.exec(query).all()
    }


def to_league_fixture(row: Fixture) -> LeagueFixture:
    return LeagueFixture(
        fixture_id=row.id,
        team1_id=row.team1_id,
        team2_id=row.team2_id,
        status=FixtureStatus(row.status),
        stage=row.stage,
        score=parse_score(row.score_json),
    )


def _row_slot(row: Fixture, number: int) -> Slot:
    team_id = row.team1_id if number == 1 else row.team2_id
    code = row.source1_code if number == 1 else row.source2_code
    role = row.source1_role if number == 1 else row.source2_role
    if team_id is not None:
        return Concrete(team_id)
    if code and role == ROLE_LOSER:
        return PendingLoserOf(code)
    if code:
        return PendingWinnerOf(code)
    raise ValueError(f"Fixture {row.id} slot {number} has neither a team nor a source")


def _link(code: Optional[str], slot: Optional[int]):
    if code is None or slot is None:
        return None
    return (code, slot)


def to_bracket_fixture(row: Fixture) -> BracketFixture:
    return BracketFixture(
        code=row.bracket_code,
        round_index=row.round_index,
        position=row.position,
        stage=row.stage,
        slot1=_row_slot(row, 1),
        slot2=_row_slot(row, 2),
        feeds_winner_to=_link(row.winner_to_code, row.winner_to_slot),
        feeds_loser_to=_link(row.loser_to_code, row.loser_to_slot),
        status=FixtureStatus(row.status),
        score=parse_score(row.score_json),
        fixture_id=row.id,
        advanced=row.advanced_at is not None,
    )


def _source_columns(slot: Slot):
    if isinstance(slot, PendingWinnerOf):
        return slot.fixture_code, ROLE_WINNER
    if isinstance(slot, PendingLoserOf):
        return slot.fixture_code, ROLE_LOSER
    return None, None


def to_fixture_row(tournament_id: int, bf: BracketFixture) -> Fixture:
    source1_code, source1_role = _source_columns(bf.slot1)
    source2_code, source2_role = _source_columns(bf.slot2)
    winner_to = bf.feeds_winner_to or (None, None)
    loser_to = bf.feeds_loser_to or (None, None)
    return Fixture(
        tournament_id=tournament_id,
        team1_id=slot_team_id(bf.slot1),
        team2_id=slot_team_id(bf.slot2),
        ground=PLACEHOLDER_GROUND,
        status=FixtureStatus.UPCOMING.value,
        stage=bf.stage,
        bracket_code=bf.code,
        round_index=bf.round_index,
        position=bf.position,
        source1_code=source1_code,
        source1_role=source1_role,
        source2_code=source2_code,
        source2_role=source2_role,
        winner_to_code=winner_to[0],
        winner_to_slot=winner_to[1],
        loser_to_code=loser_to[0],
        loser_to_slot=loser_to[1],
    )


# ============================================================================
# Reads
# ============================================================================


def _tournament_fixtures(session: Session, tournament_id: int) -> List[Fixture]:
    return session.exec(
        select(Fixture).where(Fixture.tournament_id == tournament_id).order_by(Fixture.id)
    ).all()


def _bracket_rows(session: Session, tournament_id: int) -> List[Fixture]:
    return session.exec(
        select(Fixture)
        .where(Fixture.tournament_id == tournament_id, Fixture.bracket_code.is_not(None))
        .order_by(Fixture.round_index, Fixture.position)
    ).all()


def get_tournament_standings(
    session: Session, tournament_id: int, include_teams_with_no_games: bool = False
) -> List[TeamStanding]:
    """Ranked league table, recomputed from the completed round-robin fixtures."""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise ValueError(f"Tournament {tournament_id} not found")
    fixtures = [to_league_fixture(f) for f in _tournament_fixtures(session, tournament_id)]
    teams = team_directory(session)
    if include_teams_with_no_games:
        played = {tid for f in fixtures for tid in (f.team1_id, f.team2_id) if tid is not None}
        teams = {tid: info for tid, info in teams.items() if info.division == tournament.division or tid in played}
    return compute_standings(fixtures, teams=teams, include_teams_with_no_games=include_teams_with_no_games)


def load_bracket(session: Session, tournament_id: int) -> Optional[Bracket]:
    """Rebuild the bracket arena from persisted knockout fixtures (byes are not stored)."""
    rows = _bracket_rows(session, tournament_id)
    if not rows:
        return None
    tournament = session.get(Tournament, tournament_id)
    return Bracket(size=tournament.bracket_size or 0, fixtures=[to_bracket_fixture(r) for r in rows])


def _lock_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.exec(
        select(Tournament).where(Tournament.id == tournament_id).with_for_update()
    ).first()
    if not tournament:
        raise ValueError(f"Tournament {tournament_id} not found")
    return tournament


# ============================================================================
# Mutation point 1: round-robin -> knockout
# ============================================================================


def conclude_league_phase(
    session: Session,
    tournament_id: int,
    qualifier_count: int,
    third_place_match: bool = False,
) -> ConclusionOutcome:
    """
    Rank the league, seed the qualifiers and create the whole knockout bracket.

    Fixture creation and the phase change are committed together.
    Engine errors (InvalidPhaseTransition, InsufficientTeams) propagate
    after the session is rolled back.
    """
    try:
        tournament = _lock_tournament(session, tournament_id)
        rows = _tournament_fixtures(session, tournament_id)
        teams = team_directory(session)

        conclusion = run_league_conclusion(
            phase=Phase(tournament.phase),
            fixtures=[to_league_fixture(f) for f in rows],
            qualifier_count=qualifier_count,
            teams=teams,
            third_place_match=third_place_match,
            bracket_exists=any(f.bracket_code is not None for f in rows),
        )

        created = [to_fixture_row(tournament_id, bf) for bf in conclusion.build.fixtures]
        for row in created:
            session.add(row)

        now = datetime.utcnow()
        tournament.phase = conclusion.phase.value
        tournament.qualifier_count = qualifier_count
        tournament.third_place_match = third_place_match
        tournament.bracket_size = conclusion.build.bracket.size
        tournament.knockout_started_at = now
        tournament.updated_at = now
        session.add(tournament)
        session.commit()
    except Exception:
        session.rollback()
        raise

    for row in created:
        session.refresh(row)
    session.refresh(tournament)
    logger.info(
        "Tournament %d moved to knockout: %d qualifiers, %d fixtures created",
        tournament_id,
        qualifier_count,
        len(created),
    )
    return ConclusionOutcome(
        tournament=tournament,
        standings=conclusion.standings,
        qualifiers=conclusion.qualifiers,
        fixtures=created,
    )


# ============================================================================
# Mutation point 2: slot substitution
# ============================================================================


def advance_fixture(session: Session, tournament_id: int, fixture_id: int) -> AdvancementOutcome:
    """
    Write a completed knockout fixture's result into the fixtures it feeds.

    A replay is logged as a warning and reported with already_advanced=True;
    nothing is written. An unknown fixture is logged as an error and raised.
    """
    try:
        tournament = _lock_tournament(session, tournament_id)
        row = session.get(Fixture, fixture_id)
        if not row or row.tournament_id != tournament_id or row.bracket_code is None:
            logger.error("Fixture %s is not part of tournament %d's bracket", fixture_id, tournament_id)
            raise UnknownFixtureReference(f"Fixture {fixture_id} is not part of this tournament's bracket")

        bracket = load_bracket(session, tournament_id)
        try:
            result = advance_bracket(bracket, row.bracket_code, phase=Phase(tournament.phase))
        except AlreadyAdvanced as exc:
            logger.warning("Ignoring replayed advancement: %s", exc)
            session.rollback()
            return AdvancementOutcome(
                fixture_id=fixture_id,
                phase=tournament.phase,
                already_advanced=True,
            )
        except UnknownFixtureReference:
            logger.error("Bracket for tournament %d has no fixture %s", tournament_id, row.bracket_code)
            raise

        rows_by_code = {r.bracket_code: r for r in _bracket_rows(session, tournament_id)}
        now = datetime.utcnow()
        played = result.bracket.get(row.bracket_code)
        winner_side = played.score.winner_side()
        row.winner_team_id = slot_team_id(played.slot1 if winner_side == 1 else played.slot2)
        row.advanced_at = now
        session.add(row)

        updated_ids: List[int] = []
        for bf in result.updated_fixtures:
            target = rows_by_code[bf.code]
            target.team1_id = slot_team_id(bf.slot1)
            target.team2_id = slot_team_id(bf.slot2)
            session.add(target)
            updated_ids.append(target.id)

        if result.new_phase is not None:
            tournament.phase = result.new_phase.value
            tournament.completed_at = now
        tournament.updated_at = now
        session.add(tournament)
        session.commit()
    except Exception:
        session.rollback()
        raise

    return AdvancementOutcome(
        fixture_id=fixture_id,
        advanced_count=len(updated_ids),
        updated_fixture_ids=updated_ids,
        ready_fixture_ids=[rows_by_code[bf.code].id for bf in result.ready_fixtures],
        phase=tournament.phase,
    )
