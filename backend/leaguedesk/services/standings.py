"""
League standings from completed round-robin fixtures.

Recomputed on every read; nothing here is cached or persisted.

Ranking (total order):
1. points descending
2. goal difference descending
3. goals for descending
4. team name ascending
5. team id ascending
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from leaguedesk.services.progression_types import FixtureStatus, LeagueFixture, TeamInfo

logger = logging.getLogger(__name__)

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0


@dataclass(frozen=True)
class TeamStanding:
    team_id: int
    team_name: str
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0

    def team_info(self) -> TeamInfo:
        return TeamInfo(
            team_id=self.team_id,
            name=self.team_name,
            short_name=self.short_name,
            logo_url=self.logo_url,
        )


@dataclass
class _Tally:
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    def record(self, scored: int, conceded: int) -> None:
        self.games_played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.wins += 1
            self.points += POINTS_WIN
        elif scored < conceded:
            self.losses += 1
            self.points += POINTS_LOSS
        else:
            self.draws += 1
            self.points += POINTS_DRAW


def is_league_result(fixture: LeagueFixture) -> bool:
    return (
        fixture.stage is None
        and fixture.status == FixtureStatus.COMPLETED
        and fixture.score is not None
        and fixture.team1_id is not None
        and fixture.team2_id is not None
    )


def standing_sort_key(standing: TeamStanding):
    return (
        -standing.points,
        -standing.goal_difference,
        -standing.goals_for,
        standing.team_name,
        standing.team_id,
    )


def compute_standings(
    fixtures: Iterable[LeagueFixture],
    teams: Optional[Mapping[int, TeamInfo]] = None,
    include_teams_with_no_games: bool = False,
) -> List[TeamStanding]:
    """Build the ranked league table.

    Only fixtures without a stage, with status completed and a score are
    counted. ``teams`` supplies display fields; a team missing from it is
    shown by id. With ``include_teams_with_no_games`` every team in ``teams``
    gets a row, played or not.
    """
    teams = teams or {}
    tallies: Dict[int, _Tally] = {}

    if include_teams_with_no_games:
        for team_id in teams:
            tallies.setdefault(team_id, _Tally())

    for fixture in fixtures:
        if not is_league_result(fixture):
            continue
        score = fixture.score
        if score.team1_score == score.team2_score:
            logger.warning(
                "Fixture %s completed level at %d-%d; counted as a draw",
                fixture.fixture_id,
                score.team1_score,
                score.team2_score,
            )
        tallies.setdefault(fixture.team1_id, _Tally()).record(score.team1_score, score.team2_score)
        tallies.setdefault(fixture.team2_id, _Tally()).record(score.team2_score, score.team1_score)

    standings: List[TeamStanding] = []
    for team_id, tally in tallies.items():
        info = teams.get(team_id)
        standings.append(
            TeamStanding(
                team_id=team_id,
                team_name=info.name if info else str(team_id),
                short_name=info.short_name if info else None,
                logo_url=info.logo_url if info else None,
                games_played=tally.games_played,
                wins=tally.wins,
                draws=tally.draws,
                losses=tally.losses,
                goals_for=tally.goals_for,
                goals_against=tally.goals_against,
                goal_difference=tally.goals_for - tally.goals_against,
                points=tally.points,
            )
        )

    return sorted(standings, key=standing_sort_key)
