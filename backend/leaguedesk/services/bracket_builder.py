"""
Knockout bracket construction from ranked qualifiers.

Round one is laid out in bracket-fold order so that, if chalk holds,
seed 1 meets seed 2 only in the final:
  4-entry  -> (1v4), (2v3)
  8-entry  -> (1v8), (4v5), (3v6), (2v7)
When the qualifier count is not a power of two, the top (size - N) seeds
get byes. Later rounds are created up front with pending references, so
the whole bracket exists from the moment the knockout phase starts.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

from leaguedesk.services.progression_types import (
    STAGE_FINAL,
    STAGE_QUARTERFINAL,
    STAGE_SEMIFINAL,
    STAGE_THIRD_PLACE,
    Bracket,
    BracketFixture,
    Bye,
    Concrete,
    InsufficientTeams,
    PendingLoserOf,
    PendingWinnerOf,
    Phase,
    TeamInfo,
)

logger = logging.getLogger(__name__)

_STAGE_CODES = {
    STAGE_FINAL: "F",
    STAGE_SEMIFINAL: "SF",
    STAGE_QUARTERFINAL: "QF",
    STAGE_THIRD_PLACE: "3P",
}


@dataclass
class BracketBuild:
    bracket: Bracket
    fixtures: List[BracketFixture]  # fixtures to create, round by round, third place last
    phase: Phase = Phase.KNOCKOUT


def bracket_size(num_teams: int) -> int:
    """Next power of two >= num_teams."""
    if num_teams <= 1:
        return num_teams
    return 2 ** math.ceil(math.log2(num_teams))


def round_name(teams_in_round: int) -> str:
    if teams_in_round == 2:
        return STAGE_FINAL
    if teams_in_round == 4:
        return STAGE_SEMIFINAL
    if teams_in_round == 8:
        return STAGE_QUARTERFINAL
    return f"round-of-{teams_in_round}"


def fixture_code(stage: str, position: int) -> str:
    prefix = _STAGE_CODES.get(stage)
    if prefix is None:
        # round-of-16 -> R16-3
        return f"R{stage.rsplit('-', 1)[-1]}-{position}"
    return f"{prefix}{position}"


def bracket_fold_positions(n: int) -> List[int]:
    """Seeds in bracket position order for an *n*-entry bracket (n a power of two).

    Consecutive pairs are the round-one matchups:
      4  -> [1, 4, 2, 3]
      8  -> [1, 8, 4, 5, 3, 6, 2, 7]
      16 -> [1, 16, 8, 9, 4, 13, 5, 12, 3, 14, 6, 11, 7, 10, 2, 15]
    """
    if n == 2:
        return [1, 2]

    half = bracket_fold_positions(n // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(n + 1 - s)

    mid = len(expanded) // 2
    top = expanded[:mid]
    bot = expanded[mid:]
    if len(bot) >= 4:
        bot = bot[:-4] + bot[-2:] + bot[-4:-2]

    return top + bot


def build_bracket(qualifiers: Sequence[TeamInfo], third_place_match: bool = False) -> BracketBuild:
    """
    Seed *qualifiers* (best first) into a single-elimination bracket.

    Returns the full bracket arena and the fixtures to create. Bye entries
    stay in the arena but are resolved immediately and never emitted.

    Raises:
        InsufficientTeams: fewer than two qualifiers
        ValueError: a team appears twice
    """
    n = len(qualifiers)
    if n < 2:
        raise InsufficientTeams(required=2, available=n)
    team_ids = [q.team_id for q in qualifiers]
    if len(set(team_ids)) != n:
        raise ValueError("Qualifier list contains the same team more than once")

    size = bracket_size(n)
    total_rounds = int(math.log2(size))
    seed_to_team = {seed: team_id for seed, team_id in enumerate(team_ids, start=1)}

    fixtures: List[BracketFixture] = []

    # Round one: seeds in fold order, byes where the seed does not exist
    stage = round_name(size)
    fold = bracket_fold_positions(size)
    for position, i in enumerate(range(0, size, 2), start=1):
        seed1, seed2 = fold[i], fold[i + 1]
        slot1 = Concrete(seed_to_team[seed1]) if seed1 <= n else Bye()
        slot2 = Concrete(seed_to_team[seed2]) if seed2 <= n else Bye()
        fixtures.append(
            BracketFixture(
                code=fixture_code(stage, position),
                round_index=1,
                position=position,
                stage=stage,
                slot1=slot1,
                slot2=slot2,
            )
        )

    # Later rounds: fixture j takes the winners of fixtures 2j-1 and 2j
    previous = fixtures[:]
    for round_index in range(2, total_rounds + 1):
        stage = round_name(size // 2 ** (round_index - 1))
        current: List[BracketFixture] = []
        for position in range(1, len(previous) // 2 + 1):
            upper = previous[2 * position - 2]
            lower = previous[2 * position - 1]
            code = fixture_code(stage, position)
            upper.feeds_winner_to = (code, 1)
            lower.feeds_winner_to = (code, 2)
            current.append(
                BracketFixture(
                    code=code,
                    round_index=round_index,
                    position=position,
                    stage=stage,
                    slot1=PendingWinnerOf(upper.code),
                    slot2=PendingWinnerOf(lower.code),
                )
            )
        fixtures.extend(current)
        previous = current

    if third_place_match and total_rounds >= 2:
        semis = [f for f in fixtures if f.round_index == total_rounds - 1]
        if any(f.is_bye for f in semis):
            logger.info("Third-place fixture skipped: a semifinal is a bye")
        else:
            code = fixture_code(STAGE_THIRD_PLACE, 1)
            semis[0].feeds_loser_to = (code, 1)
            semis[1].feeds_loser_to = (code, 2)
            fixtures.append(
                BracketFixture(
                    code=code,
                    round_index=total_rounds,
                    position=2,
                    stage=STAGE_THIRD_PLACE,
                    slot1=PendingLoserOf(semis[0].code),
                    slot2=PendingLoserOf(semis[1].code),
                )
            )

    bracket = Bracket(size=size, fixtures=fixtures)

    # Byes resolve through the same substitution as a played result
    for fixture in bracket.round(1):
        if fixture.is_bye:
            holder = fixture.slot1 if isinstance(fixture.slot1, Concrete) else fixture.slot2
            bracket.substitute(fixture.code, winner_id=holder.team_id, loser_id=None)
            fixture.advanced = True

    emitted = bracket.playable_fixtures()
    logger.info(
        "Built %d-slot bracket for %d qualifiers: %d fixtures, %d byes",
        size,
        n,
        len(emitted),
        size - n,
    )
    return BracketBuild(bracket=bracket, fixtures=emitted)
