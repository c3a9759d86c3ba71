"""
Tournament phase state machine.

    round-robin -> knockout -> completed

Forward only. round-robin -> knockout is an explicit admin action that
runs standings -> qualifiers -> bracket; knockout -> completed happens
when the bracket advancer records the last knockout result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from leaguedesk.services.bracket_builder import BracketBuild, build_bracket
from leaguedesk.services.progression_types import (
    InvalidPhaseTransition,
    LeagueFixture,
    Phase,
    TeamInfo,
)
from leaguedesk.services.qualifiers import select_qualifiers
from leaguedesk.services.standings import TeamStanding, compute_standings

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.ROUND_ROBIN: frozenset({Phase.KNOCKOUT}),
    Phase.KNOCKOUT: frozenset({Phase.COMPLETED}),
    Phase.COMPLETED: frozenset(),
}


@dataclass
class LeagueConclusion:
    standings: List[TeamStanding]
    qualifiers: List[TeamInfo]
    build: BracketBuild
    phase: Phase


def require_phase(current: Phase, expected: Phase, action: str) -> None:
    if Phase(current) != expected:
        raise InvalidPhaseTransition(
            f"Cannot {action}: tournament is in phase '{Phase(current).value}', expected '{expected.value}'"
        )


def transition(current: Phase, target: Phase) -> Phase:
    """Validate a forward transition and return the new phase."""
    current = Phase(current)
    target = Phase(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidPhaseTransition(f"Illegal phase transition {current.value} -> {target.value}")
    return target


def conclude_league_phase(
    phase: Phase,
    fixtures: Iterable[LeagueFixture],
    qualifier_count: int,
    teams: Optional[Mapping[int, TeamInfo]] = None,
    third_place_match: bool = False,
    bracket_exists: bool = False,
) -> LeagueConclusion:
    """
    Move a tournament from round-robin to knockout.

    Nothing is persisted here; the caller stores ``build.fixtures`` and the
    new phase as one unit.

    Raises:
        InvalidPhaseTransition: not in round-robin, or a bracket already exists
        InsufficientTeams: fewer ranked teams than qualifier_count
    """
    require_phase(phase, Phase.ROUND_ROBIN, "conclude the league phase")
    if bracket_exists:
        raise InvalidPhaseTransition("A knockout bracket already exists for this tournament")

    standings = compute_standings(fixtures, teams=teams)
    qualifiers = select_qualifiers(standings, qualifier_count)
    build = build_bracket(qualifiers, third_place_match=third_place_match)
    new_phase = transition(phase, Phase.KNOCKOUT)

    logger.info(
        "League phase concluded: %d qualifiers, %d knockout fixtures",
        len(qualifiers),
        len(build.fixtures),
    )
    return LeagueConclusion(standings=standings, qualifiers=qualifiers, build=build, phase=new_phase)
