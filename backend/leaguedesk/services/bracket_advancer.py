"""
Bracket advancement: write a completed knockout result into the fixtures it feeds.

The winner replaces every "winner of <code>" slot, the loser every
"loser of <code>" slot (third-place match). A fixture's result is written
at most once; a replay raises AlreadyAdvanced and leaves the bracket
untouched. The input bracket is never mutated: the result carries a copy.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from leaguedesk.services.phase_controller import require_phase, transition
from leaguedesk.services.progression_types import (
    STAGE_FINAL,
    AlreadyAdvanced,
    Bracket,
    BracketFixture,
    Concrete,
    FixtureStatus,
    IncompleteFixture,
    Phase,
)

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    bracket: Bracket
    updated_fixtures: List[BracketFixture] = field(default_factory=list)
    ready_fixtures: List[BracketFixture] = field(default_factory=list)
    new_phase: Optional[Phase] = None


def knockout_finished(bracket: Bracket) -> bool:
    """Final played, and the third-place match too when there is one."""
    if bracket.final.status != FixtureStatus.COMPLETED:
        return False
    third = bracket.third_place
    return third is None or third.status == FixtureStatus.COMPLETED


def advance_bracket(bracket: Bracket, fixture_code: str, phase: Phase = Phase.KNOCKOUT) -> AdvanceResult:
    """
    Advance the result of the completed fixture *fixture_code*.

    Raises:
        InvalidPhaseTransition: tournament is not in the knockout phase
        UnknownFixtureReference: code not in this bracket
        AlreadyAdvanced: result already written downstream
        IncompleteFixture: fixture not completed, has no score, or lacks two teams
    """
    source = bracket.get(fixture_code)
    if source.advanced:
        raise AlreadyAdvanced(f"Fixture {fixture_code} has already been advanced")
    require_phase(phase, Phase.KNOCKOUT, "advance the bracket")
    if source.status != FixtureStatus.COMPLETED or source.score is None:
        raise IncompleteFixture(f"Fixture {fixture_code} is not completed")
    if not (isinstance(source.slot1, Concrete) and isinstance(source.slot2, Concrete)):
        raise IncompleteFixture(f"Fixture {fixture_code} does not have two teams yet")

    working = copy.deepcopy(bracket)
    played = working.get(fixture_code)
    if played.score.winner_side() == 1:
        winner_id, loser_id = played.slot1.team_id, played.slot2.team_id
    else:
        winner_id, loser_id = played.slot2.team_id, played.slot1.team_id

    updated = working.substitute(fixture_code, winner_id=winner_id, loser_id=loser_id)
    played.advanced = True
    ready = [f for f in updated if f.is_ready]

    new_phase: Optional[Phase] = None
    if played.stage == STAGE_FINAL:
        logger.info("Final %s won by team %d", fixture_code, winner_id)
    if knockout_finished(working):
        new_phase = transition(phase, Phase.COMPLETED)
        logger.info("Knockout finished; tournament phase -> %s", new_phase.value)

    logger.info(
        "Advanced %s: team %d through, %d slot(s) filled, %d fixture(s) ready",
        fixture_code,
        winner_id,
        len(updated),
        len(ready),
    )
    return AdvanceResult(
        bracket=working,
        updated_fixtures=updated,
        ready_fixtures=ready,
        new_phase=new_phase,
    )
