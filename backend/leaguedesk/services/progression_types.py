"""
Shared types for the tournament progression engine.

Everything here is plain data: the engine never touches the database.
Knockout team slots are an explicit tagged union so that "not known yet"
and "bye" stay distinguishable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class Phase(str, Enum):
    ROUND_ROBIN = "round-robin"
    KNOCKOUT = "knockout"
    COMPLETED = "completed"


class FixtureStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


STAGE_FINAL = "final"
STAGE_SEMIFINAL = "semifinal"
STAGE_QUARTERFINAL = "quarterfinal"
STAGE_THIRD_PLACE = "third-place"

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"


# ============================================================================
# Errors
# ============================================================================


class ProgressionError(Exception):
    """Base class for progression engine errors"""

    pass


class InsufficientTeams(ProgressionError):
    """Fewer ranked teams than the requested qualification count"""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Need {required} qualified teams, only {available} available")


class InvalidPhaseTransition(ProgressionError):
    """Transition not permitted from the tournament's current phase"""

    pass


class UnknownFixtureReference(ProgressionError):
    """Fixture is not part of the bracket"""

    pass


class AlreadyAdvanced(ProgressionError):
    """Fixture result was already written into the bracket"""

    pass


class IncompleteFixture(ProgressionError):
    """Fixture cannot be advanced because it has no final result"""

    pass


class InvalidScore(ValueError):
    """Score violates the set-count invariant"""

    pass


# ============================================================================
# Teams, scores, fixtures
# ============================================================================


@dataclass(frozen=True)
class TeamInfo:
    team_id: int
    name: str
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    division: Optional[str] = None


@dataclass(frozen=True)
class Score:
    team1_score: int
    team2_score: int
    sets: Tuple[Tuple[int, int], ...] = ()
    result_message: str = ""

    def winner_side(self) -> int:
        """1 or 2. Equal set-counts are a data-integrity violation."""
        if self.team1_score > self.team2_score:
            return 1
        if self.team2_score > self.team1_score:
            return 2
        raise InvalidScore(f"Set counts are level ({self.team1_score}-{self.team2_score}); a completed fixture needs a winner")


@dataclass(frozen=True)
class LeagueFixture:
    """Read-only view of a ledger fixture, as consumed by the standings calculator."""

    fixture_id: Optional[int]
    team1_id: Optional[int]
    team2_id: Optional[int]
    status: FixtureStatus = FixtureStatus.UPCOMING
    stage: Optional[str] = None
    score: Optional[Score] = None


# ============================================================================
# Bracket slots (tagged union)
# ============================================================================


@dataclass(frozen=True)
class Concrete:
    team_id: int


@dataclass(frozen=True)
class PendingWinnerOf:
    fixture_code: str


@dataclass(frozen=True)
class PendingLoserOf:
    fixture_code: str


@dataclass(frozen=True)
class Bye:
    pass


Slot = Union[Concrete, PendingWinnerOf, PendingLoserOf, Bye]


def slot_team_id(slot: Slot) -> Optional[int]:
    if isinstance(slot, Concrete):
        return slot.team_id
    return None


@dataclass
class BracketFixture:
    code: str
    round_index: int  # 1-based; the final round is the highest
    position: int  # 1-based within the round
    stage: str
    slot1: Slot
    slot2: Slot
    feeds_winner_to: Optional[Tuple[str, int]] = None  # (code, slot number)
    feeds_loser_to: Optional[Tuple[str, int]] = None
    status: FixtureStatus = FixtureStatus.UPCOMING
    score: Optional[Score] = None
    fixture_id: Optional[int] = None
    advanced: bool = False

    @property
    def is_bye(self) -> bool:
        return isinstance(self.slot1, Bye) or isinstance(self.slot2, Bye)

    @property
    def is_ready(self) -> bool:
        """Both teams known and the fixture still to be played."""
        return (
            isinstance(self.slot1, Concrete)
            and isinstance(self.slot2, Concrete)
            and self.status != FixtureStatus.COMPLETED
        )

    def slot(self, number: int) -> Slot:
        return self.slot1 if number == 1 else self.slot2

    def set_slot(self, number: int, value: Slot) -> None:
        if number == 1:
            self.slot1 = value
        else:
            self.slot2 = value


@dataclass
class Bracket:
    """Flat arena of bracket fixtures, addressable by code or by (round, position)."""

    size: int
    fixtures: List[BracketFixture]
    _by_code: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_code = {f.code: i for i, f in enumerate(self.fixtures)}

    def get(self, code: str) -> BracketFixture:
        idx = self._by_code.get(code)
        if idx is None:
            raise UnknownFixtureReference(f"Fixture {code!r} is not part of this bracket")
        return self.fixtures[idx]

    def __contains__(self, code: str) -> bool:
        return code in self._by_code

    @property
    def round_count(self) -> int:
        return max((f.round_index for f in self.fixtures if f.stage != STAGE_THIRD_PLACE), default=0)

    def round(self, round_index: int) -> List[BracketFixture]:
        return sorted(
            (f for f in self.fixtures if f.round_index == round_index and f.stage != STAGE_THIRD_PLACE),
            key=lambda f: f.position,
        )

    @property
    def rounds(self) -> List[List[BracketFixture]]:
        return [self.round(r) for r in range(1, self.round_count + 1)]

    def at(self, round_index: int, position: int) -> BracketFixture:
        for f in self.round(round_index):
            if f.position == position:
                return f
        raise UnknownFixtureReference(f"No fixture at round {round_index} position {position}")

    @property
    def final(self) -> BracketFixture:
        return self.at(self.round_count, 1)

    @property
    def third_place(self) -> Optional[BracketFixture]:
        for f in self.fixtures:
            if f.stage == STAGE_THIRD_PLACE:
                return f
        return None

    def substitute(self, code: str, winner_id: int, loser_id: Optional[int]) -> List[BracketFixture]:
        """Replace every pending reference to *code* with the concrete team.

        Returns the fixtures whose slots changed, in arena order.
        """
        self.get(code)
        changed: List[BracketFixture] = []
        for f in self.fixtures:
            touched = False
            for number in (1, 2):
                slot = f.slot(number)
                if isinstance(slot, PendingWinnerOf) and slot.fixture_code == code:
                    f.set_slot(number, Concrete(winner_id))
                    touched = True
                elif isinstance(slot, PendingLoserOf) and slot.fixture_code == code and loser_id is not None:
                    f.set_slot(number, Concrete(loser_id))
                    touched = True
            if touched:
                changed.append(f)
        return changed

    def playable_fixtures(self) -> List[BracketFixture]:
        """Fixtures that exist in the ledger (everything except byes)."""
        return [f for f in self.fixtures if not f.is_bye]
