"""Qualifier selection: the top N of the ranked league table."""

from typing import List, Sequence

from leaguedesk.services.progression_types import InsufficientTeams, TeamInfo
from leaguedesk.services.standings import TeamStanding


def select_qualifiers(standings: Sequence[TeamStanding], n: int) -> List[TeamInfo]:
    """
    Return the first *n* teams in ranked order (seed 1 first).

    Raises:
        ValueError: n < 1
        InsufficientTeams: fewer than n ranked teams; padding or aborting is the caller's call
    """
    if n < 1:
        raise ValueError(f"Qualifier count must be >= 1, got {n}")
    if len(standings) < n:
        raise InsufficientTeams(required=n, available=len(standings))
    return [s.team_info() for s in standings[:n]]
