from leaguedesk.models.fixture import Fixture
from leaguedesk.models.team import Team
from leaguedesk.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Team",
    "Fixture",
]
