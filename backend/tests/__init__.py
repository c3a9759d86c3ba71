# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from leaguedesk.models.fixture import Fixture  # noqa: F401
from leaguedesk.models.team import Team  # noqa: F401
from leaguedesk.models.tournament import Tournament  # noqa: F401
