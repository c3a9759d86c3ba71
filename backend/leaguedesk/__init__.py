"""LeagueDesk back end: league standings and knockout progression."""
