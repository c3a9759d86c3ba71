"""League -> knockout -> completed, end to end over the HTTP API."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from leaguedesk.models.fixture import Fixture
from leaguedesk.models.tournament import Tournament

DIVISION = "Open"

# (home, away, home sets, away sets) -> Alpha 9, Bravo 3, Charlie 3, Delta 3
LEAGUE_RESULTS = [
    ("Alpha", "Bravo", 3, 1),
    ("Alpha", "Charlie", 3, 0),
    ("Alpha", "Delta", 3, 2),
    ("Bravo", "Charlie", 3, 1),
    ("Bravo", "Delta", 2, 3),
    ("Charlie", "Delta", 3, 0),
]


@pytest.fixture
def league(client: TestClient):
    """Four teams, a tournament, and a fully played round robin. Returns (tournament_id, team ids by name)."""
    teams = {}
    for name in ("Alpha", "Bravo", "Charlie", "Delta"):
        response = client.post(
            "/api/teams",
            json={"name": name, "short_name": name[:3].upper(), "division": DIVISION},
        )
        assert response.status_code == 201, response.text
        teams[name] = response.json()["id"]

    response = client.post("/api/tournaments", json={"name": "Spring League", "division": DIVISION})
    assert response.status_code == 201
    tournament_id = response.json()["id"]

    for home, away, s1, s2 in LEAGUE_RESULTS:
        response = client.post(
            f"/api/tournaments/{tournament_id}/fixtures",
            json={
                "team1_id": teams[home],
                "team2_id": teams[away],
                "status": "completed",
                "score": {"team1Score": s1, "team2Score": s2},
            },
        )
        assert response.status_code == 201, response.text

    return tournament_id, teams


def _conclude(client: TestClient, tournament_id: int, count: int, third_place: bool = False):
    return client.post(
        f"/api/tournaments/{tournament_id}/conclude-league-phase",
        json={"qualifier_count": count, "third_place_match": third_place},
    )


def _bracket_ids(client: TestClient, tournament_id: int):
    data = client.get(f"/api/tournaments/{tournament_id}/bracket").json()
    ids = {f["code"]: f["fixture_id"] for rnd in data["rounds"] for f in rnd}
    if data["third_place"]:
        ids[data["third_place"]["code"]] = data["third_place"]["fixture_id"]
    return ids


def _complete(client: TestClient, tournament_id: int, fixture_id: int, s1: int, s2: int):
    return client.patch(
        f"/api/tournaments/{tournament_id}/fixtures/{fixture_id}",
        json={"status": "completed", "score": {"team1Score": s1, "team2Score": s2}},
    )


# ============================================================================
# Standings
# ============================================================================


def test_standings_table(client: TestClient, league):
    tournament_id, teams = league
    response = client.get(f"/api/tournaments/{tournament_id}/standings")
    assert response.status_code == 200
    rows = response.json()

    assert [(r["rank"], r["team_name"], r["points"]) for r in rows] == [
        (1, "Alpha", 9),
        (2, "Bravo", 3),
        (3, "Charlie", 3),
        (4, "Delta", 3),
    ]
    alpha = rows[0]
    assert (alpha["wins"], alpha["losses"], alpha["goals_for"], alpha["goals_against"]) == (3, 0, 9, 3)
    assert alpha["goal_difference"] == 6
    assert alpha["team_id"] == teams["Alpha"]


def test_standings_include_idle_teams(client: TestClient, league):
    tournament_id, _ = league
    client.post("/api/teams", json={"name": "Echo", "short_name": "ECH", "division": DIVISION})
    client.post("/api/teams", json={"name": "Foxtrot", "short_name": "FOX", "division": "U18"})

    rows = client.get(f"/api/tournaments/{tournament_id}/standings").json()
    assert len(rows) == 4

    rows = client.get(
        f"/api/tournaments/{tournament_id}/standings",
        params={"include_teams_with_no_games": True},
    ).json()
    assert [r["team_name"] for r in rows] == ["Alpha", "Bravo", "Charlie", "Delta", "Echo"]
    assert rows[-1]["games_played"] == 0


def test_league_fixture_needs_a_winner(client: TestClient, league):
    tournament_id, teams = league
    response = client.post(
        f"/api/tournaments/{tournament_id}/fixtures",
        json={
            "team1_id": teams["Alpha"],
            "team2_id": teams["Bravo"],
            "status": "completed",
            "score": {"team1Score": 2, "team2Score": 2},
        },
    )
    assert response.status_code == 422


def test_league_fixture_unknown_team(client: TestClient, league):
    tournament_id, teams = league
    response = client.post(
        f"/api/tournaments/{tournament_id}/fixtures",
        json={"team1_id": teams["Alpha"], "team2_id": 999},
    )
    assert response.status_code == 404


# ============================================================================
# round-robin -> knockout
# ============================================================================


def test_conclude_two_qualifiers_creates_single_final(client: TestClient, league, session: Session):
    tournament_id, teams = league
    response = _conclude(client, tournament_id, 2)
    assert response.status_code == 200, response.text
    data = response.json()

    assert data["tournament"]["phase"] == "knockout"
    assert data["tournament"]["bracket_size"] == 2
    assert [(q["seed"], q["team_name"]) for q in data["qualifiers"]] == [(1, "Alpha"), (2, "Bravo")]
    assert len(data["created_fixture_ids"]) == 1

    final = session.get(Fixture, data["created_fixture_ids"][0])
    assert final.stage == "final"
    assert final.bracket_code == "F1"
    assert (final.team1_id, final.team2_id) == (teams["Alpha"], teams["Bravo"])
    assert final.ground == "TBD"
    assert final.status == "upcoming"


def test_conclude_four_qualifiers_bracket(client: TestClient, league):
    tournament_id, teams = league
    response = _conclude(client, tournament_id, 4, third_place=True)
    assert response.status_code == 200
    assert len(response.json()["created_fixture_ids"]) == 4

    bracket = client.get(f"/api/tournaments/{tournament_id}/bracket").json()
    assert bracket["phase"] == "knockout"
    assert bracket["size"] == 4
    semis, finals = bracket["rounds"]

    sf1, sf2 = semis
    assert (sf1["code"], sf1["stage"]) == ("SF1", "semifinal")
    assert sf1["slot1"] == {"kind": "team", "team_id": teams["Alpha"], "fixture_code": None}
    assert sf1["slot2"]["team_id"] == teams["Delta"]
    assert (sf2["slot1"]["team_id"], sf2["slot2"]["team_id"]) == (teams["Bravo"], teams["Charlie"])
    assert sf1["ready"] and sf2["ready"]

    (final,) = finals
    assert final["slot1"] == {"kind": "winner_of", "team_id": None, "fixture_code": "SF1"}
    assert final["ready"] is False

    third = bracket["third_place"]
    assert third["code"] == "3P1"
    assert third["slot2"] == {"kind": "loser_of", "team_id": None, "fixture_code": "SF2"}


def test_conclude_twice_conflicts(client: TestClient, league, session: Session):
    tournament_id, _ = league
    assert _conclude(client, tournament_id, 2).status_code == 200

    response = _conclude(client, tournament_id, 2)
    assert response.status_code == 409

    knockout = session.exec(
        select(Fixture).where(Fixture.tournament_id == tournament_id, Fixture.stage.is_not(None))
    ).all()
    assert len(knockout) == 1


def test_conclude_insufficient_teams_leaves_tournament_untouched(client: TestClient, league, session: Session):
    tournament_id, _ = league
    response = _conclude(client, tournament_id, 5)
    assert response.status_code == 422

    tournament = session.get(Tournament, tournament_id)
    session.refresh(tournament)
    assert tournament.phase == "round-robin"
    fixtures = session.exec(select(Fixture).where(Fixture.tournament_id == tournament_id)).all()
    assert all(f.stage is None for f in fixtures)


def test_conclude_rejects_qualifier_count_below_two(client: TestClient, league):
    tournament_id, _ = league
    assert _conclude(client, tournament_id, 1).status_code == 422


def test_no_league_fixtures_after_knockout_starts(client: TestClient, league):
    tournament_id, teams = league
    _conclude(client, tournament_id, 2)
    response = client.post(
        f"/api/tournaments/{tournament_id}/fixtures",
        json={"team1_id": teams["Alpha"], "team2_id": teams["Delta"]},
    )
    assert response.status_code == 409


def test_fixture_list_puts_league_first(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 4)
    fixtures = client.get(f"/api/tournaments/{tournament_id}/fixtures").json()
    assert [f["stage"] for f in fixtures] == [None] * 6 + ["semifinal", "semifinal", "final"]


# ============================================================================
# Knockout advancement
# ============================================================================


def test_full_knockout_with_third_place(client: TestClient, league):
    tournament_id, teams = league
    _conclude(client, tournament_id, 4, third_place=True)
    ids = _bracket_ids(client, tournament_id)

    # Going live does not advance anything
    response = client.patch(
        f"/api/tournaments/{tournament_id}/fixtures/{ids['SF1']}",
        json={"status": "live"},
    )
    assert response.status_code == 200
    assert response.json()["advancement"] is None

    # Alpha beats Delta
    response = _complete(client, tournament_id, ids["SF1"], 3, 1)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["fixture"]["winner_team_id"] == teams["Alpha"]
    advancement = body["advancement"]
    assert advancement["advanced_count"] == 2
    assert sorted(advancement["updated_fixture_ids"]) == sorted([ids["F1"], ids["3P1"]])
    assert advancement["ready_fixture_ids"] == []
    assert advancement["phase"] == "knockout"

    # Charlie beats Bravo
    response = _complete(client, tournament_id, ids["SF2"], 0, 3)
    advancement = response.json()["advancement"]
    assert sorted(advancement["ready_fixture_ids"]) == sorted([ids["F1"], ids["3P1"]])

    bracket = client.get(f"/api/tournaments/{tournament_id}/bracket").json()
    final = bracket["rounds"][1][0]
    assert (final["slot1"]["team_id"], final["slot2"]["team_id"]) == (teams["Alpha"], teams["Charlie"])
    third = bracket["third_place"]
    assert (third["slot1"]["team_id"], third["slot2"]["team_id"]) == (teams["Delta"], teams["Bravo"])

    # Final first: tournament waits for the third-place match
    response = _complete(client, tournament_id, ids["F1"], 3, 2)
    assert response.json()["advancement"]["phase"] == "knockout"

    response = _complete(client, tournament_id, ids["3P1"], 3, 0)
    assert response.json()["advancement"]["phase"] == "completed"

    tournament = client.get(f"/api/tournaments/{tournament_id}").json()
    assert tournament["phase"] == "completed"
    assert tournament["completed_at"] is not None


def test_final_completes_tournament(client: TestClient, league):
    tournament_id, teams = league
    _conclude(client, tournament_id, 2)
    ids = _bracket_ids(client, tournament_id)

    response = _complete(client, tournament_id, ids["F1"], 1, 3)
    advancement = response.json()["advancement"]
    assert advancement["phase"] == "completed"
    assert advancement["advanced_count"] == 0
    assert response.json()["fixture"]["winner_team_id"] == teams["Bravo"]


def test_manual_advance_replay_is_noop(client: TestClient, league, session: Session):
    tournament_id, _ = league
    _conclude(client, tournament_id, 4)
    ids = _bracket_ids(client, tournament_id)
    _complete(client, tournament_id, ids["SF1"], 3, 0)

    final_before = session.get(Fixture, ids["F1"])
    session.refresh(final_before)
    team1_before = final_before.team1_id

    response = client.post(f"/api/tournaments/{tournament_id}/fixtures/{ids['SF1']}/advance")
    assert response.status_code == 200
    data = response.json()
    assert data["already_advanced"] is True
    assert data["advanced_count"] == 0

    session.refresh(final_before)
    assert final_before.team1_id == team1_before


def test_completed_fixture_is_terminal(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 2)
    ids = _bracket_ids(client, tournament_id)
    _complete(client, tournament_id, ids["F1"], 3, 0)

    response = _complete(client, tournament_id, ids["F1"], 0, 3)
    assert response.status_code == 422


def test_level_knockout_score_rejected(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 4)
    ids = _bracket_ids(client, tournament_id)

    response = _complete(client, tournament_id, ids["SF1"], 2, 2)
    assert response.status_code == 422

    bracket = client.get(f"/api/tournaments/{tournament_id}/bracket").json()
    assert bracket["rounds"][0][0]["status"] == "upcoming"


def test_cannot_play_fixture_before_teams_known(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 4)
    ids = _bracket_ids(client, tournament_id)

    response = _complete(client, tournament_id, ids["F1"], 3, 0)
    assert response.status_code == 422


def test_advance_unknown_fixture_404(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 2)
    response = client.post(f"/api/tournaments/{tournament_id}/fixtures/9999/advance")
    assert response.status_code == 404


def test_advance_league_fixture_404(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 2)
    league_fixture = client.get(f"/api/tournaments/{tournament_id}/fixtures").json()[0]
    assert league_fixture["stage"] is None

    response = client.post(f"/api/tournaments/{tournament_id}/fixtures/{league_fixture['id']}/advance")
    assert response.status_code == 404


def test_advance_unplayed_fixture_422(client: TestClient, league):
    tournament_id, _ = league
    _conclude(client, tournament_id, 2)
    ids = _bracket_ids(client, tournament_id)
    response = client.post(f"/api/tournaments/{tournament_id}/fixtures/{ids['F1']}/advance")
    assert response.status_code == 422
