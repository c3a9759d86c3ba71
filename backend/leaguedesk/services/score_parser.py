"""
Score boundary: turns a stored score blob into a Score.

Supports:
  {"team1Score": 2, "team2Score": 1,
   "sets": [{"team1Points": 25, "team2Points": 23}, ...],
   "resultMessage": "..."}                      → structured score
  {"sets": [...]} without set counts             → counts derived from sets
  "25-23 22-25 15-10" / "25-23, 22-25, 15-10"   → display string
  {"display": "25-23 22-25"}                    → display string

parse_score returns None when the blob cannot be read; validate_completed_score
enforces the no-draw invariant for completed fixtures.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from leaguedesk.services.progression_types import InvalidScore, Score


def parse_score(score_json: Optional[Union[Dict[str, Any], str]]) -> Optional[Score]:
    """Parse a score blob into a Score, or None if it cannot be read."""
    if not score_json:
        return None

    raw: Optional[str] = None
    if isinstance(score_json, str):
        raw = score_json
    elif isinstance(score_json, dict):
        if "team1Score" in score_json or isinstance(score_json.get("sets"), list):
            return _parse_structured(score_json)
        raw = str(score_json.get("display") or score_json.get("score") or "")
    if not raw or not raw.strip():
        return None

    return _parse_score_string(raw.strip())


def _count_sets(sets: List[Tuple[int, int]]) -> Tuple[int, int]:
    return sum(1 for a, b in sets if a > b), sum(1 for a, b in sets if b > a)


def _parse_structured(blob: Dict[str, Any]) -> Optional[Score]:
    sets: List[Tuple[int, int]] = []
    for s in blob.get("sets") or []:
        try:
            sets.append((int(s.get("team1Points", 0)), int(s.get("team2Points", 0))))
        except (TypeError, ValueError, AttributeError):
            return None

    if "team1Score" in blob and "team2Score" in blob:
        try:
            team1, team2 = int(blob["team1Score"]), int(blob["team2Score"])
        except (TypeError, ValueError):
            return None
    else:
        team1, team2 = _count_sets(sets)

    return Score(
        team1_score=team1,
        team2_score=team2,
        sets=tuple(sets),
        result_message=str(blob.get("resultMessage") or ""),
    )


def _parse_score_string(raw: str) -> Optional[Score]:
    """Parse strings like '25-20', '25-23 22-25 15-10', '25-23, 22-25, 15-10'."""
    normalized = raw.replace(",", " ").strip()
    parts = normalized.split()

    sets: List[Tuple[int, int]] = []
    for part in parts:
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        sets.append((a, b))

    if not sets:
        return None

    team1, team2 = _count_sets(sets)
    return Score(team1_score=team1, team2_score=team2, sets=tuple(sets))


def validate_completed_score(score: Optional[Score]) -> Score:
    """A completed fixture needs a readable score with a winner."""
    if score is None:
        raise InvalidScore("A completed fixture requires a score")
    if score.team1_score < 0 or score.team2_score < 0:
        raise InvalidScore("Set counts cannot be negative")
    score.winner_side()
    return score


def score_to_json(score: Score) -> Dict[str, Any]:
    return {
        "team1Score": score.team1_score,
        "team2Score": score.team2_score,
        "sets": [{"team1Points": a, "team2Points": b} for a, b in score.sets],
        "resultMessage": score.result_message,
    }
