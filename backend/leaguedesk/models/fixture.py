from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from leaguedesk.models.tournament import Tournament


class Fixture(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "bracket_code", name="uq_fixture_bracket_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)

    # Team slots (nullable on knockout fixtures until the feeding result is in)
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")

    ground: str = Field(default="TBD")
    date_time: Optional[datetime] = Field(default=None)
    referee: Optional[str] = Field(default=None)
    status: str = Field(default="upcoming")  # "upcoming" | "live" | "completed"
    stage: Optional[str] = Field(default=None)  # None = round-robin; "quarterfinal" | "semifinal" | "third-place" | "final" | "round-of-N"
    score_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Knockout bracket structure
    bracket_code: Optional[str] = Field(default=None)  # "QF1", "SF2", "F1", "3P1", "R16-3"
    round_index: Optional[int] = Field(default=None)
    position: Optional[int] = Field(default=None)
    source1_code: Optional[str] = Field(default=None)
    source1_role: Optional[str] = Field(default=None)  # "WINNER" | "LOSER"
    source2_code: Optional[str] = Field(default=None)
    source2_role: Optional[str] = Field(default=None)
    winner_to_code: Optional[str] = Field(default=None)
    winner_to_slot: Optional[int] = Field(default=None)
    loser_to_code: Optional[str] = Field(default=None)
    loser_to_slot: Optional[int] = Field(default=None)

    # Advancement
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    advanced_at: Optional[datetime] = Field(default=None)  # set once; replays are refused
    completed_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="fixtures")
