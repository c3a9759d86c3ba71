from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from leaguedesk.models.fixture import Fixture


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    division: str
    phase: str = Field(default="round-robin")  # "round-robin" | "knockout" | "completed"

    # Set when the league phase is concluded
    qualifier_count: Optional[int] = Field(default=None)
    third_place_match: bool = Field(default=False)
    bracket_size: Optional[int] = Field(default=None)
    knockout_started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    fixtures: List["Fixture"] = Relationship(back_populates="tournament")
