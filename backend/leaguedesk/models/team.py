from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Team(SQLModel, table=True):
    __table_args__ = (
        # team names are unique within a division
        SAUniqueConstraint("division", "name", name="uq_division_team_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    short_name: str
    logo_url: Optional[str] = Field(default=None)
    division: str = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
