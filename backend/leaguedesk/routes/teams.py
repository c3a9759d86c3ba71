"""
Team API Routes
Teams are the engine's immutable references; only create and read here.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from leaguedesk.database import get_session
from leaguedesk.models.team import Team

router = APIRouter()


class TeamCreateRequest(BaseModel):
    name: str
    short_name: str
    division: str
    logo_url: Optional[str] = None

    @field_validator("name", "short_name", "division")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    short_name: str
    division: str
    logo_url: Optional[str] = None
    created_at: datetime


@router.get("/teams", response_model=List[TeamResponse])
def list_teams(division: Optional[str] = Query(default=None), session: Session = Depends(get_session)):
    """List teams, optionally for one division, ordered by name"""
    query = select(Team)
    if division:
        query = query.where(Team.division == division)
    return session.exec(query.order_by(Team.name, Team.id)).all()


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(team_data: TeamCreateRequest, session: Session = Depends(get_session)):
    """Create a team. Names are unique within a division."""
    existing = session.exec(
        select(Team).where(Team.division == team_data.division, Team.name == team_data.name)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Team '{team_data.name}' already exists in {team_data.division}")

    team = Team(**team_data.model_dump())
    session.add(team)
    session.commit()
    session.refresh(team)
    return team


@router.get("/teams/{team_id}", response_model=TeamResponse)
def get_team(team_id: int, session: Session = Depends(get_session)):
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team
