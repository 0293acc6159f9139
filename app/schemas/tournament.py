from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.core.game_config import (
    MIN_TIME_CONTROL, MAX_TIME_CONTROL, DEFAULT_TIME_CONTROL, MAX_TIME_INCREMENT,
    MIN_TOURNAMENT_PARTICIPANTS
)
from app.models.tournament import TournamentFormat


class TournamentCreate(BaseModel):
    creator_id: int = Field(..., description="ID of the organizing player")
    name: str = Field(..., min_length=1, max_length=100)
    format: TournamentFormat
    time_control: int = Field(DEFAULT_TIME_CONTROL, ge=MIN_TIME_CONTROL, le=MAX_TIME_CONTROL)
    time_increment: int = Field(0, ge=0, le=MAX_TIME_INCREMENT)
    max_participants: Optional[int] = Field(None, ge=MIN_TOURNAMENT_PARTICIPANTS)


class TournamentAction(BaseModel):
    player_id: int


class ParticipantResponse(BaseModel):
    id: int
    player_id: int
    seed: Optional[int]
    status: str
    placement: Optional[int]
    joined_at: Optional[datetime]

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    id: int
    round: int
    match_number: int
    player1_id: Optional[int]
    player2_id: Optional[int]
    game_id: Optional[int]
    status: str
    winner_id: Optional[int]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class TournamentResponse(BaseModel):
    id: int
    name: str
    creator_id: int
    format: str
    status: str
    current_round: int
    max_participants: Optional[int]
    time_control: int
    time_increment: int
    created_at: Optional[datetime]
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    participants: List[ParticipantResponse] = []

    class Config:
        from_attributes = True


class ProgressResponse(BaseModel):
    tournament_id: int
    message: str
    status: str
    current_round: int


class StandingEntry(BaseModel):
    rank: int
    player_id: int
    username: Optional[str]
    points: float
    wins: int
    draws: int
    losses: int
    rating: int
    seed: Optional[int]
    status: str
    placement: Optional[int]
