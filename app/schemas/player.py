from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PlayerCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50, description="Unique username")


class PlayerResponse(BaseModel):
    id: int
    username: str
    rating: int
    games_played: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PlayerStats(BaseModel):
    player_id: int
    username: str
    rating: int
    total_games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    total_moves: int


class LeaderboardEntry(BaseModel):
    rank: int
    player_id: int
    username: str
    rating: int
    games_played: int


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    game_id: Optional[int]
    tournament_id: Optional[int]
    is_read: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
