"""
Pydantic schemas for matchmaking API.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.core.game_config import MIN_TIME_CONTROL, MAX_TIME_CONTROL, DEFAULT_TIME_CONTROL, MAX_TIME_INCREMENT


class MatchmakingRequest(BaseModel):
    """Request to join matchmaking queue"""
    player_id: int = Field(..., description="ID of the player joining the queue")
    time_control: int = Field(
        DEFAULT_TIME_CONTROL, ge=MIN_TIME_CONTROL, le=MAX_TIME_CONTROL,
        description="Base time per side in minutes"
    )
    time_increment: int = Field(0, ge=0, le=MAX_TIME_INCREMENT, description="Increment in seconds")


class CancelRequest(BaseModel):
    player_id: int = Field(..., description="ID of the player leaving the queue")


class TicketResponse(BaseModel):
    """A matchmaking ticket"""
    id: int
    player_id: int
    time_control: int
    time_increment: int
    status: str
    game_id: Optional[int]
    created_at: Optional[datetime]
    matched_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class MatchmakingResponse(BaseModel):
    """Outcome of joining the queue"""
    matched: bool
    ticket: TicketResponse
    game_id: Optional[int] = None
    opponent_id: Optional[int] = None
    message: str
