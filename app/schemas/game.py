from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from app.core.game_config import (
    MIN_TIME_CONTROL, MAX_TIME_CONTROL, DEFAULT_TIME_CONTROL, MAX_TIME_INCREMENT
)


class GameStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"


class GameCreate(BaseModel):
    creator_id: int = Field(..., description="ID of the player creating the game")
    opponent_id: Optional[int] = Field(
        None, description="Invited opponent; omit to open the game for anyone to join"
    )
    time_control: int = Field(
        DEFAULT_TIME_CONTROL,
        ge=MIN_TIME_CONTROL,
        le=MAX_TIME_CONTROL,
        description=f"Base time per side in minutes ({MIN_TIME_CONTROL} to {MAX_TIME_CONTROL})"
    )
    time_increment: int = Field(0, ge=0, le=MAX_TIME_INCREMENT, description="Seconds added after each move")


class JoinGame(BaseModel):
    player_id: int = Field(..., description="ID of the player joining the game")


class PlayerAction(BaseModel):
    player_id: int = Field(..., description="ID of the player taking the action")


class OfferResponse(BaseModel):
    player_id: int = Field(..., description="ID of the player responding")
    accept: bool


class MoveCreate(BaseModel):
    player_id: int = Field(..., description="ID of the player making the move")
    move: str = Field(..., min_length=4, max_length=5, description="Move in UCI notation, e.g. e2e4 or e7e8q")
    promotion: Optional[str] = Field(None, description="Promotion piece: q, r, b or n")
    expected_move_count: Optional[int] = Field(
        None, ge=0, description="Ply count the move was computed against"
    )

    @field_validator("move")
    @classmethod
    def normalize_move(cls, v):
        return v.strip().lower()

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if v not in ("q", "r", "b", "n"):
            raise ValueError("Promotion must be one of q, r, b, n")
        return v


class MoveResponse(BaseModel):
    id: Optional[int] = None
    game_id: int
    player_id: int
    move_number: Optional[int] = None
    san: Optional[str] = None
    uci: Optional[str] = None
    fen: str
    is_check: bool = False
    is_checkmate: bool = False
    is_capture: bool = False
    is_castling: bool = False
    is_en_passant: bool = False
    promotion_piece: Optional[str] = None
    time_spent: Optional[float] = None
    time_remaining: float
    game_status: GameStatus
    result: Optional[str] = None
    draw_reason: Optional[str] = None
    winner_id: Optional[int] = None
    is_draw: bool = False
    timeout: bool = False


class MoveRecord(BaseModel):
    id: int
    game_id: int
    player_id: int
    move_number: int
    move_san: str
    move_uci: str
    fen_before: str
    fen_after: str
    time_spent: Optional[float]
    time_remaining: float
    is_check: bool
    is_checkmate: bool
    is_capture: bool
    is_castling: bool
    is_en_passant: bool
    promotion_piece: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class GameResponse(BaseModel):
    id: int
    status: GameStatus
    white_player_id: Optional[int]
    black_player_id: Optional[int]
    time_control: int
    time_increment: int
    current_fen: str
    created_at: Optional[datetime]
    started_at: Optional[datetime]

    class Config:
        from_attributes = True


class GameState(BaseModel):
    id: int
    status: GameStatus
    result: Optional[str]
    draw_reason: Optional[str]
    white_player_id: Optional[int]
    black_player_id: Optional[int]
    players: List[int]
    current_turn: Optional[int]
    winner_id: Optional[int]
    fen: str
    move_count: int
    time_control: int
    time_increment: int
    white_time_remaining: float
    black_time_remaining: float
    white_time_left: float
    black_time_left: float
    last_move_at: Optional[datetime]
    draw_offered_by: Optional[int]
    undo_requested_by: Optional[int]
    rematch_requested_by: Optional[int]
    created_at: Optional[datetime]
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    timed_out: bool = False


class LegalMoves(BaseModel):
    game_id: int
    fen: str
    moves: List[str]
