from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.chess.position import STARTING_FEN, Position
from app.chess.types import Color
from app.core.database import Base


class Game(Base):
    """A single game session between two seated players."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String(20), nullable=False, default="waiting")
    result = Column(String(20))  # white_won, black_won, draw, timeout, resignation, stalemate, checkmate
    draw_reason = Column(String(30))
    winner_id = Column(Integer, ForeignKey("players.id"))

    white_player_id = Column(Integer, ForeignKey("players.id"), index=True)
    black_player_id = Column(Integer, ForeignKey("players.id"), index=True)  # empty while an open challenge waits

    # Base time in minutes, increment in seconds
    time_control = Column(Integer, nullable=False, default=10)
    time_increment = Column(Integer, nullable=False, default=0)
    white_time_remaining = Column(Float, nullable=False)
    black_time_remaining = Column(Float, nullable=False)
    last_move_at = Column(DateTime(timezone=True))
    last_mover = Column(String(1))  # side whose clock was charged last

    initial_fen = Column(String(100), nullable=False, default=STARTING_FEN)
    current_fen = Column(String(100), nullable=False, default=STARTING_FEN)
    move_count = Column(Integer, nullable=False, default=0)

    draw_offered_by = Column(Integer, ForeignKey("players.id"))
    undo_requested_by = Column(Integer, ForeignKey("players.id"))
    rematch_requested_by = Column(Integer, ForeignKey("players.id"))

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))

    moves = relationship("Move", back_populates="game", order_by="Move.move_number",
                         cascade="all, delete-orphan")
    white_player = relationship("Player", foreign_keys=[white_player_id])
    black_player = relationship("Player", foreign_keys=[black_player_id])
    winner = relationship("Player", foreign_keys=[winner_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('idx_games_status_last_move', 'status', 'last_move_at'),
    )

    @property
    def players(self):
        return [self.white_player_id, self.black_player_id]

    def get_position(self) -> Position:
        return Position.from_fen(self.current_fen)

    def color_of(self, player_id: int):
        """The color *player_id* plays, or None if not seated in this game."""
        if player_id == self.white_player_id:
            return Color.WHITE
        if player_id == self.black_player_id:
            return Color.BLACK
        return None

    def player_for(self, color: Color) -> int:
        return self.white_player_id if color == Color.WHITE else self.black_player_id

    def opponent_of(self, player_id: int) -> int:
        return self.black_player_id if player_id == self.white_player_id else self.white_player_id

    def get_remaining(self, color: Color) -> float:
        return self.white_time_remaining if color == Color.WHITE else self.black_time_remaining

    def set_remaining(self, color: Color, seconds: float) -> None:
        if color == Color.WHITE:
            self.white_time_remaining = seconds
        else:
            self.black_time_remaining = seconds

    @property
    def current_turn(self):
        """Player id whose move it is while the game is active."""
        if self.status != "active":
            return None
        return self.player_for(Color(self.current_fen.split()[1]))
