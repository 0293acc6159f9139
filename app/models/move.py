from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Move(Base):
    """Append-only record of one applied half-move."""
    __tablename__ = "moves"

    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    move_number = Column(Integer, nullable=False)
    move_san = Column(String(10), nullable=False)
    move_uci = Column(String(5), nullable=False)
    fen_before = Column(String(100), nullable=False)
    fen_after = Column(String(100), nullable=False)

    # Seconds
    time_spent = Column(Float, nullable=False, default=0.0)
    time_remaining = Column(Float, nullable=False)

    is_check = Column(Boolean, nullable=False, default=False)
    is_checkmate = Column(Boolean, nullable=False, default=False)
    is_capture = Column(Boolean, nullable=False, default=False)
    is_castling = Column(Boolean, nullable=False, default=False)
    is_en_passant = Column(Boolean, nullable=False, default=False)
    promotion_piece = Column(String(1))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    game = relationship("Game", back_populates="moves")
    player = relationship("Player")

    # Constraints
    __table_args__ = (
        UniqueConstraint('game_id', 'move_number', name='unique_game_move_number'),
        CheckConstraint('move_number >= 1', name='valid_move_number'),
    )
