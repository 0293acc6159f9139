"""
Matchmaking-related database models.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum

from app.core.database import Base


class TicketStatus(str, Enum):
    WAITING = "waiting"
    MATCHED = "matched"
    CANCELLED = "cancelled"


class MatchmakingTicket(Base):
    """A player waiting for an opponent with the same time control"""
    __tablename__ = "matchmaking_tickets"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    time_control = Column(Integer, nullable=False)  # minutes
    time_increment = Column(Integer, nullable=False, default=0)  # seconds
    status = Column(String(20), nullable=False, default=TicketStatus.WAITING.value)
    game_id = Column(Integer, ForeignKey("games.id"))

    # Timing
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    matched_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    # Relationships
    player = relationship("Player")
    game = relationship("Game")

    # Indexes for efficient matching
    __table_args__ = (
        Index('idx_ticket_search', 'status', 'time_control', 'time_increment', 'created_at'),
        Index('idx_ticket_player', 'player_id', 'status'),
    )
