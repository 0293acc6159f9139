"""
Tournament-related database models.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    ROUND_ROBIN = "round_robin"
    SWISS = "swiss"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class ParticipantStatus(str, Enum):
    ACTIVE = "active"
    ELIMINATED = "eliminated"
    COMPLETED = "completed"


class MatchStatus(str, Enum):
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    creator_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    format = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=TournamentStatus.UPCOMING.value)
    current_round = Column(Integer, nullable=False, default=0)
    max_participants = Column(Integer)

    # Applied to every generated game
    time_control = Column(Integer, nullable=False, default=10)  # minutes
    time_increment = Column(Integer, nullable=False, default=0)  # seconds

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))

    participants = relationship("TournamentParticipant", back_populates="tournament",
                                order_by="TournamentParticipant.id")
    matches = relationship("TournamentMatch", back_populates="tournament",
                           order_by="TournamentMatch.id")

    __mapper_args__ = {"version_id_col": version}


class TournamentParticipant(Base):
    __tablename__ = "tournament_participants"

    id = Column(Integer, primary_key=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    seed = Column(Integer)
    status = Column(String(20), nullable=False, default=ParticipantStatus.ACTIVE.value)
    placement = Column(Integer)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    tournament = relationship("Tournament", back_populates="participants")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint('tournament_id', 'player_id', name='unique_tournament_player'),
    )


class TournamentMatch(Base):
    __tablename__ = "tournament_matches"

    id = Column(Integer, primary_key=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    round = Column(Integer, nullable=False)
    match_number = Column(Integer, nullable=False)
    # Either side may be empty while waiting on an earlier round
    player1_id = Column(Integer, ForeignKey("players.id"))
    player2_id = Column(Integer, ForeignKey("players.id"))
    game_id = Column(Integer, ForeignKey("games.id"), index=True)
    status = Column(String(20), nullable=False, default=MatchStatus.READY.value)
    winner_id = Column(Integer, ForeignKey("players.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

    tournament = relationship("Tournament", back_populates="matches")

    __table_args__ = (
        UniqueConstraint('tournament_id', 'round', 'match_number', name='unique_round_match'),
    )

    @property
    def players(self):
        return [p for p in (self.player1_id, self.player2_id) if p is not None]
