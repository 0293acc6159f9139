from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.core.database import Base


class Notification(Base):
    """Outbound event for the push/notify collaborator."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)  # match_found, game_started, game_ended, ...
    title = Column(String(100), nullable=False)
    message = Column(String(255), nullable=False)
    game_id = Column(Integer, ForeignKey("games.id"))
    tournament_id = Column(Integer, ForeignKey("tournaments.id"))
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
