from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from app.core.config import settings
from app.core.database import Base


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Elo rating, updated when a rated game completes
    rating = Column(Integer, default=settings.DEFAULT_RATING, nullable=False, index=True)
    games_played = Column(Integer, default=0, nullable=False)
    last_game_at = Column(DateTime(timezone=True))
