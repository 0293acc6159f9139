import logging
from typing import List

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.database import commit_or_raise
from app.core.exceptions import PlayerNotFound
from app.models.game import Game
from app.models.move import Move
from app.models.player import Player

logger = logging.getLogger(__name__)


class PlayerService:

    def create_player(self, db: Session, username: str) -> Player:
        """Create a new player."""
        # Check if username already exists
        existing = db.query(Player).filter(Player.username == username).first()
        if existing:
            return existing  # Return existing player instead of error

        player = Player(username=username)
        db.add(player)
        commit_or_raise(db, f"player '{username}'")
        db.refresh(player)

        logger.info(f"Created player {player.id} with username '{username}'")
        return player

    def get_player(self, db: Session, player_id: int) -> Player:
        player = db.query(Player).filter(Player.id == player_id).first()
        if not player:
            raise PlayerNotFound(f"Player {player_id} not found")
        return player

    def get_player_stats(self, db: Session, player_id: int) -> dict:
        """Get win/loss/draw statistics for a player."""
        player = self.get_player(db, player_id)

        completed = db.query(Game).filter(
            Game.status == "completed",
            or_(Game.white_player_id == player_id, Game.black_player_id == player_id)
        )
        total_games = completed.count()
        wins = completed.filter(Game.winner_id == player_id).count()
        draws = completed.filter(Game.winner_id.is_(None)).count()
        losses = total_games - wins - draws

        win_rate = (wins / total_games * 100) if total_games > 0 else 0.0

        total_moves = db.query(func.count(Move.id)).filter(
            Move.player_id == player_id
        ).scalar() or 0

        return {
            "player_id": player_id,
            "username": player.username,
            "rating": player.rating,
            "total_games": total_games,
            "wins": wins,
            "losses": losses,
            "draws": draws,
            "win_rate": round(win_rate, 2),
            "total_moves": total_moves,
        }

    def get_leaderboard(self, db: Session, limit: int = 10) -> List[dict]:
        """Top players by rating; players who never finished a game are left out."""
        results = db.query(Player).filter(
            Player.games_played > 0
        ).order_by(
            Player.rating.desc(), Player.games_played.desc(), Player.id
        ).limit(limit).all()

        return [
            {
                "rank": rank,
                "player_id": player.id,
                "username": player.username,
                "rating": player.rating,
                "games_played": player.games_played,
            }
            for rank, player in enumerate(results, 1)
        ]


player_service_obj = PlayerService()
