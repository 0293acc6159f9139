"""
Elo rating updates for completed games.
"""
import math
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.game import Game
from app.models.player import Player

logger = logging.getLogger(__name__)


class SkillCalculator:
    """Elo calculator shared by casual and tournament games"""

    def __init__(self, k_factor: int = None):
        self.k_factor = k_factor or settings.ELO_K_FACTOR

    def calculate_rating_change(
        self,
        white_rating: int,
        black_rating: int,
        white_score: float
    ) -> Tuple[int, int]:
        """
        Calculate new ratings after a game.
        white_score is 1.0 for a white win, 0.0 for a black win, 0.5 for a draw.
        Returns (new_white_rating, new_black_rating)
        """
        white_expected = self._expected_score(white_rating, black_rating)
        black_expected = self._expected_score(black_rating, white_rating)
        black_score = 1.0 - white_score

        new_white = int(round(white_rating + self.k_factor * (white_score - white_expected)))
        new_black = int(round(black_rating + self.k_factor * (black_score - black_expected)))
        return new_white, new_black

    def _expected_score(self, rating_a: int, rating_b: int) -> float:
        """Calculate expected score for player A against player B"""
        return 1.0 / (1.0 + math.pow(10, (rating_b - rating_a) / 400.0))

    def update_player_ratings_after_game(self, db: Session, game: Game) -> Optional[Tuple[int, int]]:
        """
        Update both players' ratings for a completed game.
        Runs inside the caller's transaction; the caller commits.
        """
        if game.status != "completed":
            logger.warning(f"Game {game.id} is not completed, ratings unchanged")
            return None

        white = db.query(Player).filter(Player.id == game.white_player_id).first()
        black = db.query(Player).filter(Player.id == game.black_player_id).first()
        if not white or not black:
            logger.warning(f"Game {game.id} is missing a player record, ratings unchanged")
            return None

        if game.winner_id is None:
            white_score = 0.5
        elif game.winner_id == white.id:
            white_score = 1.0
        else:
            white_score = 0.0

        old_white, old_black = white.rating, black.rating
        white.rating, black.rating = self.calculate_rating_change(old_white, old_black, white_score)

        now = datetime.now(timezone.utc)
        for player in (white, black):
            player.games_played += 1
            player.last_game_at = now

        logger.info(
            f"Ratings updated for game {game.id}: "
            f"white {old_white} -> {white.rating}, black {old_black} -> {black.rating}"
        )
        return white.rating, black.rating


# Global calculator instance
skill_calculator = SkillCalculator()
