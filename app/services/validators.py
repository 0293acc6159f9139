from typing import Optional

from app.chess.types import Color
from app.core.exceptions import (
    NotAPlayer, NotYourTurn, GameEnded, InvalidTransition, StalePosition
)
from app.models.game import Game


class GameValidator:
    """Validates moves and control actions against a game's current state."""

    def require_seat(self, game: Game, player_id: int) -> Color:
        """Return the color *player_id* plays, or raise NotAPlayer."""
        color = game.color_of(player_id)
        if color is None:
            raise NotAPlayer(f"Player {player_id} is not a player in game {game.id}")
        return color

    def require_active(self, game: Game) -> None:
        if game.status != "active":
            if game.status == "completed":
                raise GameEnded(f"Game {game.id} has already ended")
            else:
                raise InvalidTransition(f"Game {game.id} is not active")

    def validate_move(self, game: Game, player_id: int,
                      expected_move_count: Optional[int] = None) -> Color:
        """Validate that *player_id* may move now; returns the mover's color."""
        self.require_active(game)
        color = self.require_seat(game, player_id)

        side_to_move = Color(game.current_fen.split()[1])
        if color != side_to_move:
            raise NotYourTurn(f"It's not player {player_id}'s turn")

        # A move computed against an older position must not be replayed on a newer one
        if expected_move_count is not None and expected_move_count != game.move_count:
            raise StalePosition(
                f"Move was based on ply {expected_move_count}, game {game.id} is at ply {game.move_count}"
            )
        return color

    def validate_draw_offer(self, game: Game, player_id: int) -> Color:
        self.require_active(game)
        color = self.require_seat(game, player_id)
        if game.draw_offered_by is not None:
            raise InvalidTransition(f"A draw offer is already pending in game {game.id}")
        return color

    def validate_draw_response(self, game: Game, player_id: int) -> Color:
        self.require_active(game)
        color = self.require_seat(game, player_id)
        if game.draw_offered_by is None:
            raise InvalidTransition(f"No draw offer to respond to in game {game.id}")
        if game.draw_offered_by == player_id:
            raise InvalidTransition("Cannot respond to your own draw offer")
        return color

    def validate_takeback_request(self, game: Game, player_id: int) -> Color:
        self.require_active(game)
        color = self.require_seat(game, player_id)
        if game.undo_requested_by is not None:
            raise InvalidTransition(f"A takeback request is already pending in game {game.id}")
        if not any(record.player_id == player_id for record in game.moves):
            raise InvalidTransition(f"Player {player_id} has no move to take back")
        return color

    def validate_takeback_response(self, game: Game, player_id: int) -> Color:
        self.require_active(game)
        color = self.require_seat(game, player_id)
        if game.undo_requested_by is None:
            raise InvalidTransition(f"No takeback request to respond to in game {game.id}")
        if game.undo_requested_by == player_id:
            raise InvalidTransition("Cannot respond to your own takeback request")
        return color

    def validate_resign(self, game: Game, player_id: int) -> Color:
        self.require_active(game)
        return self.require_seat(game, player_id)

    def validate_rematch_request(self, game: Game, player_id: int) -> Color:
        color = self.require_seat(game, player_id)
        if game.status != "completed":
            raise InvalidTransition(f"Game {game.id} has not finished yet")
        if game.rematch_requested_by is not None:
            raise InvalidTransition(f"A rematch is already pending for game {game.id}")
        return color

    def validate_rematch_response(self, game: Game, player_id: int) -> Color:
        color = self.require_seat(game, player_id)
        if game.rematch_requested_by is None:
            raise InvalidTransition(f"No rematch request for game {game.id}")
        if game.rematch_requested_by == player_id:
            raise InvalidTransition("Cannot respond to your own rematch request")
        return color
