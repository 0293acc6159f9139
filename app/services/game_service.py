import logging
import random
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.chess.engine import GameStatus, apply_move, legal_move_list
from app.chess.notation import parse_uci
from app.chess.position import STARTING_FEN, Position, fen_repetition_key
from app.chess.types import Color, PieceType
from app.core.database import commit_or_raise
from app.core.exceptions import (
    GameNotFound, PlayerNotFound, InvalidMove, InvalidTransition
)
from app.core.game_config import base_time_seconds, is_valid_time_control
from app.models.game import Game
from app.models.move import Move
from app.models.player import Player
from app.services.clock import ClockState, account_time, has_flagged, live_remaining, to_utc
from app.services.notification_service import notification_service
from app.services.skill_calculator import skill_calculator
from app.services.validators import GameValidator

logger = logging.getLogger(__name__)

_GAME_ENDED_MESSAGES = {
    "checkmate": "The game ended by checkmate.",
    "stalemate": "The game ended in stalemate.",
    "draw": "The game has ended in a draw.",
    "timeout": "The game ended on time.",
    "resignation": "The game ended by resignation.",
}


class GameService:
    def __init__(self):
        self.validator = GameValidator()
        self.rng = random.Random()

    # -- Creation ---------------------------------------------------------

    def new_game(self, db: Session, white_id: int, black_id: Optional[int],
                 time_control: int, time_increment: int, status: str = "active",
                 now: Optional[datetime] = None) -> Game:
        """Add a game to the session without committing."""
        now = now or datetime.now(timezone.utc)
        base = base_time_seconds(time_control)
        game = Game(
            white_player_id=white_id,
            black_player_id=black_id,
            status=status,
            time_control=time_control,
            time_increment=time_increment,
            white_time_remaining=base,
            black_time_remaining=base,
            initial_fen=STARTING_FEN,
            current_fen=STARTING_FEN,
            move_count=0,
        )
        if status == "active":
            game.started_at = now
            game.last_move_at = now
        db.add(game)
        db.flush()
        return game

    def assign_colors(self, player_a: int, player_b: int):
        """Unweighted coin flip; returns (white_id, black_id)."""
        if self.rng.random() < 0.5:
            return player_a, player_b
        return player_b, player_a

    def create_game(self, db: Session, creator_id: int, opponent_id: Optional[int] = None,
                    time_control: int = 10, time_increment: int = 0) -> Game:
        """
        Create a game. With an opponent it starts immediately with random
        colors; without one it waits for somebody to join.
        """
        if not is_valid_time_control(time_control, time_increment):
            raise ValueError(f"Invalid time control {time_control}+{time_increment}")

        self._require_player(db, creator_id)
        if opponent_id is None:
            game = self.new_game(db, creator_id, None, time_control, time_increment, status="waiting")
            commit_or_raise(db, "new game")
            logger.info(f"Game {game.id} ({time_control}+{time_increment}) opened by player {creator_id}")
            return game

        if opponent_id == creator_id:
            raise InvalidTransition("Cannot start a game against yourself")
        self._require_player(db, opponent_id)

        white_id, black_id = self.assign_colors(creator_id, opponent_id)
        game = self.new_game(db, white_id, black_id, time_control, time_increment)
        self.notify_started(db, game)
        commit_or_raise(db, "new game")
        db.refresh(game)

        logger.info(f"Game {game.id} created: white {white_id} vs black {black_id}")
        return game

    def join_game(self, db: Session, game_id: int, player_id: int,
                  now: Optional[datetime] = None) -> Game:
        game = self._lock_game(db, game_id)
        self._require_player(db, player_id)

        if game.status != "waiting":
            raise InvalidTransition(f"Game {game_id} is not accepting new players")
        if game.white_player_id == player_id:
            raise InvalidTransition(f"Player {player_id} is already in game {game_id}")

        now = now or datetime.now(timezone.utc)
        white_id, black_id = self.assign_colors(game.white_player_id, player_id)
        game.white_player_id = white_id
        game.black_player_id = black_id
        game.status = "active"
        game.started_at = now
        game.last_move_at = now

        self.notify_started(db, game)
        commit_or_raise(db, f"game {game_id}")
        db.refresh(game)

        logger.info(f"Player {player_id} joined game {game_id}")
        return game

    # -- Moves ------------------------------------------------------------

    def make_move(self, db: Session, game_id: int, player_id: int, move: str,
                  promotion: Optional[str] = None, expected_move_count: Optional[int] = None,
                  now: Optional[datetime] = None) -> dict:
        """
        Validate and apply a move given in UCI form ('e2e4', 'e7e8q').

        The outcome is computed first; the game row is only changed once the
        move is known to be legal, and the change is committed as one unit.
        """
        now = to_utc(now or datetime.now(timezone.utc))
        game = self._lock_game(db, game_id)
        color = self.validator.validate_move(game, player_id, expected_move_count)

        try:
            from_sq, to_sq, promotion_type = parse_uci(move)
            if promotion is not None:
                promotion_type = PieceType(promotion.lower())
        except ValueError as e:
            raise InvalidMove(str(e))

        position = game.get_position()
        outcome = apply_move(
            position, from_sq, to_sq, promotion_type,
            side=color, history=self._position_history(game)
        )

        clock = account_time(self._clock_state(game), color, now)
        if clock.timed_out:
            game.set_remaining(color, 0.0)
            self._finish(db, game, "timeout", game.opponent_of(player_id), now)
            commit_or_raise(db, f"game {game_id}")
            logger.info(f"Player {player_id} flagged in game {game_id}")
            return self._move_response(game, player_id, None, timeout=True)

        game.set_remaining(color, clock.remaining)
        game.last_move_at = clock.state.last_move_at
        game.last_mover = color.value
        game.current_fen = outcome.position.to_fen()
        game.move_count += 1
        game.draw_offered_by = None
        game.undo_requested_by = None

        record = Move(
            game_id=game.id,
            player_id=player_id,
            move_number=game.move_count,
            move_san=outcome.san,
            move_uci=outcome.uci,
            fen_before=position.to_fen(),
            fen_after=game.current_fen,
            time_spent=clock.elapsed,
            time_remaining=clock.remaining,
            is_check=outcome.is_check,
            is_checkmate=outcome.is_checkmate,
            is_capture=outcome.is_capture,
            is_castling=outcome.is_castle,
            is_en_passant=outcome.is_en_passant,
            promotion_piece=outcome.promotion.value if outcome.promotion else None,
        )
        db.add(record)

        if outcome.status == GameStatus.CHECKMATE:
            self._finish(db, game, "checkmate", player_id, now)
        elif outcome.status == GameStatus.STALEMATE:
            self._finish(db, game, "stalemate", None, now)
        elif outcome.is_draw:
            self._finish(db, game, "draw", None, now, draw_reason=outcome.status.value)

        commit_or_raise(db, f"game {game_id}")
        db.refresh(record)

        logger.info(f"Game {game_id}: {color.label} played {outcome.san} (ply {game.move_count})")
        return self._move_response(game, player_id, record)

    def check_timeout(self, db: Session, game_id: int, now: Optional[datetime] = None) -> dict:
        """
        Out-of-band flag check for a side that never moves. Only the first
        observation of an expired clock ends the game; later calls are no-ops.
        """
        now = to_utc(now or datetime.now(timezone.utc))
        game = self._lock_game(db, game_id)

        timed_out = False
        if game.status == "active":
            side_to_move = Color(game.current_fen.split()[1])
            if has_flagged(self._clock_state(game), side_to_move, now):
                game.set_remaining(side_to_move, 0.0)
                self._finish(db, game, "timeout", game.player_for(side_to_move.opposite), now)
                commit_or_raise(db, f"game {game_id}")
                timed_out = True
                logger.info(f"Game {game_id}: {side_to_move.label} lost on time (poll)")

        state = self.get_game_state(db, game_id, now)
        state["timed_out"] = timed_out
        return state

    # -- Control actions --------------------------------------------------

    def resign(self, db: Session, game_id: int, player_id: int,
               now: Optional[datetime] = None) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_resign(game, player_id)

        self._finish(db, game, "resignation", game.opponent_of(player_id),
                     now or datetime.now(timezone.utc))
        commit_or_raise(db, f"game {game_id}")

        logger.info(f"Player {player_id} resigned game {game_id}")
        return game

    def offer_draw(self, db: Session, game_id: int, player_id: int) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_draw_offer(game, player_id)

        game.draw_offered_by = player_id
        notification_service.notify(
            db, game.opponent_of(player_id), "draw_offered",
            "Draw Offered", "Your opponent has offered a draw.", game_id=game.id
        )
        commit_or_raise(db, f"game {game_id}")

        logger.info(f"Player {player_id} offered a draw in game {game_id}")
        return game

    def respond_draw(self, db: Session, game_id: int, player_id: int, accept: bool,
                     now: Optional[datetime] = None) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_draw_response(game, player_id)

        if accept:
            self._finish(db, game, "draw", None, now or datetime.now(timezone.utc),
                         draw_reason="agreement")
        else:
            game.draw_offered_by = None
        commit_or_raise(db, f"game {game_id}")

        logger.info(f"Player {player_id} {'accepted' if accept else 'declined'} a draw in game {game_id}")
        return game

    def request_takeback(self, db: Session, game_id: int, player_id: int) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_takeback_request(game, player_id)

        game.undo_requested_by = player_id
        notification_service.notify(
            db, game.opponent_of(player_id), "undo_requested",
            "Undo Requested", "Your opponent has requested to undo the last move.", game_id=game.id
        )
        commit_or_raise(db, f"game {game_id}")

        logger.info(f"Player {player_id} requested a takeback in game {game_id}")
        return game

    def respond_takeback(self, db: Session, game_id: int, player_id: int, accept: bool,
                         now: Optional[datetime] = None) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_takeback_response(game, player_id)

        requester = game.undo_requested_by
        game.undo_requested_by = None
        if accept:
            self._revert_last_move_of(db, game, requester, now or datetime.now(timezone.utc))
        commit_or_raise(db, f"game {game_id}")

        logger.info(f"Player {player_id} {'accepted' if accept else 'declined'} a takeback in game {game_id}")
        return game

    def request_rematch(self, db: Session, game_id: int, player_id: int) -> Game:
        game = self._lock_game(db, game_id)
        self.validator.validate_rematch_request(game, player_id)

        game.rematch_requested_by = player_id
        notification_service.notify(
            db, game.opponent_of(player_id), "rematch_requested",
            "Rematch Request", "Your opponent wants a rematch!", game_id=game.id
        )
        commit_or_raise(db, f"game {game_id}")
        return game

    def respond_rematch(self, db: Session, game_id: int, player_id: int, accept: bool) -> Optional[Game]:
        """Accepting starts a new game with colors reversed."""
        game = self._lock_game(db, game_id)
        self.validator.validate_rematch_response(game, player_id)

        game.rematch_requested_by = None
        rematch = None
        if accept:
            rematch = self.new_game(db, game.black_player_id, game.white_player_id,
                                    game.time_control, game.time_increment)
            self.notify_started(db, rematch)
        commit_or_raise(db, f"game {game_id}")

        if rematch is not None:
            logger.info(f"Rematch of game {game_id} started as game {rematch.id}")
        return rematch

    # -- Queries ----------------------------------------------------------

    def get_game(self, db: Session, game_id: int) -> Game:
        game = db.query(Game).filter(Game.id == game_id).first()
        if not game:
            raise GameNotFound(f"Game {game_id} not found")
        return game

    def get_game_state(self, db: Session, game_id: int, now: Optional[datetime] = None) -> dict:
        """
        Stored fields plus the clocks as they read at *now*: the side to move
        has the time since the last move deducted, without it being charged.
        """
        game = self.get_game(db, game_id)
        time_left = {color: game.get_remaining(color) for color in Color}
        if game.status == "active":
            side_to_move = Color(game.current_fen.split()[1])
            time_left[side_to_move] = live_remaining(
                self._clock_state(game), side_to_move, now or datetime.now(timezone.utc)
            )
        return {
            "id": game.id,
            "status": game.status,
            "result": game.result,
            "draw_reason": game.draw_reason,
            "white_player_id": game.white_player_id,
            "black_player_id": game.black_player_id,
            "players": [p for p in game.players if p is not None],
            "current_turn": game.current_turn,
            "winner_id": game.winner_id,
            "fen": game.current_fen,
            "move_count": game.move_count,
            "time_control": game.time_control,
            "time_increment": game.time_increment,
            "white_time_remaining": game.white_time_remaining,
            "black_time_remaining": game.black_time_remaining,
            "white_time_left": time_left[Color.WHITE],
            "black_time_left": time_left[Color.BLACK],
            "last_move_at": game.last_move_at,
            "draw_offered_by": game.draw_offered_by,
            "undo_requested_by": game.undo_requested_by,
            "rematch_requested_by": game.rematch_requested_by,
            "created_at": game.created_at,
            "started_at": game.started_at,
            "ended_at": game.ended_at,
        }

    def get_moves(self, db: Session, game_id: int) -> List[Move]:
        self.get_game(db, game_id)
        return db.query(Move).filter(Move.game_id == game_id).order_by(Move.move_number).all()

    def get_legal_moves(self, db: Session, game_id: int) -> List[str]:
        game = self.get_game(db, game_id)
        if game.status != "active":
            return []
        return legal_move_list(game.get_position())

    # -- Internals --------------------------------------------------------

    def _lock_game(self, db: Session, game_id: int) -> Game:
        game = db.query(Game).filter(
            Game.id == game_id
        ).with_for_update().populate_existing().first()

        if not game:
            raise GameNotFound(f"Game {game_id} not found")
        return game

    def _require_player(self, db: Session, player_id: int) -> Player:
        player = db.query(Player).filter(Player.id == player_id).first()
        if not player:
            raise PlayerNotFound(f"Player with ID {player_id} not found")
        return player

    def _clock_state(self, game: Game) -> ClockState:
        return ClockState(
            white_remaining=game.white_time_remaining,
            black_remaining=game.black_time_remaining,
            increment=float(game.time_increment),
            last_move_at=game.last_move_at,
            last_mover=Color(game.last_mover) if game.last_mover else None,
        )

    def _position_history(self, game: Game) -> List[str]:
        """Repetition keys of every position so far, oldest first."""
        keys = [fen_repetition_key(game.initial_fen)]
        keys.extend(fen_repetition_key(record.fen_after) for record in game.moves)
        return keys

    def _revert_last_move_of(self, db: Session, game: Game, player_id: int, now: datetime) -> None:
        """Return to the position before *player_id*'s most recent move."""
        records = list(game.moves)
        cut = max(idx for idx, record in enumerate(records) if record.player_id == player_id)

        kept, removed = records[:cut], records[cut:]
        for record in removed:
            game.moves.remove(record)

        game.current_fen = kept[-1].fen_after if kept else game.initial_fen
        game.move_count = len(kept)

        base = base_time_seconds(game.time_control)
        for color in Color:
            seat = game.player_for(color)
            times = [r.time_remaining for r in kept if r.player_id == seat]
            game.set_remaining(color, times[-1] if times else base)
        game.last_move_at = now
        game.last_mover = None

        logger.info(f"Game {game.id}: took back {len(removed)} ply, now at ply {game.move_count}")

    def _finish(self, db: Session, game: Game, result: str, winner_id: Optional[int],
                now: datetime, draw_reason: Optional[str] = None) -> None:
        game.status = "completed"
        game.result = result
        game.winner_id = winner_id
        game.draw_reason = draw_reason
        game.ended_at = now
        game.draw_offered_by = None
        game.undo_requested_by = None

        skill_calculator.update_player_ratings_after_game(db, game)

        message = _GAME_ENDED_MESSAGES.get(result, "The game has ended.")
        for seat in game.players:
            if winner_id is None:
                title = "Game Drawn"
            elif seat == winner_id:
                title = "Victory!"
            else:
                title = "Defeat"
            notification_service.notify(db, seat, "game_ended", title, message, game_id=game.id)

        # Tournament bookkeeping shares this transaction
        from app.services.tournament_service import tournament_service
        tournament_service.on_game_completed(db, game)

        logger.info(f"Game {game.id} completed: {result}, winner {winner_id}")

    def notify_started(self, db: Session, game: Game) -> None:
        for color in Color:
            notification_service.notify(
                db, game.player_for(color), "game_started", "Game Started",
                f"Your game has started. You are playing as {color.label.capitalize()}.",
                game_id=game.id
            )

    def _move_response(self, game: Game, player_id: int, record: Optional[Move],
                       timeout: bool = False) -> dict:
        return {
            "id": record.id if record else None,
            "game_id": game.id,
            "player_id": player_id,
            "move_number": record.move_number if record else None,
            "san": record.move_san if record else None,
            "uci": record.move_uci if record else None,
            "fen": game.current_fen,
            "is_check": record.is_check if record else False,
            "is_checkmate": record.is_checkmate if record else False,
            "is_capture": record.is_capture if record else False,
            "is_castling": record.is_castling if record else False,
            "is_en_passant": record.is_en_passant if record else False,
            "promotion_piece": record.promotion_piece if record else None,
            "time_spent": record.time_spent if record else None,
            "time_remaining": record.time_remaining if record else 0.0,
            "game_status": game.status,
            "result": game.result,
            "draw_reason": game.draw_reason,
            "winner_id": game.winner_id,
            "is_draw": game.status == "completed" and game.winner_id is None,
            "timeout": timeout,
        }


game_service_obj = GameService()
