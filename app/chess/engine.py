"""
Move validation and game-termination detection.

The engine is a pure function of (position, candidate move, position history):
it never mutates its inputs and returns the resulting Position together with
the derived flags and the game status it produces.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from app.chess.movegen import has_legal_move, is_in_check, legal_moves
from app.chess.notation import move_to_san
from app.chess.position import Position
from app.chess.types import Color, Move, MoveFlag, PieceType, square_color, square_name
from app.core.exceptions import InvalidMove
from app.core.game_config import FIFTY_MOVE_HALFMOVES, REPETITION_DRAW_COUNT

logger = logging.getLogger(__name__)


class GameStatus(str, Enum):
    ONGOING = "ongoing"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    THREEFOLD_REPETITION = "threefold_repetition"
    FIFTY_MOVE_RULE = "fifty_move_rule"


DRAW_STATUSES = (
    GameStatus.STALEMATE,
    GameStatus.INSUFFICIENT_MATERIAL,
    GameStatus.THREEFOLD_REPETITION,
    GameStatus.FIFTY_MOVE_RULE,
)


@dataclass(frozen=True)
class MoveOutcome:
    move: Move
    san: str
    position: Position
    is_capture: bool
    is_check: bool
    status: GameStatus

    @property
    def uci(self) -> str:
        return self.move.uci()

    @property
    def is_castle(self) -> bool:
        return self.move.is_castle

    @property
    def is_en_passant(self) -> bool:
        return self.move.flag == MoveFlag.EN_PASSANT

    @property
    def promotion(self) -> Optional[PieceType]:
        return self.move.promotion

    @property
    def is_checkmate(self) -> bool:
        return self.status == GameStatus.CHECKMATE

    @property
    def is_stalemate(self) -> bool:
        return self.status == GameStatus.STALEMATE

    @property
    def is_draw(self) -> bool:
        return self.status in DRAW_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status != GameStatus.ONGOING


def resolve_move(position: Position, from_sq: int, to_sq: int,
                 promotion: Optional[PieceType] = None) -> Move:
    """
    Find the legal move matching the request, or raise InvalidMove.

    Promotion is mandatory for a pawn reaching the last rank and defaults to a queen.
    """
    piece = position.board[from_sq]
    if piece is None:
        raise InvalidMove(f"No piece on {square_name(from_sq)}")
    if piece.color != position.side_to_move:
        raise InvalidMove(f"Piece on {square_name(from_sq)} does not belong to {position.side_to_move.label}")

    candidates = [m for m in legal_moves(position) if m.from_sq == from_sq and m.to_sq == to_sq]
    if not candidates:
        raise InvalidMove(f"Illegal move {square_name(from_sq)}{square_name(to_sq)}")

    if candidates[0].flag != MoveFlag.PROMOTION:
        if promotion is not None:
            raise InvalidMove(f"Move {square_name(from_sq)}{square_name(to_sq)} is not a promotion")
        return candidates[0]

    wanted = promotion or PieceType.QUEEN
    for move in candidates:
        if move.promotion == wanted:
            return move
    raise InvalidMove(f"Cannot promote to {wanted.name.lower()}")


def apply_move(position: Position, from_sq: int, to_sq: int,
               promotion: Optional[PieceType] = None,
               side: Optional[Color] = None,
               history: Iterable[str] = ()) -> MoveOutcome:
    """
    Validate and play a move.

    ``history`` holds the repetition keys of every earlier position of the game
    (including the current one); it is only read.
    """
    if side is not None and side != position.side_to_move:
        raise InvalidMove(f"It is {position.side_to_move.label}'s turn, not {side.label}'s")

    move = resolve_move(position, from_sq, to_sq, promotion)
    is_capture = position.board[to_sq] is not None or move.flag == MoveFlag.EN_PASSANT
    san = move_to_san(position, move)
    after = position.play(move)
    status = evaluate_status(after, history)

    return MoveOutcome(
        move=move,
        san=san,
        position=after,
        is_capture=is_capture,
        is_check=is_in_check(after, after.side_to_move),
        status=status,
    )


def evaluate_status(position: Position, history: Iterable[str] = ()) -> GameStatus:
    """Terminal detection for the side to move in *position*."""
    if not has_legal_move(position):
        if is_in_check(position, position.side_to_move):
            return GameStatus.CHECKMATE
        return GameStatus.STALEMATE
    if is_insufficient_material(position):
        return GameStatus.INSUFFICIENT_MATERIAL
    if repetition_count(position, history) >= REPETITION_DRAW_COUNT:
        return GameStatus.THREEFOLD_REPETITION
    if position.halfmove_clock >= FIFTY_MOVE_HALFMOVES:
        return GameStatus.FIFTY_MOVE_RULE
    return GameStatus.ONGOING


def repetition_count(position: Position, history: Iterable[str]) -> int:
    """Occurrences of *position*, counting itself, across the game history."""
    key = position.repetition_key()
    return 1 + sum(1 for earlier in history if earlier == key)


def is_insufficient_material(position: Position) -> bool:
    """K v K, K+minor v K, or only same-colored bishops besides the kings."""
    others: List[tuple] = [
        (sq, piece) for sq, piece in enumerate(position.board)
        if piece is not None and piece.piece_type != PieceType.KING
    ]
    if not others:
        return True
    if len(others) == 1:
        return others[0][1].piece_type in (PieceType.KNIGHT, PieceType.BISHOP)
    if all(piece.piece_type == PieceType.BISHOP for _, piece in others):
        return len({square_color(sq) for sq, _ in others}) == 1
    return False


def legal_move_list(position: Position) -> List[str]:
    """UCI strings for every legal move, sorted."""
    return sorted(m.uci() for m in legal_moves(position))
