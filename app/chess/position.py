"""
Immutable chess positions and FEN serialization.
"""
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from app.chess.types import (
    CastlingRights, Color, Move, MoveFlag, Piece, PieceType,
    file_of, make_square, parse_square, rank_of, square_name
)

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

Board = Tuple[Optional[Piece], ...]

_CASTLING_LETTERS = (
    ("K", CastlingRights.WHITE_KINGSIDE),
    ("Q", CastlingRights.WHITE_QUEENSIDE),
    ("k", CastlingRights.BLACK_KINGSIDE),
    ("q", CastlingRights.BLACK_QUEENSIDE),
)

# Moving from or capturing on one of these squares drops the matching right.
_ROOK_CORNERS = {
    make_square(0, 0): CastlingRights.WHITE_QUEENSIDE,
    make_square(7, 0): CastlingRights.WHITE_KINGSIDE,
    make_square(0, 7): CastlingRights.BLACK_QUEENSIDE,
    make_square(7, 7): CastlingRights.BLACK_KINGSIDE,
}


@dataclass(frozen=True)
class Position:
    """
    Complete board state. Never mutated: :meth:`play` returns a new Position.
    """
    board: Board
    side_to_move: Color = Color.WHITE
    castling: CastlingRights = CastlingRights.ALL
    en_passant: Optional[int] = None
    halfmove_clock: int = 0
    fullmove_number: int = 1

    def __post_init__(self):
        if len(self.board) != 64:
            raise ValueError("Board must have exactly 64 squares")
        for color in Color:
            kings = sum(
                1 for piece in self.board
                if piece is not None and piece.color == color and piece.piece_type == PieceType.KING
            )
            if kings != 1:
                raise ValueError(f"Position must have exactly one {color.label} king, found {kings}")

    @classmethod
    def initial(cls) -> "Position":
        return cls.from_fen(STARTING_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        """Parse a FEN string. Raises ValueError on malformed input."""
        parts = fen.split()
        if not (4 <= len(parts) <= 6):
            raise ValueError(f"Invalid FEN (need 4-6 fields): {fen!r}")

        placement, side_part, castling_part, ep_part = parts[:4]

        ranks = placement.split("/")
        if len(ranks) != 8:
            raise ValueError(f"Invalid FEN board (must contain 8 ranks): {fen!r}")
        squares = [None] * 64
        for rank_idx, rank_text in enumerate(ranks):
            rank = 7 - rank_idx
            file_idx = 0
            for ch in rank_text:
                if ch.isdigit():
                    file_idx += int(ch)
                else:
                    if file_idx >= 8:
                        raise ValueError(f"Invalid FEN rank width: {fen!r}")
                    squares[make_square(file_idx, rank)] = Piece.from_char(ch)
                    file_idx += 1
            if file_idx != 8:
                raise ValueError(f"Invalid FEN rank width: {fen!r}")

        if side_part not in ("w", "b"):
            raise ValueError(f"Invalid FEN side-to-move field: {side_part!r}")
        side = Color(side_part)

        castling = CastlingRights.NONE
        if castling_part != "-":
            letters = dict(_CASTLING_LETTERS)
            for ch in castling_part:
                if ch not in letters:
                    raise ValueError(f"Invalid FEN castling field: {castling_part!r}")
                castling |= letters[ch]

        en_passant = None
        if ep_part != "-":
            en_passant = parse_square(ep_part)
            expected_rank = 5 if side == Color.WHITE else 2
            if rank_of(en_passant) != expected_rank:
                raise ValueError(f"Invalid FEN en-passant square: {ep_part!r}")

        try:
            halfmove = int(parts[4]) if len(parts) > 4 else 0
            fullmove = int(parts[5]) if len(parts) > 5 else 1
        except ValueError:
            raise ValueError(f"Invalid FEN move counters: {fen!r}")
        if halfmove < 0 or fullmove < 1:
            raise ValueError(f"Invalid FEN move counters: {fen!r}")

        return cls(tuple(squares), side, castling, en_passant, halfmove, fullmove)

    def to_fen(self) -> str:
        rows = []
        for rank in range(7, -1, -1):
            empty = 0
            row = ""
            for file_idx in range(8):
                piece = self.board[make_square(file_idx, rank)]
                if piece is None:
                    empty += 1
                    continue
                if empty:
                    row += str(empty)
                    empty = 0
                row += str(piece)
            if empty:
                row += str(empty)
            rows.append(row)

        castling = "".join(ch for ch, right in _CASTLING_LETTERS if self.castling & right) or "-"
        ep = square_name(self.en_passant) if self.en_passant is not None else "-"
        return (
            f"{'/'.join(rows)} {self.side_to_move.value} {castling} {ep} "
            f"{self.halfmove_clock} {self.fullmove_number}"
        )

    def repetition_key(self) -> str:
        """Placement, side to move, castling rights and en-passant target."""
        return " ".join(self.to_fen().split()[:4])

    def piece_at(self, sq: int) -> Optional[Piece]:
        return self.board[sq]

    def king_square(self, color: Color) -> int:
        for sq, piece in enumerate(self.board):
            if piece is not None and piece.color == color and piece.piece_type == PieceType.KING:
                return sq
        raise ValueError(f"No {color.label} king on the board")

    def play(self, move: Move) -> "Position":
        """
        Return the position after *move* without checking legality.

        Callers must only pass moves produced by the move generator.
        """
        squares = list(self.board)
        piece = squares[move.from_sq]
        if piece is None:
            raise ValueError(f"No piece on {square_name(move.from_sq)}")

        captured = squares[move.to_sq]
        squares[move.from_sq] = None

        if move.flag == MoveFlag.EN_PASSANT:
            capture_sq = make_square(file_of(move.to_sq), rank_of(move.from_sq))
            captured = squares[capture_sq]
            squares[capture_sq] = None

        if move.promotion is not None:
            squares[move.to_sq] = Piece(piece.color, move.promotion)
        else:
            squares[move.to_sq] = piece

        if move.is_castle:
            rank = rank_of(move.from_sq)
            if move.flag == MoveFlag.CASTLE_KINGSIDE:
                rook_from, rook_to = make_square(7, rank), make_square(5, rank)
            else:
                rook_from, rook_to = make_square(0, rank), make_square(3, rank)
            squares[rook_to] = squares[rook_from]
            squares[rook_from] = None

        castling = self.castling
        if piece.piece_type == PieceType.KING:
            castling &= ~(CastlingRights.WHITE_BOTH if piece.color == Color.WHITE else CastlingRights.BLACK_BOTH)
        for sq in (move.from_sq, move.to_sq):
            if sq in _ROOK_CORNERS:
                castling &= ~_ROOK_CORNERS[sq]

        en_passant = None
        if move.flag == MoveFlag.DOUBLE_PAWN:
            target = make_square(file_of(move.from_sq), (rank_of(move.from_sq) + rank_of(move.to_sq)) // 2)
            if self._enemy_pawn_beside(squares, move.to_sq, piece.color):
                en_passant = target

        if piece.piece_type == PieceType.PAWN or captured is not None:
            halfmove = 0
        else:
            halfmove = self.halfmove_clock + 1

        fullmove = self.fullmove_number + (1 if self.side_to_move == Color.BLACK else 0)

        return replace(
            self,
            board=tuple(squares),
            side_to_move=self.side_to_move.opposite,
            castling=CastlingRights(castling),
            en_passant=en_passant,
            halfmove_clock=halfmove,
            fullmove_number=fullmove,
        )

    @staticmethod
    def _enemy_pawn_beside(squares, sq: int, color: Color) -> bool:
        enemy_pawn = Piece(color.opposite, PieceType.PAWN)
        file_idx = file_of(sq)
        for df in (-1, 1):
            if 0 <= file_idx + df < 8 and squares[sq + df] == enemy_pawn:
                return True
        return False


def fen_repetition_key(fen: str) -> str:
    """Repetition key straight from FEN text, without building a Position."""
    return " ".join(fen.split()[:4])
