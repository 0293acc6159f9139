"""
Basic chess value types: colors, pieces, squares and moves.

Squares are integers 0..63 with a1 = 0, h1 = 7, a8 = 56, h8 = 63.
"""
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Optional

FILES = "abcdefgh"
RANKS = "12345678"


class Color(str, Enum):
    WHITE = "w"
    BLACK = "b"

    @property
    def opposite(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE

    @property
    def label(self) -> str:
        return "white" if self == Color.WHITE else "black"


class PieceType(str, Enum):
    PAWN = "p"
    KNIGHT = "n"
    BISHOP = "b"
    ROOK = "r"
    QUEEN = "q"
    KING = "k"


PROMOTION_TYPES = (PieceType.QUEEN, PieceType.ROOK, PieceType.BISHOP, PieceType.KNIGHT)


class CastlingRights(IntFlag):
    NONE = 0
    WHITE_KINGSIDE = 1
    WHITE_QUEENSIDE = 2
    BLACK_KINGSIDE = 4
    BLACK_QUEENSIDE = 8
    WHITE_BOTH = WHITE_KINGSIDE | WHITE_QUEENSIDE
    BLACK_BOTH = BLACK_KINGSIDE | BLACK_QUEENSIDE
    ALL = WHITE_BOTH | BLACK_BOTH


class MoveFlag(str, Enum):
    NORMAL = "normal"
    DOUBLE_PAWN = "double_pawn"
    EN_PASSANT = "en_passant"
    CASTLE_KINGSIDE = "castle_kingside"
    CASTLE_QUEENSIDE = "castle_queenside"
    PROMOTION = "promotion"


@dataclass(frozen=True)
class Piece:
    color: Color
    piece_type: PieceType

    @classmethod
    def from_char(cls, ch: str) -> "Piece":
        """Build a piece from its FEN letter (uppercase = white)."""
        try:
            piece_type = PieceType(ch.lower())
        except ValueError:
            raise ValueError(f"Invalid piece letter {ch!r}")
        color = Color.WHITE if ch.isupper() else Color.BLACK
        return cls(color, piece_type)

    def __str__(self) -> str:
        ch = self.piece_type.value
        return ch.upper() if self.color == Color.WHITE else ch


@dataclass(frozen=True)
class Move:
    """A fully resolved move; only the move generator creates these."""
    from_sq: int
    to_sq: int
    flag: MoveFlag = MoveFlag.NORMAL
    promotion: Optional[PieceType] = None

    @property
    def is_castle(self) -> bool:
        return self.flag in (MoveFlag.CASTLE_KINGSIDE, MoveFlag.CASTLE_QUEENSIDE)

    def uci(self) -> str:
        text = square_name(self.from_sq) + square_name(self.to_sq)
        if self.promotion is not None:
            text += self.promotion.value
        return text


def make_square(file_idx: int, rank_idx: int) -> int:
    return rank_idx * 8 + file_idx


def file_of(sq: int) -> int:
    return sq & 7


def rank_of(sq: int) -> int:
    return sq >> 3


def square_name(sq: int) -> str:
    return FILES[file_of(sq)] + RANKS[rank_of(sq)]


def parse_square(name: str) -> int:
    """Parse 'e4' style coordinates into a square index."""
    if len(name) != 2 or name[0] not in FILES or name[1] not in RANKS:
        raise ValueError(f"Invalid square {name!r}")
    return make_square(FILES.index(name[0]), RANKS.index(name[1]))


def square_color(sq: int) -> int:
    """0 for dark squares, 1 for light squares."""
    return (file_of(sq) + rank_of(sq)) % 2
