"""
SAN and UCI notation.
"""
from typing import List, Optional, Tuple

from app.chess.movegen import has_legal_move, is_in_check, legal_moves
from app.chess.position import Position
from app.chess.types import (
    FILES, Move, MoveFlag, PieceType, file_of, parse_square, rank_of, square_name
)

_SAN_PIECE = {
    PieceType.KNIGHT: "N",
    PieceType.BISHOP: "B",
    PieceType.ROOK: "R",
    PieceType.QUEEN: "Q",
    PieceType.KING: "K",
}
_SAN_PIECE_REV = {v: k for k, v in _SAN_PIECE.items()}


def parse_uci(text: str) -> Tuple[int, int, Optional[PieceType]]:
    """Split 'e7e8q' into (from, to, promotion)."""
    text = text.strip().lower()
    if len(text) not in (4, 5):
        raise ValueError(f"Invalid UCI move {text!r}")
    promotion = None
    if len(text) == 5:
        try:
            promotion = PieceType(text[4])
        except ValueError:
            raise ValueError(f"Invalid promotion piece in {text!r}")
    return parse_square(text[:2]), parse_square(text[2:4]), promotion


def move_to_san(position: Position, move: Move, legal: Optional[List[Move]] = None) -> str:
    """SAN for a legal *move* in the position before it is played."""
    piece = position.board[move.from_sq]

    if move.flag == MoveFlag.CASTLE_KINGSIDE:
        san = "O-O"
    elif move.flag == MoveFlag.CASTLE_QUEENSIDE:
        san = "O-O-O"
    else:
        is_capture = position.board[move.to_sq] is not None or move.flag == MoveFlag.EN_PASSANT
        san = ""
        if piece.piece_type == PieceType.PAWN:
            if is_capture:
                san += FILES[file_of(move.from_sq)]
        else:
            san += _SAN_PIECE[piece.piece_type]
            if legal is None:
                legal = legal_moves(position)
            rivals = [
                m for m in legal
                if m.to_sq == move.to_sq and m.from_sq != move.from_sq
                and position.board[m.from_sq].piece_type == piece.piece_type
            ]
            if rivals:
                if all(file_of(m.from_sq) != file_of(move.from_sq) for m in rivals):
                    san += FILES[file_of(move.from_sq)]
                elif all(rank_of(m.from_sq) != rank_of(move.from_sq) for m in rivals):
                    san += str(rank_of(move.from_sq) + 1)
                else:
                    san += square_name(move.from_sq)
        if is_capture:
            san += "x"
        san += square_name(move.to_sq)
        if move.promotion is not None:
            san += "=" + _SAN_PIECE[move.promotion]

    after = position.play(move)
    if is_in_check(after, after.side_to_move):
        san += "+" if has_legal_move(after) else "#"
    return san


def parse_san(position: Position, san: str) -> Move:
    """Resolve SAN text against the legal moves of *position*."""
    legal = legal_moves(position)
    clean = san.strip().rstrip("+#!?")

    if clean in ("O-O", "0-0", "O-O-O", "0-0-0"):
        flag = MoveFlag.CASTLE_KINGSIDE if clean.count("O") + clean.count("0") == 2 else MoveFlag.CASTLE_QUEENSIDE
        for m in legal:
            if m.flag == flag:
                return m
        raise ValueError(f"Illegal move: {san}")

    promotion = None
    if "=" in clean:
        promotion = _SAN_PIECE_REV.get(clean[-1].upper())
        if promotion is None or promotion == PieceType.KING:
            raise ValueError(f"Invalid promotion in {san!r}")
        clean = clean[:clean.index("=")]

    if len(clean) < 2:
        raise ValueError(f"Invalid SAN {san!r}")
    to_sq = parse_square(clean[-2:])
    clean = clean[:-2].rstrip("x")

    piece_type = PieceType.PAWN
    if clean and clean[0] in _SAN_PIECE_REV:
        piece_type = _SAN_PIECE_REV[clean[0]]
        clean = clean[1:]

    from_file = from_rank = None
    for ch in clean:
        if ch in FILES:
            from_file = FILES.index(ch)
        elif ch.isdigit():
            from_rank = int(ch) - 1
        else:
            raise ValueError(f"Invalid SAN {san!r}")

    candidates = [
        m for m in legal
        if m.to_sq == to_sq
        and position.board[m.from_sq].piece_type == piece_type
        and (from_file is None or file_of(m.from_sq) == from_file)
        and (from_rank is None or rank_of(m.from_sq) == from_rank)
        and (m.promotion == (promotion or PieceType.QUEEN) if m.promotion is not None else promotion is None)
    ]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise ValueError(f"Illegal move: {san}")
    raise ValueError(f"Ambiguous move: {san}")
