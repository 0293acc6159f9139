"""
Pseudo-legal and legal move generation plus attack detection.
"""
from typing import List, Tuple

from app.chess.position import Position
from app.chess.types import (
    PROMOTION_TYPES, CastlingRights, Color, Move, MoveFlag, PieceType,
    file_of, make_square, rank_of
)

KNIGHT_OFFSETS = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))
KING_OFFSETS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
BISHOP_DIRS = ((-1, -1), (-1, 1), (1, -1), (1, 1))
ROOK_DIRS = ((-1, 0), (1, 0), (0, -1), (0, 1))
QUEEN_DIRS = BISHOP_DIRS + ROOK_DIRS


def _build_targets(offsets) -> Tuple[Tuple[int, ...], ...]:
    table = []
    for sq in range(64):
        targets = []
        for df, dr in offsets:
            f, r = file_of(sq) + df, rank_of(sq) + dr
            if 0 <= f < 8 and 0 <= r < 8:
                targets.append(make_square(f, r))
        table.append(tuple(targets))
    return tuple(table)


def _build_rays(directions) -> Tuple[Tuple[Tuple[int, ...], ...], ...]:
    table = []
    for sq in range(64):
        rays = []
        for df, dr in directions:
            ray = []
            f, r = file_of(sq) + df, rank_of(sq) + dr
            while 0 <= f < 8 and 0 <= r < 8:
                ray.append(make_square(f, r))
                f += df
                r += dr
            rays.append(tuple(ray))
        table.append(tuple(rays))
    return tuple(table)


_KNIGHT_TARGETS = _build_targets(KNIGHT_OFFSETS)
_KING_TARGETS = _build_targets(KING_OFFSETS)
_BISHOP_RAYS = _build_rays(BISHOP_DIRS)
_ROOK_RAYS = _build_rays(ROOK_DIRS)
_QUEEN_RAYS = _build_rays(QUEEN_DIRS)

_SLIDING_RAYS = {
    PieceType.BISHOP: _BISHOP_RAYS,
    PieceType.ROOK: _ROOK_RAYS,
    PieceType.QUEEN: _QUEEN_RAYS,
}


def is_square_attacked(position: Position, sq: int, by_color: Color) -> bool:
    """Is *sq* attacked by any piece of *by_color*?"""
    board = position.board

    # A pawn of by_color attacks sq from one rank behind it (from its own point of view).
    pawn_rank = rank_of(sq) - 1 if by_color == Color.WHITE else rank_of(sq) + 1
    if 0 <= pawn_rank < 8:
        for df in (-1, 1):
            f = file_of(sq) + df
            if 0 <= f < 8:
                piece = board[make_square(f, pawn_rank)]
                if piece is not None and piece.color == by_color and piece.piece_type == PieceType.PAWN:
                    return True

    for from_sq in _KNIGHT_TARGETS[sq]:
        piece = board[from_sq]
        if piece is not None and piece.color == by_color and piece.piece_type == PieceType.KNIGHT:
            return True

    for from_sq in _KING_TARGETS[sq]:
        piece = board[from_sq]
        if piece is not None and piece.color == by_color and piece.piece_type == PieceType.KING:
            return True

    for rays, attackers in (
        (_BISHOP_RAYS[sq], (PieceType.BISHOP, PieceType.QUEEN)),
        (_ROOK_RAYS[sq], (PieceType.ROOK, PieceType.QUEEN)),
    ):
        for ray in rays:
            for from_sq in ray:
                piece = board[from_sq]
                if piece is None:
                    continue
                if piece.color == by_color and piece.piece_type in attackers:
                    return True
                break

    return False


def is_in_check(position: Position, color: Color) -> bool:
    return is_square_attacked(position, position.king_square(color), color.opposite)


def pseudo_legal_moves(position: Position) -> List[Move]:
    """All moves for the side to move, ignoring whether the king is left in check."""
    moves: List[Move] = []
    color = position.side_to_move
    for sq, piece in enumerate(position.board):
        if piece is None or piece.color != color:
            continue
        if piece.piece_type == PieceType.PAWN:
            _gen_pawn(position, sq, color, moves)
        elif piece.piece_type == PieceType.KNIGHT:
            _gen_steps(position, sq, color, _KNIGHT_TARGETS[sq], moves)
        elif piece.piece_type == PieceType.KING:
            _gen_steps(position, sq, color, _KING_TARGETS[sq], moves)
            _gen_castling(position, sq, color, moves)
        else:
            _gen_sliding(position, sq, color, _SLIDING_RAYS[piece.piece_type][sq], moves)
    return moves


def legal_moves(position: Position) -> List[Move]:
    """All strictly legal moves for the side to move."""
    color = position.side_to_move
    return [
        move for move in pseudo_legal_moves(position)
        if not is_in_check(position.play(move), color)
    ]


def has_legal_move(position: Position) -> bool:
    color = position.side_to_move
    for move in pseudo_legal_moves(position):
        if not is_in_check(position.play(move), color):
            return True
    return False


def _is_target(position: Position, sq: int, color: Color) -> bool:
    """Empty or holds a capturable enemy piece (kings are never captured)."""
    target = position.board[sq]
    return target is None or (target.color != color and target.piece_type != PieceType.KING)


def _gen_steps(position: Position, sq: int, color: Color, targets, moves: List[Move]) -> None:
    for to_sq in targets:
        if _is_target(position, to_sq, color):
            moves.append(Move(sq, to_sq))


def _gen_sliding(position: Position, sq: int, color: Color, rays, moves: List[Move]) -> None:
    board = position.board
    for ray in rays:
        for to_sq in ray:
            target = board[to_sq]
            if target is None:
                moves.append(Move(sq, to_sq))
                continue
            if _is_target(position, to_sq, color):
                moves.append(Move(sq, to_sq))
            break


def _add_pawn_move(sq: int, to_sq: int, color: Color, moves: List[Move]) -> None:
    last_rank = 7 if color == Color.WHITE else 0
    if rank_of(to_sq) == last_rank:
        for piece_type in PROMOTION_TYPES:
            moves.append(Move(sq, to_sq, MoveFlag.PROMOTION, piece_type))
    else:
        moves.append(Move(sq, to_sq))


def _gen_pawn(position: Position, sq: int, color: Color, moves: List[Move]) -> None:
    board = position.board
    step = 8 if color == Color.WHITE else -8
    start_rank = 1 if color == Color.WHITE else 6

    one_step = sq + step
    if 0 <= one_step < 64 and board[one_step] is None:
        _add_pawn_move(sq, one_step, color, moves)
        two_step = one_step + step
        if rank_of(sq) == start_rank and board[two_step] is None:
            moves.append(Move(sq, two_step, MoveFlag.DOUBLE_PAWN))

    for df in (-1, 1):
        f = file_of(sq) + df
        if not 0 <= f < 8:
            continue
        cap_sq = one_step + df
        if not 0 <= cap_sq < 64:
            continue
        target = board[cap_sq]
        if target is not None:
            if _is_target(position, cap_sq, color):
                _add_pawn_move(sq, cap_sq, color, moves)
        elif cap_sq == position.en_passant:
            moves.append(Move(sq, cap_sq, MoveFlag.EN_PASSANT))


def _gen_castling(position: Position, king_sq: int, color: Color, moves: List[Move]) -> None:
    home = 0 if color == Color.WHITE else 56
    if king_sq != home + 4:
        return
    opponent = color.opposite
    if is_square_attacked(position, king_sq, opponent):
        return

    board = position.board
    kingside = CastlingRights.WHITE_KINGSIDE if color == Color.WHITE else CastlingRights.BLACK_KINGSIDE
    queenside = CastlingRights.WHITE_QUEENSIDE if color == Color.WHITE else CastlingRights.BLACK_QUEENSIDE
    rook = board[home + 7]

    if position.castling & kingside and rook is not None and rook.color == color \
            and rook.piece_type == PieceType.ROOK:
        f_sq, g_sq = home + 5, home + 6
        if (board[f_sq] is None and board[g_sq] is None
                and not is_square_attacked(position, f_sq, opponent)
                and not is_square_attacked(position, g_sq, opponent)):
            moves.append(Move(king_sq, g_sq, MoveFlag.CASTLE_KINGSIDE))

    rook = board[home]
    if position.castling & queenside and rook is not None and rook.color == color \
            and rook.piece_type == PieceType.ROOK:
        b_sq, c_sq, d_sq = home + 1, home + 2, home + 3
        if (board[b_sq] is None and board[c_sq] is None and board[d_sq] is None
                and not is_square_attacked(position, c_sq, opponent)
                and not is_square_attacked(position, d_sq, opponent)):
            moves.append(Move(king_sq, c_sq, MoveFlag.CASTLE_QUEENSIDE))
