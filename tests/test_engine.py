import random

import chess
import pytest

from app.chess.engine import (
    GameStatus, apply_move, evaluate_status, is_insufficient_material, legal_move_list
)
from app.chess.movegen import legal_moves
from app.chess.notation import parse_san, parse_uci
from app.chess.position import STARTING_FEN, Position
from app.chess.types import Color, PieceType, parse_square
from app.core.exceptions import InvalidMove

KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"

PERFT_CASES = [
    (STARTING_FEN, 3, 8902),
    (KIWIPETE, 2, 2039),
    ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 3, 2812),
    ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 2, 264),
    ("rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8", 2, 1486),
]


def perft(position, depth):
    if depth == 0:
        return 1
    moves = legal_moves(position)
    if depth == 1:
        return len(moves)
    return sum(perft(position.play(m), depth - 1) for m in moves)


def play_san(sans, fen=STARTING_FEN):
    """Play SAN moves through the engine, returning every outcome."""
    position = Position.from_fen(fen)
    history = [position.repetition_key()]
    outcomes = []
    for san in sans:
        move = parse_san(position, san)
        outcome = apply_move(position, move.from_sq, move.to_sq, move.promotion, history=history)
        outcomes.append(outcome)
        position = outcome.position
        history.append(position.repetition_key())
    return outcomes


def uci_move(position, text, history=()):
    from_sq, to_sq, promotion = parse_uci(text)
    return apply_move(position, from_sq, to_sq, promotion, history=history)


class TestPosition:

    def test_starting_fen_round_trip(self):
        assert Position.initial().to_fen() == STARTING_FEN

    def test_rejects_missing_king(self):
        with pytest.raises(ValueError):
            Position.from_fen("8/8/8/8/8/8/8/4K3 w - - 0 1")

    def test_rejects_malformed_fen(self):
        with pytest.raises(ValueError):
            Position.from_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1")

    def test_play_returns_new_position(self):
        start = Position.initial()
        outcome = uci_move(start, "e2e4")
        assert start.to_fen() == STARTING_FEN
        assert outcome.position.side_to_move == Color.BLACK
        assert outcome.position.piece_at(parse_square("e4")).piece_type == PieceType.PAWN


class TestLegality:

    @pytest.mark.parametrize("fen,depth,expected", PERFT_CASES)
    def test_perft(self, fen, depth, expected):
        assert perft(Position.from_fen(fen), depth) == expected

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234])
    def test_matches_reference_generator_on_random_games(self, seed):
        rng = random.Random(seed)
        position = Position.initial()
        for _ in range(120):
            reference = chess.Board(position.to_fen())
            expected = sorted(m.uci() for m in reference.legal_moves)
            assert legal_move_list(position) == expected, position.to_fen()
            if not expected:
                break
            position = uci_move(position, rng.choice(expected)).position

    def test_rejects_moves_outside_legal_set(self):
        position = Position.from_fen(KIWIPETE)
        legal = set(legal_move_list(position))
        for from_name in ("a1", "e1", "d5", "e5", "f3", "g2"):
            for to_sq in range(64):
                from_sq = parse_square(from_name)
                text = from_name + chess.square_name(to_sq)
                if text in legal:
                    assert uci_move(position, text).uci == text
                else:
                    with pytest.raises(InvalidMove):
                        apply_move(position, from_sq, to_sq)

    def test_pinned_piece_cannot_expose_king(self):
        # Knight on e2 is pinned by the rook on e8
        position = Position.from_fen("4r1k1/8/8/8/8/8/4N3/4K3 w - - 0 1")
        with pytest.raises(InvalidMove):
            uci_move(position, "e2c3")

    def test_wrong_side_rejected(self):
        position = Position.initial()
        with pytest.raises(InvalidMove):
            apply_move(position, parse_square("e7"), parse_square("e5"))
        with pytest.raises(InvalidMove):
            apply_move(position, parse_square("e2"), parse_square("e4"), side=Color.BLACK)

    def test_castling_kingside(self):
        position = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        outcome = uci_move(position, "e1g1")
        assert outcome.is_castle
        assert outcome.san == "O-O"
        after = outcome.position
        assert after.piece_at(parse_square("f1")).piece_type == PieceType.ROOK
        assert after.piece_at(parse_square("h1")) is None
        assert "K" not in after.to_fen().split()[2]

    def test_castling_through_attacked_square_rejected(self):
        # Bishop on c4 covers f1
        position = Position.from_fen("r3k2r/8/8/8/2b5/8/8/R3K2R w KQkq - 0 1")
        with pytest.raises(InvalidMove):
            uci_move(position, "e1g1")
        assert uci_move(position, "e1c1").san == "O-O-O"

    def test_castling_out_of_check_rejected(self):
        position = Position.from_fen("r3k2r/8/8/8/8/8/4r3/R3K2R w KQkq - 0 1")
        with pytest.raises(InvalidMove):
            uci_move(position, "e1g1")

    def test_castling_after_rook_moved_rejected(self):
        position = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        position = uci_move(position, "h1h2").position
        position = uci_move(position, "a8a7").position
        position = uci_move(position, "h2h1").position
        position = uci_move(position, "a7a8").position
        with pytest.raises(InvalidMove):
            uci_move(position, "e1g1")

    def test_en_passant_only_immediately(self):
        outcomes = play_san(["e4", "a6", "e5", "d5"])
        position = outcomes[-1].position
        assert position.en_passant == parse_square("d6")

        capture = uci_move(position, "e5d6")
        assert capture.is_en_passant
        assert capture.is_capture
        assert capture.san == "exd6"
        assert capture.position.piece_at(parse_square("d5")) is None

        # Waiting one move forfeits the right
        later = play_san(["e4", "a6", "e5", "d5", "Nf3", "a5"])[-1].position
        with pytest.raises(InvalidMove):
            uci_move(later, "e5d6")

    def test_promotion_defaults_to_queen(self):
        position = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        outcome = apply_move(position, parse_square("e7"), parse_square("e8"))
        assert outcome.promotion == PieceType.QUEEN
        assert outcome.san == "e8=Q"

    def test_underpromotion(self):
        position = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        outcome = uci_move(position, "e7e8n")
        assert outcome.position.piece_at(parse_square("e8")).piece_type == PieceType.KNIGHT

    def test_promotion_piece_on_normal_move_rejected(self):
        with pytest.raises(InvalidMove):
            uci_move(Position.initial(), "e2e4q")


class TestTermination:

    def test_scholars_attack_is_check_not_mate(self):
        outcomes = play_san(["e4", "e5", "Qh5", "Nc6", "Qxf7+"])
        last = outcomes[-1]
        assert last.is_check
        assert last.is_capture
        assert not last.is_checkmate
        assert last.status == GameStatus.ONGOING
        assert "e8f7" in legal_move_list(last.position)

    def test_fools_mate(self):
        outcomes = play_san(["f3", "e5", "g4", "Qh4#"])
        last = outcomes[-1]
        assert last.is_checkmate
        assert last.san == "Qh4#"
        assert last.status == GameStatus.CHECKMATE

    def test_stalemate(self):
        position = Position.from_fen("7k/8/6Q1/8/8/8/8/K7 w - - 0 1")
        outcome = uci_move(position, "g6f7")
        assert outcome.is_stalemate
        assert not outcome.is_check

    def test_checkmate_vs_stalemate_classification(self):
        mate = Position.from_fen("7k/6Q1/6K1/8/8/8/8/8 b - - 0 1")
        stale = Position.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
        assert evaluate_status(mate) == GameStatus.CHECKMATE
        assert evaluate_status(stale) == GameStatus.STALEMATE

    def test_threefold_repetition_on_third_occurrence(self):
        shuffle = ["Nf3", "Nf6", "Ng1", "Ng8"]
        outcomes = play_san(shuffle + shuffle)
        # Start position recurs after ply 4 (second time) and ply 8 (third time)
        assert outcomes[3].status == GameStatus.ONGOING
        assert all(o.status == GameStatus.ONGOING for o in outcomes[:7])
        assert outcomes[7].status == GameStatus.THREEFOLD_REPETITION
        assert outcomes[7].is_draw

    def test_repetition_respects_castling_rights(self):
        # King steps lose castling rights, so the start position is not repeated
        moves = ["e4", "e5", "Ke2", "Ke7", "Ke1", "Ke8", "Ke2", "Ke7", "Ke1", "Ke8"]
        outcomes = play_san(moves)
        assert outcomes[-1].status == GameStatus.ONGOING
        outcomes = play_san(moves + ["Ke2", "Ke7"])
        assert outcomes[-1].status == GameStatus.THREEFOLD_REPETITION

    def test_fifty_move_rule_at_exactly_100_halfmoves(self):
        position = Position.from_fen("4k3/8/8/8/8/8/R7/4K3 w - - 99 80")
        outcome = uci_move(position, "a2a3")
        assert outcome.position.halfmove_clock == 100
        assert outcome.status == GameStatus.FIFTY_MOVE_RULE

        earlier = Position.from_fen("4k3/8/8/8/8/8/R7/4K3 w - - 98 80")
        assert uci_move(earlier, "a2a3").status == GameStatus.ONGOING

    def test_capture_resets_halfmove_clock(self):
        position = Position.from_fen("4k3/8/8/8/8/8/r7/R3K3 w - - 99 80")
        outcome = uci_move(position, "a1a2")
        assert outcome.is_capture
        assert outcome.position.halfmove_clock == 0
        assert outcome.status == GameStatus.ONGOING

    def test_pawn_move_resets_halfmove_clock(self):
        position = Position.from_fen("4k3/8/8/8/8/8/P7/4K3 w - - 99 80")
        outcome = uci_move(position, "a2a3")
        assert outcome.position.halfmove_clock == 0
        assert outcome.status == GameStatus.ONGOING

    @pytest.mark.parametrize("fen,expected", [
        ("4k3/8/8/8/8/8/8/4K3 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/4KN2 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/4KB2 w - - 0 1", True),
        ("4kb2/8/8/8/8/8/8/2B1K3 w - - 0 1", True),
        ("4k1b1/8/8/8/8/8/8/2B1K3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/8/3NKN2 w - - 0 1", False),
        ("4k3/8/8/8/8/8/8/4K2R w - - 0 1", False),
        ("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1", False),
    ])
    def test_insufficient_material(self, fen, expected):
        assert is_insufficient_material(Position.from_fen(fen)) is expected
