"""
Tests for the attack oracle: geometry, blockers, invulnerability and check.
"""

import chess

from evochess.attacks import (
    can_attack,
    find_king,
    is_in_check,
    is_path_clear,
    is_piece_invulnerable,
    is_square_attacked,
)
from evochess.state import Color, GameState, PieceType


class TestInvulnerability:
    def test_capped_queen_ignores_lower_levels(self, white, black):
        queen = black(PieceType.QUEEN, level=7)
        assert is_piece_invulnerable(queen, white(PieceType.ROOK, level=6))
        assert not is_piece_invulnerable(queen, white(PieceType.ROOK, level=7))

    def test_uncapped_queen_is_vulnerable(self, white, black):
        assert not is_piece_invulnerable(black(PieceType.QUEEN, level=6), white(PieceType.PAWN))

    def test_high_bishop_ignores_pawns_and_commanders(self, white, black):
        bishop = black(PieceType.BISHOP, level=3)
        assert is_piece_invulnerable(bishop, white(PieceType.PAWN, level=9))
        assert is_piece_invulnerable(bishop, white(PieceType.COMMANDER))
        assert not is_piece_invulnerable(bishop, white(PieceType.KNIGHT))
        assert not is_piece_invulnerable(black(PieceType.BISHOP, level=2), white(PieceType.PAWN))

    def test_invulnerability_counter(self, white, black):
        assert is_piece_invulnerable(black(PieceType.ROOK, level=3, invulnerable_turns=1), white(PieceType.QUEEN))

    def test_invulnerable_target_is_not_attacked(self, white, black):
        state = GameState.from_pieces({"d4": white(PieceType.PAWN), "e5": black(PieceType.BISHOP, level=3)})
        assert not can_attack(state, chess.D4, chess.E5, state.piece_at(chess.D4))


class TestGeometry:
    def test_pawn_attacks_diagonally_forward(self, white, black):
        state = GameState.from_pieces({"d4": white(PieceType.PAWN), "d5": black(PieceType.PAWN)})
        pawn = state.piece_at(chess.D4)
        assert can_attack(state, chess.D4, chess.E5, pawn)
        assert not can_attack(state, chess.D4, chess.D5, pawn)
        assert not can_attack(state, chess.D4, chess.E3, pawn)

    def test_infiltrator_attacks_straight_ahead(self, black):
        state = GameState.from_pieces({"d5": black(PieceType.INFILTRATOR)})
        infiltrator = state.piece_at(chess.D5)
        assert can_attack(state, chess.D5, chess.D4, infiltrator)
        assert can_attack(state, chess.D5, chess.C4, infiltrator)
        assert not can_attack(state, chess.D5, chess.D6, infiltrator)

    def test_knight_cardinal_jump_needs_clear_path(self, white, black):
        knight = white(PieceType.KNIGHT, level=3)
        open_state = GameState.from_pieces({"d4": knight})
        assert can_attack(open_state, chess.D4, chess.D7, knight)
        assert can_attack(open_state, chess.D4, chess.E4, knight)

        blocked = GameState.from_pieces({"d4": knight, "d6": black(PieceType.PAWN)})
        assert not can_attack(blocked, chess.D4, chess.D7, knight)

    def test_low_knight_has_no_cardinal_moves(self, white):
        knight = white(PieceType.KNIGHT)
        state = GameState.from_pieces({"d4": knight})
        assert not can_attack(state, chess.D4, chess.D5, knight)
        assert can_attack(state, chess.D4, chess.E6, knight)

    def test_items_block_and_are_never_attacked(self, white):
        rook = white(PieceType.ROOK)
        state = GameState.from_pieces({"a1": rook}, anvils=("a4",))
        assert can_attack(state, chess.A1, chess.A3, rook)
        assert not can_attack(state, chess.A1, chess.A4, rook)
        assert not can_attack(state, chess.A1, chess.A8, rook)

    def test_bishop_phases_through_own_pieces(self, white, black):
        phasing = white(PieceType.BISHOP, level=2)
        state = GameState.from_pieces({"c1": phasing, "d2": white(PieceType.PAWN), "f4": black(PieceType.PAWN)})
        assert is_path_clear(state, chess.C1, chess.E3, phasing)
        assert not is_path_clear(state, chess.C1, chess.G5, phasing)

        plain = white(PieceType.BISHOP)
        assert not is_path_clear(state, chess.C1, chess.E3, plain)

    def test_extended_king_reach(self, white, black):
        king = white(PieceType.KING, level=2)
        state = GameState.from_pieces({"e1": king})
        assert can_attack(state, chess.E1, chess.E3, king)
        assert not can_attack(state, chess.E1, chess.E3, king, simplified=True)

        blocked = GameState.from_pieces({"e1": king, "e2": black(PieceType.PAWN)})
        assert not can_attack(blocked, chess.E1, chess.E3, king)

    def test_agile_king_jumps_like_a_knight(self, white):
        king = white(PieceType.KING, level=5)
        state = GameState.from_pieces({"e1": king})
        assert can_attack(state, chess.E1, chess.F3, king)
        assert not can_attack(state, chess.E1, chess.F3, king, simplified=True)


class TestCheck:
    def test_rook_gives_check(self, white, black):
        state = GameState.from_pieces({"e1": white(PieceType.KING), "e8": black(PieceType.ROOK)})
        assert is_in_check(state, Color.WHITE)
        assert is_square_attacked(state, chess.E4, Color.BLACK)
        assert not is_square_attacked(state, chess.D4, Color.BLACK)

    def test_blocked_check(self, white, black):
        state = GameState.from_pieces(
            {"e1": white(PieceType.KING), "e4": white(PieceType.PAWN), "e8": black(PieceType.ROOK)}
        )
        assert not is_in_check(state, Color.WHITE)

    def test_missing_king_counts_as_check(self, black):
        state = GameState.from_pieces({"e8": black(PieceType.KING)})
        assert find_king(state, Color.WHITE) is None
        assert is_in_check(state, Color.WHITE)
        assert not is_in_check(state, Color.BLACK)
