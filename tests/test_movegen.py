"""
Tests for move generation, legality filtering and terminal outcomes.
"""

import chess
import pytest

from evochess.attacks import is_in_check
from evochess.movegen import (
    generate_legal_moves,
    generate_pseudo_moves,
    is_game_over,
    resolve_outcome,
    terminal_winner,
)
from evochess.state import DRAW, Color, GameState, Move, MoveKind, PieceType
from evochess.transition import apply_move


class TestBasicGeneration:
    def test_initial_position_has_twenty_moves(self, initial_state):
        assert len(generate_legal_moves(initial_state, Color.WHITE)) == 20
        assert len(generate_legal_moves(initial_state, Color.BLACK)) == 20

    def test_double_step_only_from_home_rank(self, initial_state):
        moves = generate_legal_moves(initial_state, Color.WHITE)
        assert Move(chess.E2, chess.E4) in moves
        assert Move(chess.E2, chess.E5) not in moves

    def test_levelled_pawn_moves_back_and_sideways(self, white, black):
        state = GameState.from_pieces(
            {"a1": white(PieceType.KING), "h8": black(PieceType.KING), "d4": white(PieceType.PAWN, level=3)}
        )
        targets = {m.to_square for m in generate_legal_moves(state, Color.WHITE) if m.from_square == chess.D4}
        assert targets == {chess.D5, chess.D3, chess.C4, chess.E4}

    def test_promotion_choices(self, white, black):
        state = GameState.from_pieces(
            {"a1": white(PieceType.KING), "h5": black(PieceType.KING), "b7": white(PieceType.PAWN)}
        )
        promotions = {m.promote_to for m in generate_legal_moves(state, Color.WHITE) if m.kind is MoveKind.PROMOTION}
        assert promotions == {PieceType.QUEEN, PieceType.ROOK, PieceType.BISHOP, PieceType.KNIGHT}

    def test_commander_promotes_only_to_hero(self, white, black):
        state = GameState.from_pieces(
            {"a1": white(PieceType.KING), "h5": black(PieceType.KING), "b7": white(PieceType.COMMANDER)}
        )
        promotions = [m for m in generate_legal_moves(state, Color.WHITE) if m.kind is MoveKind.PROMOTION]
        assert [m.promote_to for m in promotions] == [PieceType.HERO]

    def test_en_passant(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING),
                "e8": black(PieceType.KING),
                "e5": white(PieceType.PAWN),
                "d5": black(PieceType.PAWN),
            },
            en_passant_square=chess.D6,
        )
        assert Move(chess.E5, chess.D6, MoveKind.EN_PASSANT) in generate_legal_moves(state, Color.WHITE)

    def test_no_moves_onto_items(self, white, black):
        state = GameState.from_pieces(
            {"a1": white(PieceType.KING), "h8": black(PieceType.KING), "d1": white(PieceType.ROOK)},
            anvils=("d4",),
        )
        targets = {m.to_square for m in generate_legal_moves(state, Color.WHITE) if m.from_square == chess.D1}
        assert chess.D4 not in targets
        assert chess.D5 not in targets
        assert chess.D3 in targets


class TestSpecialMoves:
    def test_castling(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING, has_moved=False),
                "h1": white(PieceType.ROOK, has_moved=False),
                "a8": black(PieceType.KING),
            }
        )
        assert Move(chess.E1, chess.G1, MoveKind.CASTLE) in generate_legal_moves(state, Color.WHITE)

    def test_no_castling_through_attack(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING, has_moved=False),
                "h1": white(PieceType.ROOK, has_moved=False),
                "a8": black(PieceType.KING),
                "f8": black(PieceType.ROOK),
            }
        )
        kinds = {m.kind for m in generate_legal_moves(state, Color.WHITE)}
        assert MoveKind.CASTLE not in kinds

    def test_no_castling_after_rook_moved(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING, has_moved=False),
                "h1": white(PieceType.ROOK, has_moved=True),
                "a8": black(PieceType.KING),
            }
        )
        assert all(m.kind is not MoveKind.CASTLE for m in generate_legal_moves(state, Color.WHITE))

    def test_swap_and_self_destruct(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING),
                "h8": black(PieceType.KING),
                "b1": white(PieceType.KNIGHT, level=5),
                "c1": white(PieceType.BISHOP),
            }
        )
        moves = generate_legal_moves(state, Color.WHITE)
        assert Move(chess.B1, chess.C1, MoveKind.SWAP) in moves
        assert Move(chess.B1, chess.B1, MoveKind.SELF_DESTRUCT) in moves
        # The level-1 bishop cannot initiate a swap.
        assert Move(chess.C1, chess.B1, MoveKind.SWAP) not in moves

    def test_king_extended_reach_needs_safe_middle_square(self, white, black):
        state = GameState.from_pieces(
            {"e1": white(PieceType.KING, level=2), "a8": black(PieceType.KING), "h2": black(PieceType.ROOK)}
        )
        targets = {m.to_square for m in generate_pseudo_moves(state, Color.WHITE)}
        assert chess.E3 not in targets
        assert chess.C1 in targets


class TestLegality:
    def test_every_legal_move_leaves_king_safe(self, white, black, rng):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING),
                "a2": white(PieceType.ROOK),
                "c3": white(PieceType.KNIGHT),
                "e8": black(PieceType.ROOK),
                "a8": black(PieceType.KING),
            }
        )
        assert is_in_check(state, Color.WHITE)
        moves = generate_legal_moves(state, Color.WHITE, rng)
        assert moves
        for move in moves:
            after = apply_move(state, move, Color.WHITE, rng)
            assert after is not state
            assert not is_in_check(after, Color.WHITE)
        assert Move(chess.A2, chess.E2) in moves
        assert Move(chess.E1, chess.E2) not in moves

    def test_pinned_piece_cannot_leave_the_line(self, white, black):
        state = GameState.from_pieces(
            {
                "e1": white(PieceType.KING),
                "e2": white(PieceType.BISHOP),
                "e8": black(PieceType.ROOK),
                "a8": black(PieceType.KING),
            }
        )
        assert all(m.from_square != chess.E2 for m in generate_legal_moves(state, Color.WHITE))

    def test_legal_moves_are_a_subset_of_pseudo_moves(self, initial_state):
        legal = generate_legal_moves(initial_state, Color.WHITE)
        pseudo = generate_pseudo_moves(initial_state, Color.WHITE)
        assert set(legal) <= set(pseudo)


class TestOutcome:
    def test_ongoing(self, initial_state):
        assert terminal_winner(initial_state) is None
        assert not is_game_over(initial_state)

    def test_stalemate_is_a_draw(self, stalemate_state):
        assert generate_legal_moves(stalemate_state, Color.BLACK) == []
        assert terminal_winner(stalemate_state) == DRAW

    def test_checkmate(self, checkmate_state):
        assert terminal_winner(checkmate_state) is Color.WHITE
        resolved = resolve_outcome(checkmate_state)
        assert resolved.game_over and resolved.winner is Color.WHITE

    @pytest.mark.parametrize("missing", [Color.WHITE, Color.BLACK])
    def test_missing_king_loses(self, white, black, missing):
        pieces = {"e1": white(PieceType.KING), "e8": black(PieceType.KING), "a1": white(PieceType.ROOK)}
        del pieces["e1" if missing is Color.WHITE else "e8"]
        assert terminal_winner(GameState.from_pieces(pieces)) is missing.opponent

    def test_infiltrator_on_enemy_back_rank_wins(self, white, black):
        state = GameState.from_pieces(
            {"e1": white(PieceType.KING), "a8": black(PieceType.KING), "d1": black(PieceType.INFILTRATOR)}
        )
        assert terminal_winner(state) is Color.BLACK

    def test_flagged_result_wins(self, initial_state):
        assert terminal_winner(initial_state.evolve(game_over=True, winner=Color.BLACK)) is Color.BLACK
        assert terminal_winner(initial_state.evolve(game_over=True)) == DRAW
