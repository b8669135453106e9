"""
Tests for move ordering, the position cache and the search entry points.
"""

import logging

import chess
import pytest

from evochess import constants as C
from evochess import search as search_module
from evochess.move_ordering import order_moves, score_move
from evochess.movegen import generate_legal_moves
from evochess.search import SearchConfig, get_best_move, search_best_move
from evochess.state import Color, GameState, Move, MoveKind, PieceType
from evochess.transposition import CacheEntry, PositionCache, position_key

W, B = Color.WHITE, Color.BLACK


@pytest.fixture
def hanging_queen_state(white, black) -> GameState:
    """White to move; Ra1xa5 wins an undefended queen."""
    return GameState.from_pieces(
        {
            "e1": white(PieceType.KING),
            "a1": white(PieceType.ROOK),
            "a5": black(PieceType.QUEEN),
            "h8": black(PieceType.KING),
            "g7": black(PieceType.PAWN),
            "h7": black(PieceType.PAWN),
        }
    )


class TestSearchConfig:
    def test_defaults(self):
        config = SearchConfig()
        assert config.max_depth == C.DEFAULT_DEPTH == 3
        assert config.time_limit_ms == C.DEFAULT_TIME_LIMIT_MS == 5000
        assert config.cache_size == C.DEFAULT_CACHE_SIZE == 10000
        assert config.seed is None

    def test_from_env(self, caplog):
        environ = {
            "EVOCHESS_DEPTH": "2",
            "EVOCHESS_SEED": "7",
            "EVOCHESS_CACHE_SIZE": "lots",
            "EVOCHESS_TIME_LIMIT_MS": "-5",
        }
        with caplog.at_level(logging.WARNING, logger="evochess.search"):
            config = SearchConfig.from_env(environ)
        assert config.max_depth == 2
        assert config.seed == 7
        assert config.cache_size == C.DEFAULT_CACHE_SIZE
        assert config.time_limit_ms == C.DEFAULT_TIME_LIMIT_MS
        assert "EVOCHESS_CACHE_SIZE" in caplog.text
        assert "EVOCHESS_TIME_LIMIT_MS" in caplog.text


class TestMoveOrdering:
    def test_captures_first(self, hanging_queen_state):
        moves = generate_legal_moves(hanging_queen_state, W)
        ordered = order_moves(hanging_queen_state, moves, W)
        assert ordered[0] == Move(chess.A1, chess.A5, MoveKind.CAPTURE)
        assert sorted(ordered, key=str) == sorted(moves, key=str)

    def test_scores(self, white, black):
        state = GameState.from_pieces(
            {"e1": white(PieceType.KING), "d3": white(PieceType.KNIGHT), "h8": black(PieceType.KING)},
            anvils=("c5",),
        )
        assert score_move(state, Move(chess.D3, chess.E5), W) == 5
        assert score_move(state, Move(chess.D3, chess.F4), W) == 2
        assert score_move(state, Move(chess.D3, chess.B2), W) == 0
        assert score_move(state, Move(chess.D3, chess.C5), W) < score_move(state, Move(chess.D3, chess.B2), W)

    def test_promotion_and_castle_bonuses(self):
        empty = GameState()
        promotion = Move(chess.A7, chess.A8, MoveKind.PROMOTION, PieceType.KNIGHT)
        assert score_move(empty, promotion, W) == 320
        assert score_move(empty, Move(chess.E1, chess.G1, MoveKind.CASTLE), W) == 25


class TestPositionCache:
    def test_shallow_entries_do_not_answer_deeper_requests(self):
        cache = PositionCache(10)
        cache.store("k", CacheEntry(score=5, move=None, depth=2))
        assert cache.lookup("k", 3) is None
        assert cache.lookup("k", 2).score == 5
        assert cache.lookup("k", 1).score == 5
        assert cache.hits == 2 and cache.misses == 1

    def test_bounded_with_oldest_evicted(self):
        cache = PositionCache(2)
        for key in ("a", "b", "c"):
            cache.store(key, CacheEntry(0, None, 1))
        assert len(cache) == 2
        assert cache.lookup("a", 1) is None
        assert cache.lookup("c", 1) is not None

    def test_zero_size_disables(self):
        cache = PositionCache(0)
        cache.store("a", CacheEntry(0, None, 1))
        assert len(cache) == 0

    def test_key_distinguishes_state_details(self, initial_state):
        key = position_key(initial_state, True)
        assert key == position_key(GameState.initial(), True)
        assert key != position_key(initial_state, False)
        assert key != position_key(initial_state.evolve(current_player=B), True)
        assert key != position_key(initial_state.evolve(kill_streaks={W: 1, B: 0}), True)
        assert key != position_key(initial_state.evolve(en_passant_square=chess.E3), True)
        assert key != position_key(initial_state.evolve(first_blood=True, first_blood_player=W), True)


class TestSearch:
    def test_finds_mate_in_one(self, back_rank_state):
        result = search_best_move(back_rank_state, W, SearchConfig(max_depth=1, seed=0))
        assert result.move == Move(chess.A1, chess.A8)
        assert result.score == C.WIN_SCORE
        assert result.depth == 1
        assert result.nodes > 1

    def test_wins_hanging_queen(self, hanging_queen_state):
        move = get_best_move(hanging_queen_state, W, SearchConfig(max_depth=1, seed=0))
        assert move == Move(chess.A1, chess.A5, MoveKind.CAPTURE)

    def test_reports_extra_turn(self, hanging_queen_state):
        state = hanging_queen_state.evolve(kill_streaks={W: 5, B: 0})
        result = search_best_move(state, W, SearchConfig(max_depth=1, seed=0))
        assert result.move.kind is MoveKind.CAPTURE
        assert result.extra_turn

    def test_seeded_search_is_reproducible(self, hanging_queen_state):
        config = SearchConfig(max_depth=2, seed=11)
        first = search_best_move(hanging_queen_state, W, config)
        second = search_best_move(hanging_queen_state, W, config)
        assert (first.move, first.score, first.nodes) == (second.move, second.score, second.nodes)

    def test_searches_for_the_requested_color(self, initial_state):
        move = get_best_move(initial_state, B, SearchConfig(max_depth=1, seed=0))
        assert move in generate_legal_moves(initial_state.evolve(current_player=B), B)

    def test_no_legal_moves(self, stalemate_state, checkmate_state):
        assert get_best_move(stalemate_state, B) is None
        assert get_best_move(checkmate_state, B) is None

    def test_finished_game(self, initial_state):
        finished = initial_state.evolve(game_over=True, winner=B)
        result = search_best_move(finished, W)
        assert result.move is None and result.nodes == 0

    def test_time_budget_truncates(self, initial_state):
        result = search_best_move(initial_state, W, SearchConfig(max_depth=6, time_limit_ms=0, seed=0))
        assert result.timed_out
        assert result.move in generate_legal_moves(initial_state, W)
        assert result.nodes <= 1 + 20

    def test_failures_fall_back_to_first_legal_move(self, initial_state, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(search_module, "minimax", explode)
        move = get_best_move(initial_state, W, SearchConfig(max_depth=2, seed=0))
        assert move == generate_legal_moves(initial_state, W)[0]

    def test_get_best_move_never_raises(self, initial_state, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(search_module, "search_best_move", explode)
        monkeypatch.setattr(search_module.movegen, "generate_legal_moves", explode)
        assert get_best_move(initial_state, W) is None
