"""
Search entry point: minimax with alpha-beta pruning, move ordering, a
position cache and a cooperative time budget.

get_best_move(state, color) is the stable interface used by the web adapter
and the bench tool. It returns a Move or None and never raises.
search_best_move() returns the same move together with its score, depth and
node count for callers that want to report on the search.

Side to act:
    Every node lets ``state.current_player`` move. The node is a maximizing
    one exactly when that side is the searching color. Because the
    transition function keeps current_player unchanged when the mover earns
    an extra turn, an extra turn shows up in the tree as two maximizing (or
    two minimizing) plies in a row without any special casing here.

Time budget:
    Checked on entry to every node. Once the budget is spent, nodes are
    scored statically instead of expanded, so the search winds down within
    roughly one node's worth of work and the moves already examined still
    decide the result. This is a soft stop, not a hard abort.

Cache:
    One PositionCache per top-level search. Entries are stored with the depth
    they were searched to and reused only for requests of equal or lower
    depth. Scores found inside a narrowed alpha-beta window are stored as if
    they were exact.

Randomness:
    Transitions can be random (conversions, anvil spawns, resurrection
    tie-breaks). The search draws from a single random.Random seeded from
    SearchConfig.seed, so a seeded search is reproducible.
"""

from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass, field
from typing import Mapping

from evochess import constants as C
from evochess import movegen, transition
from evochess.evaluate import evaluate
from evochess.move_ordering import describe, order_moves
from evochess.state import Color, GameState, Move
from evochess.transposition import CacheEntry, PositionCache, position_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchConfig:
    """
    Runtime knobs for one search.

    Attributes:
        max_depth:     Plies to search. Extra-turn plies count like any other.
        time_limit_ms: Soft wall-clock budget in milliseconds.
        cache_size:    Maximum number of cached positions (0 disables).
        seed:          Seed for the search's random source; None for an
                       unseeded one.
    """

    max_depth: int = C.DEFAULT_DEPTH
    time_limit_ms: int = C.DEFAULT_TIME_LIMIT_MS
    cache_size: int = C.DEFAULT_CACHE_SIZE
    seed: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SearchConfig:
        """
        Defaults overridden by EVOCHESS_DEPTH, EVOCHESS_TIME_LIMIT_MS,
        EVOCHESS_CACHE_SIZE and EVOCHESS_SEED. Malformed or out-of-range
        values are ignored with a warning.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, int] = {}
        for name, attr, minimum in (
            ("EVOCHESS_DEPTH", "max_depth", 1),
            ("EVOCHESS_TIME_LIMIT_MS", "time_limit_ms", 1),
            ("EVOCHESS_CACHE_SIZE", "cache_size", 0),
            ("EVOCHESS_SEED", "seed", None),
        ):
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            try:
                value = int(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not an integer", name, raw)
                continue
            if minimum is not None and value < minimum:
                logger.warning("Ignoring %s=%r: must be at least %d", name, raw, minimum)
                continue
            overrides[attr] = value
        return cls(**overrides)


@dataclass
class SearchState:
    """
    Mutable bookkeeping for one top-level search.

    Attributes:
        ai_color:       The searching side; its gains are positive scores.
        time_limit_ms:  Budget copied from the config.
        start_time:     Monotonic timestamp taken when the search began.
        node_count:     Nodes entered so far, including cut-off leaves.
        timed_out:      Set once a node found the budget spent.
        cache:          Position cache, empty at the start of each search.
        rng:            Random source threaded into every transition.
    """

    ai_color: Color
    time_limit_ms: float = float("inf")
    start_time: float = field(default_factory=time.monotonic)
    node_count: int = 0
    timed_out: bool = False
    cache: PositionCache = field(default_factory=lambda: PositionCache(C.DEFAULT_CACHE_SIZE))
    rng: random.Random = field(default_factory=random.Random)

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000

    def out_of_time(self) -> bool:
        if not self.timed_out and self.elapsed_ms() > self.time_limit_ms:
            self.timed_out = True
        return self.timed_out


@dataclass(frozen=True)
class SearchResult:
    """
    Outcome of search_best_move().

    Attributes:
        move:       Chosen move, or None when the side has no legal move.
        score:      Minimax score of the move from the searching side's view.
        depth:      Depth the search was asked to reach.
        nodes:      Nodes entered.
        extra_turn: True when playing ``move`` lets the same side move again.
        timed_out:  True when the time budget cut the search short.
    """

    move: Move | None
    score: int
    depth: int
    nodes: int
    extra_turn: bool = False
    timed_out: bool = False


def minimax(
    state: GameState,
    depth: int,
    alpha: int,
    beta: int,
    search: SearchState,
) -> tuple[int, Move | None]:
    """
    Score ``state`` for search.ai_color by searching ``depth`` plies.

    Returns (score, best move at this node). The move is None at leaves,
    at terminal positions and when the budget is spent.
    """
    search.node_count += 1
    ai_color = search.ai_color

    if search.out_of_time():
        return evaluate(state, ai_color), None

    if depth <= 0 or movegen.is_game_over(state):
        return evaluate(state, ai_color), None

    side = state.current_player
    maximizing = side is ai_color

    key = position_key(state, maximizing)
    cached = search.cache.lookup(key, depth)
    if cached is not None:
        return cached.score, cached.move

    moves = movegen.generate_legal_moves(state, side, search.rng)
    if not moves:
        return evaluate(state, ai_color), None

    best_move = None
    best_score = -C.INFINITY if maximizing else C.INFINITY
    for move in order_moves(state, moves, side):
        child = transition.apply_move(state, move, side, search.rng)
        score, _ = minimax(child, depth - 1, alpha, beta, search)

        if maximizing:
            if score > best_score or best_move is None:
                best_score, best_move = score, move
            alpha = max(alpha, score)
        else:
            if score < best_score or best_move is None:
                best_score, best_move = score, move
            beta = min(beta, score)
        if beta <= alpha:
            break

    search.cache.store(key, CacheEntry(best_score, best_move, depth))
    return best_score, best_move


def search_best_move(
    state: GameState,
    color: Color,
    config: SearchConfig | None = None,
) -> SearchResult:
    """
    Search ``state`` for ``color`` and report the chosen move.

    When ``color`` is not the side to move in ``state``, the position is
    searched as if it were. Internal failures are logged and degrade to the
    first legal move (score 0), then to no move.
    """
    config = config or SearchConfig()
    if state.current_player is not color:
        state = state.evolve(current_player=color)

    search = SearchState(
        ai_color=color,
        time_limit_ms=float(config.time_limit_ms),
        start_time=time.monotonic(),
        cache=PositionCache(config.cache_size),
        rng=random.Random(config.seed),
    )

    legal: list[Move] = []
    try:
        if state.game_over:
            return SearchResult(None, evaluate(state, color), 0, 0)
        legal = movegen.generate_legal_moves(state, color, search.rng)
        if not legal:
            return SearchResult(None, evaluate(state, color), 0, 0)

        score, move = minimax(state, config.max_depth, -C.INFINITY, C.INFINITY, search)
        if move is None:
            move = legal[0]
        after = transition.apply_move(state, move, color, random.Random(config.seed))
        extra_turn = after.extra_turn and after.current_player is color
    except Exception:
        logger.exception("Search failed for %s; falling back to the first legal move", color.value)
        return SearchResult(legal[0] if legal else None, 0, 0, search.node_count)

    logger.info(
        "%s plays %s: score %d, depth %d, nodes %d, %.0f ms%s",
        color.value,
        describe(move, state),
        score,
        config.max_depth,
        search.node_count,
        search.elapsed_ms(),
        " (time limit reached)" if search.timed_out else "",
    )
    logger.debug(
        "Cache: %d entries, %d hits, %d misses",
        len(search.cache),
        search.cache.hits,
        search.cache.misses,
    )
    return SearchResult(move, score, config.max_depth, search.node_count, extra_turn, search.timed_out)


def get_best_move(
    state: GameState,
    color: Color,
    config: SearchConfig | None = None,
) -> Move | None:
    """
    Return the best move for ``color``, or None if it has no legal move.

    This is the stable interface. It never raises.
    """
    try:
        return search_best_move(state, color, config).move
    except Exception:
        logger.exception("get_best_move failed for %s", color.value)
        try:
            legal = movegen.generate_legal_moves(state.evolve(current_player=color), color)
        except Exception:
            logger.exception("Fallback move generation failed for %s", color.value)
            return None
        return legal[0] if legal else None
