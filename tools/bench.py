#!/usr/bin/env python3
"""
Benchmark: measure nodes searched and time per move at the configured depth.

Run before and after each search or evaluation change to quantify its cost.
A lower node count at the same depth indicates more effective pruning; a
higher NPS indicates a faster move generator or evaluation function.

The search runs in-process with a fixed seed, so two runs on the same code
report the same moves and node counts (timings aside).

Usage: python3 tools/bench.py [--depth N] [--time-limit MS]
"""
import argparse
import os
import sys
import time

REPO = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO not in sys.path:
    sys.path.insert(0, REPO)

from evochess.move_ordering import describe  # noqa: E402
from evochess.search import SearchConfig, search_best_move  # noqa: E402
from evochess.state import Color, GameState, Piece, PieceType  # noqa: E402

P, N, B, R, Q, K = (
    PieceType.PAWN, PieceType.KNIGHT, PieceType.BISHOP,
    PieceType.ROOK, PieceType.QUEEN, PieceType.KING,
)
W, BL = Color.WHITE, Color.BLACK


def _white(kind: PieceType, level: int = 1, name: str = "") -> Piece:
    return Piece(f"w{kind.value}{name}", kind, W, level=level, has_moved=True)


def _black(kind: PieceType, level: int = 1, name: str = "") -> Piece:
    return Piece(f"b{kind.value}{name}", kind, BL, level=level, has_moved=True)


# Fixed positions spanning the opening, tactical middlegames, and the
# variant's own mechanics. Same positions for every comparison.
POSITIONS = [
    ("Start", GameState.initial()),
    ("Knight fork", GameState.from_pieces({
        "e1": _white(K), "d5": _white(N, 2), "a2": _white(P, name="a"),
        "e8": _black(K), "c7": _black(R), "f6": _black(Q), "h7": _black(P, name="h"),
    })),
    ("Queen cap", GameState.from_pieces({
        "g1": _white(K), "d4": _white(Q, 7), "f2": _white(P, name="f"),
        "g8": _black(K), "d8": _black(R, 3), "b6": _black(B, 3), "g7": _black(P, name="g"),
    })),
    ("Streak 5", GameState.from_pieces(
        {
            "e1": _white(K), "c3": _white(N, 4), "e4": _white(B, 2),
            "e8": _black(K), "b5": _black(P, name="b"), "d5": _black(P, name="d"),
            "h7": _black(R),
        },
        kill_streaks={W: 5, BL: 0},
    )),
    ("Anvils", GameState.from_pieces(
        {
            "e1": _white(K), "a1": _white(R), "h1": _white(R, name="h"),
            "e8": _black(K), "a8": _black(R), "d7": _black(P, name="d"),
        },
        anvils=("e4", "d5", "b2"),
        move_counter=7,
    )),
    ("Black to move", GameState.from_pieces(
        {
            "g1": _white(K), "e5": _white(P, 3, name="e"), "c4": _white(B),
            "g8": _black(K), "f7": _black(P, name="f"), "b8": _black(N, 5),
        },
        current_player=BL,
    )),
]


def run_position(label: str, state: GameState, config: SearchConfig) -> dict:
    """Search one position and return its metrics."""
    start = time.monotonic()
    result = search_best_move(state, state.current_player, config)
    time_ms = int((time.monotonic() - start) * 1000)
    return {
        "label": label,
        "move": describe(result.move, state) if result.move else "(none)",
        "depth": result.depth,
        "score": result.score,
        "nodes": result.nodes,
        "nps": int(result.nodes * 1000 / time_ms) if time_ms else 0,
        "time_ms": time_ms,
    }


def main() -> None:
    """Run all benchmark positions and print a summary table."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--depth", type=int, default=None)
    parser.add_argument("--time-limit", type=int, default=60_000, help="milliseconds")
    args = parser.parse_args()

    config = SearchConfig.from_env()
    config = SearchConfig(
        max_depth=args.depth or config.max_depth,
        time_limit_ms=args.time_limit,
        cache_size=config.cache_size,
        seed=0 if config.seed is None else config.seed,
    )

    print(f"Evolving chess benchmark - {sys.executable}")
    print(f"Depth {config.max_depth}, seed {config.seed}, time limit {config.time_limit_ms} ms")
    print()
    print(
        f"{'Position':<14} {'Move':<18} {'Depth':>5} {'Score':>7} "
        f"{'Nodes':>8} {'NPS':>8} {'Time(ms)':>9}"
    )
    print("-" * 75)

    results = []
    for label, state in POSITIONS:
        r = run_position(label, state, config)
        results.append(r)
        print(
            f"{r['label']:<14} {r['move']:<18} {r['depth']:>5} {r['score']:>7} "
            f"{r['nodes']:>8,} {r['nps']:>8,} {r['time_ms']:>9,}"
        )

    valid = [r for r in results if r["nodes"] > 0]
    if valid:
        avg_nodes = sum(r["nodes"] for r in valid) // len(valid)
        avg_time = sum(r["time_ms"] for r in valid) // len(valid)
        avg_nps = sum(r["nps"] for r in valid) // len(valid)
        print("-" * 75)
        print(
            f"{'AVERAGE':<14} {'':<18} {'':<5} {'':<7} "
            f"{avg_nodes:>8,} {avg_nps:>8,} {avg_time:>9,}"
        )


if __name__ == "__main__":
    main()
