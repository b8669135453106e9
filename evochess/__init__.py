"""
Evolving-chess engine package.

A rules engine and game-tree search for a chess variant in which pieces gain
levels by capturing, unlock abilities at level thresholds, and interact with
kill streaks, extra turns, resurrection and board hazards (anvils).

Modules:
    constants     - Piece values, ability thresholds, evaluation weights
    state         - Colors, pieces, moves and the immutable GameState
    attacks       - Attack geometry, invulnerability and check detection
    movegen       - Pseudo-legal and legal move generation, terminal outcomes
    transition    - apply_move(): primary effect, triggers, turn handover
    evaluate      - Static position evaluation
    move_ordering - Cheap heuristic ordering for alpha-beta
    transposition - Canonical position keys and the bounded search cache
    search        - Minimax with alpha-beta, time budget, get_best_move()
"""

__version__ = "1.0.0"

from evochess.movegen import generate_legal_moves, is_game_over, terminal_winner
from evochess.search import SearchConfig, SearchResult, get_best_move, search_best_move
from evochess.state import DRAW, Color, EngineError, GameState, Move, MoveKind, Piece, PieceType
from evochess.transition import apply_move

__all__ = [
    "__version__",
    "DRAW",
    "Color",
    "EngineError",
    "GameState",
    "Move",
    "MoveKind",
    "Piece",
    "PieceType",
    "SearchConfig",
    "SearchResult",
    "apply_move",
    "generate_legal_moves",
    "get_best_move",
    "is_game_over",
    "search_best_move",
    "terminal_winner",
]
