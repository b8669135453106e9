"""
Engine constants: rule tables, evaluation weights, and search parameters.

All numeric constants used throughout the engine are defined here so that
the rule, evaluation and search modules never introduce their own magic
numbers. The tables are plain lookup data; the functions that interpret them
live in attacks.py, movegen.py, transition.py and evaluate.py.

Piece values use the centipawn convention (1 level-1 pawn = 100). Each piece
type has a table indexed by ``level - 1``. Levels past the end of a table are
extrapolated linearly (see LEVEL_EXTRAPOLATION_STEP), except for queens and
kings whose tables are already complete.
"""

from evochess.state import PieceType

# ---------------------------------------------------------------------------
# Piece values by level (centipawns)
# ---------------------------------------------------------------------------

PIECE_VALUES: dict[PieceType, tuple[int, ...]] = {
    PieceType.PAWN:        (100, 120, 140, 180, 220, 260, 280, 300, 320, 340),
    PieceType.KNIGHT:      (320, 360, 400, 450, 500, 550, 580, 610, 640, 670),
    PieceType.BISHOP:      (330, 370, 420, 470, 520, 570, 600, 630, 660, 690),
    PieceType.ROOK:        (500, 520, 580, 620, 660, 700, 730, 760, 790, 820),
    PieceType.QUEEN:       (900, 920, 940, 960, 1200, 1250, 1350),
    PieceType.KING:        (20_000,) * 7,
    PieceType.COMMANDER:   (150, 180, 210, 250, 290, 330, 360, 390, 420, 450),
    PieceType.HERO:        (450, 500, 550, 600, 650, 700, 740, 780, 820, 860),
    PieceType.INFILTRATOR: (300, 330, 360, 400, 440, 480, 520, 560, 600, 640),
}

# Added per level beyond the end of a value table.
LEVEL_EXTRAPOLATION_STEP: int = 20

# Types whose value tables are never extrapolated.
UNEXTRAPOLATED_TYPES: frozenset[PieceType] = frozenset({PieceType.QUEEN, PieceType.KING})

# ---------------------------------------------------------------------------
# Levelling
# ---------------------------------------------------------------------------
# A capturing piece gains CAPTURE_LEVEL_BONUS[victim.type] levels.

CAPTURE_LEVEL_BONUS: dict[PieceType, int] = {
    PieceType.PAWN:        1,
    PieceType.KNIGHT:      2,
    PieceType.BISHOP:      2,
    PieceType.ROOK:        2,
    PieceType.QUEEN:       3,
    PieceType.KING:        1,
    PieceType.COMMANDER:   1,
    PieceType.HERO:        2,
    PieceType.INFILTRATOR: 2,
}

QUEEN_MAX_LEVEL: int = 7

# ---------------------------------------------------------------------------
# Ability thresholds (minimum level)
# ---------------------------------------------------------------------------

PAWN_BACKWARD_LEVEL: int = 2
PAWN_SIDEWAYS_LEVEL: int = 3
PAWN_PUSH_BACK_LEVEL: int = 4

KNIGHT_CARDINAL_STEP_LEVEL: int = 2
KNIGHT_CARDINAL_JUMP_LEVEL: int = 3
KNIGHT_SWAP_LEVEL: int = 4
KNIGHT_SELF_DESTRUCT_LEVEL: int = 5

BISHOP_PHASING_LEVEL: int = 2
BISHOP_PAWN_IMMUNITY_LEVEL: int = 3
BISHOP_SWAP_LEVEL: int = 4
CONVERSION_LEVEL: int = 5

ROOK_RESURRECTION_LEVEL: int = 4
ROOK_INVULNERABILITY_LEVEL: int = 3
ROOK_INVULNERABLE_TURNS: int = 1

KING_EXTENDED_REACH_LEVEL: int = 2
KING_KNIGHT_AGILITY_LEVEL: int = 5

# A pawn or commander at this level that promotes with a capture earns an
# extra turn.
PROMOTION_EXTRA_TURN_LEVEL: int = 5

# ---------------------------------------------------------------------------
# Turn economy
# ---------------------------------------------------------------------------

STREAK_RESURRECTION: int = 3
STREAK_EXTRA_TURN: int = 6

# An anvil spawns on a random empty square every ANVIL_SPAWN_PERIOD half-moves.
ANVIL_SPAWN_PERIOD: int = 9

CONVERSION_PROBABILITY: float = 0.5

# ---------------------------------------------------------------------------
# Geometry: (file delta, rank delta)
# ---------------------------------------------------------------------------

KNIGHT_OFFSETS: tuple[tuple[int, int], ...] = (
    (-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1),
)
KING_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1),
)
CARDINAL_OFFSETS: tuple[tuple[int, int], ...] = ((0, 1), (0, -1), (1, 0), (-1, 0))

ROOK_RAYS: tuple[tuple[int, int], ...] = CARDINAL_OFFSETS
BISHOP_RAYS: tuple[tuple[int, int], ...] = ((1, 1), (1, -1), (-1, 1), (-1, -1))
QUEEN_RAYS: tuple[tuple[int, int], ...] = ROOK_RAYS + BISHOP_RAYS

SLIDING_RAYS: dict[PieceType, tuple[tuple[int, int], ...]] = {
    PieceType.ROOK:   ROOK_RAYS,
    PieceType.BISHOP: BISHOP_RAYS,
    PieceType.QUEEN:  QUEEN_RAYS,
}

PROMOTION_CHOICES: tuple[PieceType, ...] = (
    PieceType.QUEEN, PieceType.ROOK, PieceType.BISHOP, PieceType.KNIGHT,
)

# ---------------------------------------------------------------------------
# Evaluation weights
# ---------------------------------------------------------------------------
# Terminal scores are integers so they compare cleanly in alpha-beta.
# Auto-checkmate outranks an ordinary win, which outranks any heuristic score.

WIN_SCORE: int = 200_000
AUTO_CHECKMATE_SCORE: int = 250_000
DRAW_SCORE: int = 0

CENTER_BONUS: int = 10
NEAR_CENTER_BONUS: int = 5
DEVELOPMENT_BONUS: int = 15
KING_SHIELD_PENALTY: int = 25
PAWN_ADVANCE_BONUS: int = 8
ISOLATED_PAWN_PENALTY: int = 3
DOUBLED_PAWN_PENALTY: int = 2
ANVIL_NEAR_KING_PENALTY: int = 15

OWN_KING_IN_CHECK_PENALTY: int = 200
ENEMY_KING_IN_CHECK_BONUS: int = 100
OWN_KING_THREAT_PENALTY: int = 15
ENEMY_KING_THREAT_BONUS: int = 10

LEVEL_BONUS: int = 15
CAPPED_QUEEN_BONUS: int = 70
IMMUNE_BISHOP_BONUS: int = 25
PAWN_PROMOTION_POTENTIAL: int = 8
HIGH_LEVEL_PAWN_BONUS: int = 30
COMMANDER_BONUS: int = 40
HERO_BONUS: int = 50
INFILTRATOR_PROXIMITY_BONUS: int = 15

EXTRA_TURN_BONUS: int = 75

# ---------------------------------------------------------------------------
# Search parameters
# ---------------------------------------------------------------------------
# The branching factor of this variant is far larger than chess once pieces
# level up, and every node re-derives legality, so the default depth is low.

DEFAULT_DEPTH: int = 3
DEFAULT_TIME_LIMIT_MS: int = 5_000
DEFAULT_CACHE_SIZE: int = 10_000

# Window bounds for alpha-beta; strictly outside every reachable score.
INFINITY: int = 10**9
