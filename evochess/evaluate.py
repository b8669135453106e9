"""
Static evaluation: a fixed, hand-tuned linear combination of features.

evaluate(state, perspective) returns an integer score from ``perspective``'s
point of view: positive means that side is better. Unlike a negamax
evaluator the perspective is explicit, because the search maximises for one
color throughout and the same color may move several times in a row.

Decided positions score WIN_SCORE / AUTO_CHECKMATE_SCORE (negated for a
loss) or DRAW_SCORE. Every other position is the sum of:

    material      level-indexed piece values
    positional    centre control, minor-piece development, pawn structure
    king safety   check status, pawn shield, line-of-sight threats
    kill streaks  tiered bonuses at the streak thresholds
    abilities     per-level bonus and unit-specific bonuses
    anvils        hazards next to either king
    tempo         holding an extra turn

Each feature is its own function so tests and tuning can inspect them one by
one. All weights come from constants.py.
"""

import chess

from evochess import constants as C
from evochess.attacks import find_king, is_in_check
from evochess.movegen import terminal_winner
from evochess.state import DRAW, PAWN_LIKE, Color, GameState, Item, Piece, PieceType

CENTER_SQUARES: frozenset[int] = frozenset({chess.D4, chess.E4, chess.D5, chess.E5})
NEAR_CENTER_SQUARES: frozenset[int] = frozenset(
    chess.square(file, rank)
    for file in range(2, 6)
    for rank in range(2, 6)
) - CENTER_SQUARES


def piece_value(piece: Piece) -> int:
    """Material value of ``piece`` at its level, extrapolated past the table."""
    table = C.PIECE_VALUES[piece.type]
    level = max(1, piece.level)
    if piece.type is PieceType.QUEEN:
        level = min(level, C.QUEEN_MAX_LEVEL)
    if level > len(table) and piece.type not in C.UNEXTRAPOLATED_TYPES:
        return table[-1] + (level - len(table)) * C.LEVEL_EXTRAPOLATION_STEP
    return table[min(level, len(table)) - 1]


def evaluate(state: GameState, perspective: Color) -> int:
    """
    Score ``state`` for ``perspective``.

    Example:
        >>> evaluate(GameState.initial(), Color.WHITE)
        0
    """
    winner = terminal_winner(state)
    if winner is not None:
        if winner == DRAW:
            return C.DRAW_SCORE
        magnitude = C.AUTO_CHECKMATE_SCORE if state.auto_checkmate else C.WIN_SCORE
        return magnitude if winner == perspective else -magnitude

    score = (
        evaluate_material(state, perspective)
        + evaluate_positional(state, perspective)
        + evaluate_king_safety(state, perspective)
        + evaluate_kill_streaks(state, perspective)
        + evaluate_abilities(state, perspective)
        + evaluate_anvils(state, perspective)
    )
    if state.extra_turn and state.current_player is perspective:
        score += C.EXTRA_TURN_BONUS
    return score


def _sign(piece: Piece, perspective: Color) -> int:
    return 1 if piece.color is perspective else -1


def evaluate_material(state: GameState, perspective: Color) -> int:
    return sum(piece_value(piece) * _sign(piece, perspective) for _, piece in state.pieces())


def evaluate_positional(state: GameState, perspective: Color) -> int:
    score = 0
    for sq, piece in state.pieces():
        sign = _sign(piece, perspective)
        rank = chess.square_rank(sq)

        if sq in CENTER_SQUARES:
            score += C.CENTER_BONUS * sign
        elif sq in NEAR_CENTER_SQUARES:
            score += C.NEAR_CENTER_BONUS * sign

        if piece.type in (PieceType.KNIGHT, PieceType.BISHOP) and not piece.has_moved:
            on_back_rank = rank == piece.color.back_rank
            if on_back_rank and state.move_counter > 4:
                score -= (C.DEVELOPMENT_BONUS // 2) * sign
            elif not on_back_rank:
                score += C.DEVELOPMENT_BONUS * sign

        if piece.type in PAWN_LIKE:
            distance = abs(rank - piece.color.promotion_rank)
            score += (6 - distance) * C.PAWN_ADVANCE_BONUS * sign
            if _is_isolated(state, sq, piece):
                score -= C.ISOLATED_PAWN_PENALTY * sign
            if _is_doubled(state, sq, piece):
                score -= C.DOUBLED_PAWN_PENALTY * sign
    return score


def _same_kind(other: Piece | None, piece: Piece) -> bool:
    return other is not None and other.type is piece.type and other.color is piece.color


def _is_isolated(state: GameState, sq: int, piece: Piece) -> bool:
    file = chess.square_file(sq)
    for neighbour_file in (file - 1, file + 1):
        if not 0 <= neighbour_file < 8:
            continue
        for rank in range(8):
            if _same_kind(state.piece_at(chess.square(neighbour_file, rank)), piece):
                return False
    return True


def _is_doubled(state: GameState, sq: int, piece: Piece) -> bool:
    file, rank = chess.square_file(sq), chess.square_rank(sq)
    for neighbour_rank in (rank - 1, rank + 1):
        if 0 <= neighbour_rank < 8 and _same_kind(state.piece_at(chess.square(file, neighbour_rank)), piece):
            return True
    return False


def evaluate_king_safety(state: GameState, perspective: Color) -> int:
    score = 0
    opponent = perspective.opponent

    king_sq = find_king(state, perspective)
    if king_sq is not None:
        if is_in_check(state, perspective):
            score -= C.OWN_KING_IN_CHECK_PENALTY
        shields = 0
        for file_delta in (-1, 0, 1):
            file = chess.square_file(king_sq) + file_delta
            rank = chess.square_rank(king_sq) + perspective.forward
            if 0 <= file < 8 and 0 <= rank < 8:
                shield = state.piece_at(chess.square(file, rank))
                if shield is not None and shield.type is PieceType.PAWN and shield.color is perspective:
                    shields += 1
        if shields < 2:
            score -= (2 - shields) * C.KING_SHIELD_PENALTY
        score -= count_line_threats(state, king_sq, opponent) * C.OWN_KING_THREAT_PENALTY

    enemy_king_sq = find_king(state, opponent)
    if enemy_king_sq is not None:
        if is_in_check(state, opponent):
            score += C.ENEMY_KING_IN_CHECK_BONUS
        score += count_line_threats(state, enemy_king_sq, perspective) * C.ENEMY_KING_THREAT_BONUS
    return score


def count_line_threats(state: GameState, target: int, attacker_color: Color) -> int:
    """
    Count ``attacker_color`` pieces aimed at ``target`` as if nothing blocked them.

    Queens and rooks on the same rank or file, queens and bishops on the same
    diagonal, and knights a knight's jump away. Blockers, levels and
    invulnerability are ignored; this is a cheap pressure estimate, not an
    attack test.
    """
    target_file, target_rank = chess.square_file(target), chess.square_rank(target)
    threats = 0
    for sq, piece in state.pieces(attacker_color):
        d_file = abs(chess.square_file(sq) - target_file)
        d_rank = abs(chess.square_rank(sq) - target_rank)
        if piece.type in (PieceType.QUEEN, PieceType.ROOK) and (d_file == 0 or d_rank == 0):
            threats += 1
        if piece.type in (PieceType.QUEEN, PieceType.BISHOP) and d_file == d_rank:
            threats += 1
        if piece.type is PieceType.KNIGHT and (d_file, d_rank) in ((1, 2), (2, 1)):
            threats += 1
    return threats


def _streak_score(streak: int) -> int:
    score = 0
    if streak >= 2:
        score += 10 * streak
    if streak == C.STREAK_RESURRECTION:
        score += 50
    if streak >= 5:
        score += 25
    if streak == C.STREAK_EXTRA_TURN:
        score += 150
    return score


def evaluate_kill_streaks(state: GameState, perspective: Color) -> int:
    own = state.kill_streaks.get(perspective, 0)
    enemy = state.kill_streaks.get(perspective.opponent, 0)
    return _streak_score(own) - _streak_score(enemy)


def evaluate_abilities(state: GameState, perspective: Color) -> int:
    score = 0
    for sq, piece in state.pieces():
        sign = _sign(piece, perspective)
        level = piece.level
        score += (level - 1) * C.LEVEL_BONUS * sign

        if piece.type is PieceType.QUEEN and level == C.QUEEN_MAX_LEVEL:
            score += C.CAPPED_QUEEN_BONUS * sign
        elif piece.type is PieceType.BISHOP and level >= C.BISHOP_PAWN_IMMUNITY_LEVEL:
            score += C.IMMUNE_BISHOP_BONUS * sign
        elif piece.type in PAWN_LIKE:
            distance = abs(chess.square_rank(sq) - piece.color.promotion_rank)
            score += (7 - distance) * C.PAWN_PROMOTION_POTENTIAL * sign
            if level >= C.PROMOTION_EXTRA_TURN_LEVEL:
                score += C.HIGH_LEVEL_PAWN_BONUS * sign
            if piece.type is PieceType.COMMANDER:
                score += C.COMMANDER_BONUS * sign
        elif piece.type is PieceType.HERO:
            score += C.HERO_BONUS * sign
        elif piece.type is PieceType.INFILTRATOR:
            distance = abs(chess.square_rank(sq) - piece.color.opponent.back_rank)
            score += (7 - distance) * C.INFILTRATOR_PROXIMITY_BONUS * sign
    return score


def evaluate_anvils(state: GameState, perspective: Color) -> int:
    own_king = find_king(state, perspective)
    enemy_king = find_king(state, perspective.opponent)
    score = 0
    for sq, cell in enumerate(state.board):
        if cell.item is not Item.ANVIL:
            continue
        if own_king is not None and chess.square_distance(sq, own_king) <= 2:
            score -= C.ANVIL_NEAR_KING_PENALTY
        if enemy_king is not None and chess.square_distance(sq, enemy_king) <= 2:
            score += C.ANVIL_NEAR_KING_PENALTY
    return score
