"""
Move ordering for alpha-beta: search the promising moves first.

Alpha-beta prunes most when the best move of a node is tried early, so every
node sorts its legal moves by score_move() before recursing. The score is a
cheap static guess and never touches the transition function:

    captures          victim value at its level, times 10
    promotions        level-1 value of the promoted type
    castling          flat bonus
    self-destruct     summed value of the enemy non-king neighbours
    destination       small bonus for the centre and the ring around it

A move onto a square holding an item scores lowest of all.
"""

import chess

from evochess import constants as C
from evochess.evaluate import CENTER_SQUARES, NEAR_CENTER_SQUARES, piece_value
from evochess.state import Color, GameState, Move, MoveKind, PieceType, neighbours

CAPTURE_WEIGHT = 10
CASTLE_BONUS = 25
CENTER_TARGET_BONUS = 5
NEAR_CENTER_TARGET_BONUS = 2
ITEM_TARGET_SCORE = -C.INFINITY


def score_move(state: GameState, move: Move, color: Color) -> int:
    target = state.board[move.to_square]
    if target.item is not None:
        return ITEM_TARGET_SCORE

    score = 0
    victim = target.piece
    if victim is not None and victim.color is not color:
        score += piece_value(victim) * CAPTURE_WEIGHT

    if move.kind is MoveKind.PROMOTION:
        score += C.PIECE_VALUES[move.promote_to or PieceType.QUEEN][0]
    elif move.kind is MoveKind.CASTLE:
        score += CASTLE_BONUS
    elif move.kind is MoveKind.SELF_DESTRUCT:
        for square, _, _ in neighbours(move.from_square):
            cell = state.board[square]
            piece = cell.piece
            if piece is not None and cell.item is None and piece.color is not color and piece.type is not PieceType.KING:
                score += piece_value(piece)

    if move.to_square in CENTER_SQUARES:
        score += CENTER_TARGET_BONUS
    elif move.to_square in NEAR_CENTER_SQUARES:
        score += NEAR_CENTER_TARGET_BONUS
    return score


def order_moves(state: GameState, moves: list[Move], color: Color) -> list[Move]:
    """Return ``moves`` sorted best-first; ties keep generation order."""
    return sorted(moves, key=lambda move: score_move(state, move, color), reverse=True)


def describe(move: Move, state: GameState) -> str:
    """Short human-readable form used in logs and the bench table, e.g. ``Ng1-f3``."""
    piece = state.piece_at(move.from_square)
    letter = ""
    if piece is not None and piece.type is not PieceType.PAWN:
        letter = "N" if piece.type is PieceType.KNIGHT else piece.type.value[0].upper()
    separator = "x" if state.piece_at(move.to_square) is not None and move.kind is MoveKind.CAPTURE else "-"
    text = f"{letter}{chess.square_name(move.from_square)}{separator}{chess.square_name(move.to_square)}"
    if move.kind is MoveKind.PROMOTION and move.promote_to is not None:
        text += f"={move.promote_to.value[0].upper()}"
    elif move.kind not in (MoveKind.MOVE, MoveKind.CAPTURE, MoveKind.PROMOTION):
        text += f" ({move.kind.value})"
    return text
