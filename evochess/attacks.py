"""
Attack and legality oracle.

Answers three questions about a snapshot: can this piece attack that square,
is a square attacked by a side, and is a side's king in check. Move
generation and the transition function both build on these answers.

Kings with extended reach complicate the picture. A level-2 king may step two
squares only when the square it crosses is not attacked, and checking that
square means asking whether the *enemy* king attacks it, which would in turn
ask about the enemy king's own extended reach. The ``simplified`` flag breaks
that cycle: in simplified mode a king only attacks the eight adjacent
squares and never uses its level abilities.
"""

import chess

from evochess import constants as C
from evochess.state import KNIGHT_LIKE, PAWN_LIKE, Color, GameState, Piece, PieceType


def is_piece_invulnerable(target: Piece | None, attacker: Piece | None) -> bool:
    """
    Return True when ``attacker`` may not attack ``target`` at all.

    - A queen at the level cap is immune to strictly lower-level attackers.
    - A bishop at BISHOP_PAWN_IMMUNITY_LEVEL is immune to pawns and commanders.
    - Any piece with a running invulnerability counter is immune.
    """
    if target is None or attacker is None:
        return False
    if target.type is PieceType.QUEEN and target.level >= C.QUEEN_MAX_LEVEL and attacker.level < target.level:
        return True
    if (
        target.type is PieceType.BISHOP
        and target.level >= C.BISHOP_PAWN_IMMUNITY_LEVEL
        and attacker.type in PAWN_LIKE
    ):
        return True
    return target.invulnerable_turns > 0


def find_king(state: GameState, color: Color) -> int | None:
    """Square of ``color``'s king (the first one found), or None."""
    for square, piece in state.pieces(color):
        if piece.type is PieceType.KING:
            return square
    return None


def is_path_clear(state: GameState, from_sq: int, to_sq: int, piece: Piece) -> bool:
    """
    True if every square strictly between ``from_sq`` and ``to_sq`` is passable.

    The squares must share a rank, file or diagonal. Items always block.
    Pieces block, except that a bishop at BISHOP_PHASING_LEVEL passes through
    pieces of its own color.
    """
    file_step = _sign(chess.square_file(to_sq) - chess.square_file(from_sq))
    rank_step = _sign(chess.square_rank(to_sq) - chess.square_rank(from_sq))
    phasing = piece.type is PieceType.BISHOP and piece.level >= C.BISHOP_PHASING_LEVEL

    file = chess.square_file(from_sq) + file_step
    rank = chess.square_rank(from_sq) + rank_step
    while (file, rank) != (chess.square_file(to_sq), chess.square_rank(to_sq)):
        if not (0 <= file < 8 and 0 <= rank < 8):
            return False
        cell = state.board[chess.square(file, rank)]
        if cell.item is not None:
            return False
        if cell.piece is not None and not (phasing and cell.piece.color is piece.color):
            return False
        file += file_step
        rank += rank_step
    return True


def can_attack(
    state: GameState,
    from_sq: int,
    to_sq: int,
    piece: Piece,
    simplified: bool = False,
) -> bool:
    """
    Return True if ``piece`` standing on ``from_sq`` attacks ``to_sq``.

    The target square may be empty. Squares holding an item are never
    attacked, and neither are pieces that are invulnerable to ``piece``.
    """
    target = state.board[to_sq]
    if target.item is not None or from_sq == to_sq:
        return False
    if target.piece is not None and is_piece_invulnerable(target.piece, piece):
        return False

    d_file = chess.square_file(to_sq) - chess.square_file(from_sq)
    d_rank = chess.square_rank(to_sq) - chess.square_rank(from_sq)
    kind = piece.type

    if kind in PAWN_LIKE:
        return d_rank == piece.color.forward and abs(d_file) == 1

    if kind is PieceType.INFILTRATOR:
        return d_rank == piece.color.forward and abs(d_file) <= 1

    if kind in KNIGHT_LIKE:
        return _knight_reaches(state, from_sq, d_file, d_rank, piece.level)

    if kind in C.SLIDING_RAYS:
        diagonal = abs(d_file) == abs(d_rank)
        straight = d_file == 0 or d_rank == 0
        if kind is PieceType.BISHOP and not diagonal:
            return False
        if kind is PieceType.ROOK and not straight:
            return False
        if kind is PieceType.QUEEN and not (diagonal or straight):
            return False
        return is_path_clear(state, from_sq, to_sq, piece)

    if kind is PieceType.KING:
        return _king_reaches(state, from_sq, d_file, d_rank, piece.level, simplified)

    return False


def _knight_reaches(state: GameState, from_sq: int, d_file: int, d_rank: int, level: int) -> bool:
    if (abs(d_file), abs(d_rank)) in ((1, 2), (2, 1)):
        return True
    if level >= C.KNIGHT_CARDINAL_STEP_LEVEL and abs(d_file) + abs(d_rank) == 1:
        return True
    if level >= C.KNIGHT_CARDINAL_JUMP_LEVEL and (abs(d_file), abs(d_rank)) in ((0, 3), (3, 0)):
        return _jump_path_clear(state, from_sq, _sign(d_file), _sign(d_rank))
    return False


def _jump_path_clear(state: GameState, from_sq: int, file_step: int, rank_step: int) -> bool:
    """The two squares a three-square cardinal jump passes over must be empty."""
    file, rank = chess.square_file(from_sq), chess.square_rank(from_sq)
    for distance in (1, 2):
        if not state.board[chess.square(file + distance * file_step, rank + distance * rank_step)].is_empty:
            return False
    return True


def _king_reaches(
    state: GameState,
    from_sq: int,
    d_file: int,
    d_rank: int,
    level: int,
    simplified: bool,
) -> bool:
    reach = 2 if level >= C.KING_EXTENDED_REACH_LEVEL and not simplified else 1
    on_ray = d_file == 0 or d_rank == 0 or abs(d_file) == abs(d_rank)
    if on_ray and max(abs(d_file), abs(d_rank)) <= reach:
        if max(abs(d_file), abs(d_rank)) == 2:
            middle = chess.square(
                chess.square_file(from_sq) + _sign(d_file),
                chess.square_rank(from_sq) + _sign(d_rank),
            )
            return state.board[middle].is_empty
        return True
    if level >= C.KING_KNIGHT_AGILITY_LEVEL and not simplified:
        return (abs(d_file), abs(d_rank)) in ((1, 2), (2, 1))
    return False


def is_square_attacked(
    state: GameState,
    square: int,
    attacker_color: Color,
    simplified: bool = False,
) -> bool:
    """True if any piece of ``attacker_color`` attacks ``square``."""
    for from_sq, piece in state.pieces(attacker_color):
        if can_attack(state, from_sq, square, piece, simplified):
            return True
    return False


def is_in_check(state: GameState, color: Color) -> bool:
    """
    True if ``color``'s king is attacked.

    A side without a king is treated as in check: the position is already
    decided and no move can repair it.
    """
    king_sq = find_king(state, color)
    if king_sq is None:
        return True
    return is_square_attacked(state, king_sq, color.opponent)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)
