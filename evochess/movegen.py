"""
Move generation and terminal-state detection.

generate_pseudo_moves() lists every move a side's pieces can make under the
variant's geometry and level rules, without regard to its own king.
generate_legal_moves() then plays each candidate through the transition
function and keeps the ones that neither get rejected nor leave the mover in
check. That filter is the only place legality is decided: castling through
check, pins, moving an invulnerable-adjacent king and so on all fall out of
it without special cases.

Terminal detection lives here too because it needs the legal move count.
"""

import logging
import random
from typing import Callable, Iterator

import chess

from evochess import constants as C
from evochess import transition
from evochess.attacks import (
    find_king,
    is_in_check,
    is_piece_invulnerable,
    is_square_attacked,
)
from evochess.state import (
    DRAW,
    KNIGHT_LIKE,
    PAWN_LIKE,
    Color,
    GameState,
    Move,
    MoveKind,
    Piece,
    PieceType,
    offset,
)

logger = logging.getLogger(__name__)


def _target_kind(state: GameState, square: int | None, piece: Piece) -> MoveKind | None:
    """MOVE onto an empty square, CAPTURE of an attackable enemy, else None."""
    if square is None:
        return None
    cell = state.board[square]
    if cell.item is not None:
        return None
    if cell.piece is None:
        return MoveKind.MOVE
    if cell.piece.color is not piece.color and not is_piece_invulnerable(cell.piece, piece):
        return MoveKind.CAPTURE
    return None


def _promotions(from_sq: int, to_sq: int, piece: Piece) -> Iterator[Move]:
    choices = (PieceType.HERO,) if piece.type is PieceType.COMMANDER else C.PROMOTION_CHOICES
    for choice in choices:
        yield Move(from_sq, to_sq, MoveKind.PROMOTION, choice)


# ---------------------------------------------------------------------------
# Per-piece generators
# ---------------------------------------------------------------------------


def _pawn_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    """Pawns and commanders."""
    forward = piece.color.forward
    promotion_rank = piece.color.promotion_rank

    ahead = offset(sq, 0, forward)
    if ahead is not None and state.board[ahead].is_empty:
        if chess.square_rank(ahead) == promotion_rank:
            yield from _promotions(sq, ahead, piece)
        else:
            yield Move(sq, ahead, MoveKind.MOVE)
        two_ahead = offset(sq, 0, 2 * forward)
        if (
            chess.square_rank(sq) == piece.color.pawn_rank
            and not piece.has_moved
            and two_ahead is not None
            and state.board[two_ahead].is_empty
        ):
            yield Move(sq, two_ahead, MoveKind.MOVE)

    for file_delta in (-1, 1):
        diagonal = offset(sq, file_delta, forward)
        if diagonal is None:
            continue
        if _target_kind(state, diagonal, piece) is MoveKind.CAPTURE:
            if chess.square_rank(diagonal) == promotion_rank:
                yield from _promotions(sq, diagonal, piece)
            else:
                yield Move(sq, diagonal, MoveKind.CAPTURE)
        elif piece.type is PieceType.PAWN and diagonal == state.en_passant_square:
            if _en_passant_victim(state, diagonal, piece) is not None:
                yield Move(sq, diagonal, MoveKind.EN_PASSANT)

    if piece.level >= C.PAWN_BACKWARD_LEVEL:
        behind = offset(sq, 0, -forward)
        if behind is not None and state.board[behind].is_empty:
            yield Move(sq, behind, MoveKind.MOVE)

    if piece.level >= C.PAWN_SIDEWAYS_LEVEL:
        for file_delta in (-1, 1):
            side = offset(sq, file_delta, 0)
            if side is not None and state.board[side].is_empty:
                yield Move(sq, side, MoveKind.MOVE)


def _en_passant_victim(state: GameState, target: int, piece: Piece) -> int | None:
    """Square of the enemy pawn an en passant capture onto ``target`` removes."""
    if not state.board[target].is_empty:
        return None
    victim_sq = offset(target, 0, -piece.color.forward)
    if victim_sq is None:
        return None
    victim = state.board[victim_sq].piece
    if (
        victim is None
        or victim.color is piece.color
        or victim.type not in PAWN_LIKE
        or is_piece_invulnerable(victim, piece)
    ):
        return None
    return victim_sq


def _infiltrator_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    forward = piece.color.forward
    ahead = offset(sq, 0, forward)
    kind = _target_kind(state, ahead, piece)
    if kind is not None:
        yield Move(sq, ahead, kind)
    for file_delta in (-1, 1):
        diagonal = offset(sq, file_delta, forward)
        if _target_kind(state, diagonal, piece) is MoveKind.CAPTURE:
            yield Move(sq, diagonal, MoveKind.CAPTURE)


def _knight_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    """Knights and heroes."""
    for file_delta, rank_delta in C.KNIGHT_OFFSETS:
        target = offset(sq, file_delta, rank_delta)
        kind = _target_kind(state, target, piece)
        if kind is not None:
            yield Move(sq, target, kind)

    if piece.level >= C.KNIGHT_CARDINAL_STEP_LEVEL:
        for file_delta, rank_delta in C.CARDINAL_OFFSETS:
            target = offset(sq, file_delta, rank_delta)
            kind = _target_kind(state, target, piece)
            if kind is not None:
                yield Move(sq, target, kind)

    if piece.level >= C.KNIGHT_CARDINAL_JUMP_LEVEL:
        for file_delta, rank_delta in C.CARDINAL_OFFSETS:
            target = offset(sq, 3 * file_delta, 3 * rank_delta)
            if target is None:
                continue
            path = (offset(sq, file_delta, rank_delta), offset(sq, 2 * file_delta, 2 * rank_delta))
            if any(not state.board[step].is_empty for step in path):
                continue
            kind = _target_kind(state, target, piece)
            if kind is not None:
                yield Move(sq, target, kind)


def _sliding_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    phasing = piece.type is PieceType.BISHOP and piece.level >= C.BISHOP_PHASING_LEVEL
    for file_delta, rank_delta in C.SLIDING_RAYS[piece.type]:
        for distance in range(1, 8):
            target = offset(sq, distance * file_delta, distance * rank_delta)
            if target is None:
                break
            cell = state.board[target]
            if cell.item is not None:
                break
            if cell.piece is None:
                yield Move(sq, target, MoveKind.MOVE)
                continue
            if cell.piece.color is not piece.color:
                if not is_piece_invulnerable(cell.piece, piece):
                    yield Move(sq, target, MoveKind.CAPTURE)
                break
            if not phasing:
                break


def _king_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    enemy = piece.color.opponent
    reach = 2 if piece.level >= C.KING_EXTENDED_REACH_LEVEL else 1

    for file_delta, rank_delta in C.KING_OFFSETS:
        for distance in range(1, reach + 1):
            target = offset(sq, distance * file_delta, distance * rank_delta)
            if target is None:
                break
            if distance == 2:
                middle = offset(sq, file_delta, rank_delta)
                if not state.board[middle].is_empty or is_square_attacked(
                    state, middle, enemy, simplified=True
                ):
                    break
            kind = _target_kind(state, target, piece)
            if kind is not None:
                yield Move(sq, target, kind)

    if piece.level >= C.KING_KNIGHT_AGILITY_LEVEL:
        for file_delta, rank_delta in C.KNIGHT_OFFSETS:
            target = offset(sq, file_delta, rank_delta)
            kind = _target_kind(state, target, piece)
            if kind is not None:
                yield Move(sq, target, kind)

    if not piece.has_moved and not is_in_check(state, piece.color):
        for direction in (1, -1):
            if can_castle(state, sq, piece, direction):
                yield Move(sq, offset(sq, 2 * direction, 0), MoveKind.CASTLE)


def can_castle(state: GameState, king_sq: int, king: Piece, direction: int) -> bool:
    """
    Castling toward the h-file (direction 1) or the a-file (direction -1).

    The king and the corner rook must both be unmoved, every square between
    them empty, and the king's current, transit and destination squares not
    attacked.
    """
    if king.has_moved or offset(king_sq, 2 * direction, 0) is None:
        return False
    rank = chess.square_rank(king_sq)
    rook_sq = chess.square(7 if direction > 0 else 0, rank)
    rook = state.board[rook_sq].piece
    if rook is None or rook.type is not PieceType.ROOK or rook.color is not king.color or rook.has_moved:
        return False

    file = chess.square_file(king_sq) + direction
    while file != chess.square_file(rook_sq):
        if not state.board[chess.square(file, rank)].is_empty:
            return False
        file += direction

    enemy = king.color.opponent
    for step in range(3):
        if is_square_attacked(state, offset(king_sq, step * direction, 0), enemy, simplified=True):
            return False
    return True


def _special_moves(state: GameState, sq: int, piece: Piece) -> Iterator[Move]:
    """Swaps and self-destruct."""
    partners: frozenset[PieceType] = frozenset()
    if piece.type in KNIGHT_LIKE and piece.level >= C.KNIGHT_SWAP_LEVEL:
        partners = frozenset({PieceType.BISHOP})
    elif piece.type is PieceType.BISHOP and piece.level >= C.BISHOP_SWAP_LEVEL:
        partners = KNIGHT_LIKE
    if partners:
        for other_sq, other in state.pieces(piece.color):
            if other.type in partners and state.board[other_sq].item is None:
                yield Move(sq, other_sq, MoveKind.SWAP)

    if piece.type in KNIGHT_LIKE and piece.level >= C.KNIGHT_SELF_DESTRUCT_LEVEL:
        yield Move(sq, sq, MoveKind.SELF_DESTRUCT)


_GENERATORS: dict[PieceType, Callable[[GameState, int, Piece], Iterator[Move]]] = {
    PieceType.PAWN:        _pawn_moves,
    PieceType.COMMANDER:   _pawn_moves,
    PieceType.INFILTRATOR: _infiltrator_moves,
    PieceType.KNIGHT:      _knight_moves,
    PieceType.HERO:        _knight_moves,
    PieceType.BISHOP:      _sliding_moves,
    PieceType.ROOK:        _sliding_moves,
    PieceType.QUEEN:       _sliding_moves,
    PieceType.KING:        _king_moves,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def generate_piece_moves(state: GameState, sq: int, piece: Piece) -> list[Move]:
    moves = list(_GENERATORS[piece.type](state, sq, piece))
    moves.extend(_special_moves(state, sq, piece))
    return moves


def generate_pseudo_moves(state: GameState, color: Color) -> list[Move]:
    """All moves ``color`` could make if its own king's safety were ignored."""
    moves: list[Move] = []
    for sq, piece in state.pieces(color):
        moves.extend(generate_piece_moves(state, sq, piece))
    return moves


def generate_legal_moves(
    state: GameState,
    color: Color,
    rng: random.Random | None = None,
) -> list[Move]:
    """
    Pseudo moves that the transition function accepts and that leave
    ``color``'s king out of check afterwards.
    """
    rng = rng if rng is not None else random.Random(0)
    legal: list[Move] = []
    for move in generate_pseudo_moves(state, color):
        after = transition.apply_move(state, move, color, rng, detect_auto_checkmate=False)
        if after is state:
            continue
        if not is_in_check(after, color):
            legal.append(move)
    return legal


def terminal_winner(state: GameState) -> Color | str | None:
    """
    The decided result of ``state``, or None while the game is ongoing.

    Returns a Color for a win and DRAW for a stalemate. Checked in order: an
    already-flagged result, a missing king, an infiltrator on its enemy's back
    rank, and finally whether the side to move has any legal move.
    """
    if state.game_over:
        return state.winner if state.winner is not None else DRAW

    white_king = find_king(state, Color.WHITE)
    black_king = find_king(state, Color.BLACK)
    if white_king is None or black_king is None:
        if white_king is None and black_king is None:
            return DRAW
        return Color.BLACK if white_king is None else Color.WHITE

    for sq, piece in state.pieces():
        if piece.type is PieceType.INFILTRATOR and chess.square_rank(sq) == piece.color.opponent.back_rank:
            return piece.color

    mover = state.current_player
    if not generate_legal_moves(state, mover):
        return mover.opponent if is_in_check(state, mover) else DRAW
    return None


def is_game_over(state: GameState) -> bool:
    return terminal_winner(state) is not None


def resolve_outcome(state: GameState) -> GameState:
    """Return ``state`` with game_over/winner filled in when it is decided."""
    winner = terminal_winner(state)
    if winner is None or state.game_over:
        return state
    return state.evolve(game_over=True, winner=winner)
