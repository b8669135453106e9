"""
State transition: apply one move and every effect it triggers.

apply_move() is a pure function from (state, move, mover) to a new
GameState. It works on a _Scratch copy (a list of 64 squares plus small
mutable containers), so the input snapshot is never touched and unchanged
pieces are shared between the two snapshots.

A move is resolved in three stages:

1. Primary effect, selected by move.kind through _HANDLERS: the piece moves,
   captures, promotes, castles, self-destructs, swaps or captures en passant.
   A handler raises IllegalMoveError when the move's preconditions do not
   hold; apply_move() then returns the *input* state object unchanged, which
   the legality filter in movegen.py recognises and discards.

2. Post-move triggers, evaluated in a fixed order against the piece now on
   the destination square (only when it is the piece that moved):
   push-back, conversion, rook resurrection, queen sacrifice, king's
   dominion, commander rallying, infiltrator victory. The order matters when
   several fire on the same move and is kept exactly as listed.

3. Bookkeeping: kill streaks (and the resurrection / extra turn they grant),
   commander nomination, periodic anvil spawning and the turn handover,
   including auto-checkmate detection when the mover keeps the turn.

All randomness (conversion rolls, anvil placement, resurrection tie-breaks)
comes from the ``rng`` argument so that searches and tests can be replayed.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable

import chess

from evochess import constants as C
from evochess import movegen
from evochess.attacks import is_in_check, is_piece_invulnerable
from evochess.state import (
    KNIGHT_LIKE,
    PAWN_LIKE,
    Color,
    EngineError,
    GameState,
    Item,
    Move,
    MoveKind,
    Piece,
    PieceType,
    Square,
    neighbours,
    offset,
)

logger = logging.getLogger(__name__)

# Squares in board-display order: rank 8 first, file a first. Placement scans
# use it so that ties between equally good squares go to the upper-left one.
TOP_DOWN_SQUARES: tuple[int, ...] = tuple(
    chess.square(file, rank) for rank in range(7, -1, -1) for file in range(8)
)


class IllegalMoveError(EngineError):
    """A move's preconditions do not hold in the given state."""


@dataclass
class _Scratch:
    """
    Mutable working copy of a GameState for the duration of one move.

    Also records what the primary effect did, for the triggers to consult:
    ``kills`` counts enemy pieces removed this move (captures, self-destruct
    victims, anvil crushes) and ``moved_id`` is the id of the piece standing
    on the destination square, or None when no piece ended up there.
    """

    board: list[Square]
    captured: dict[Color, list[Piece]]
    kill_streaks: dict[Color, int]
    move_counter: int
    first_blood: bool
    first_blood_player: Color | None
    prior_en_passant: int | None
    en_passant_square: int | None = None
    extra_turn: bool = False
    game_over: bool = False
    winner: Color | str | None = None
    auto_checkmate: bool = False
    kills: int = 0
    moved_id: str | None = None

    @classmethod
    def from_state(cls, state: GameState) -> "_Scratch":
        return cls(
            board=list(state.board),
            captured={c: list(state.captured.get(c, ())) for c in Color},
            kill_streaks={c: state.kill_streaks.get(c, 0) for c in Color},
            move_counter=state.move_counter + 1,
            first_blood=state.first_blood,
            first_blood_player=state.first_blood_player,
            prior_en_passant=state.en_passant_square,
        )

    def piece(self, square: int) -> Piece | None:
        return self.board[square].piece

    def item(self, square: int) -> Item | None:
        return self.board[square].item

    def put(self, square: int, piece: Piece | None) -> None:
        self.board[square] = Square(piece=piece, item=self.board[square].item)

    def put_item(self, square: int, item: Item | None) -> None:
        self.board[square] = Square(piece=self.board[square].piece, item=item)

    def place(self, from_sq: int, to_sq: int, piece: Piece) -> None:
        self.put(from_sq, None)
        self.put(to_sq, piece)
        self.moved_id = piece.id

    def freeze(self, current_player: Color) -> GameState:
        return GameState(
            board=tuple(self.board),
            current_player=current_player,
            captured={c: tuple(pieces) for c, pieces in self.captured.items()},
            kill_streaks=dict(self.kill_streaks),
            extra_turn=self.extra_turn,
            move_counter=self.move_counter,
            game_over=self.game_over,
            winner=self.winner,
            auto_checkmate=self.auto_checkmate,
            first_blood=self.first_blood,
            first_blood_player=self.first_blood_player,
            en_passant_square=self.en_passant_square,
        )


def level_after_capture(piece: Piece, victim: Piece) -> int:
    """Level of ``piece`` after capturing ``victim`` (queens clamp at the cap)."""
    level = piece.level + C.CAPTURE_LEVEL_BONUS.get(victim.type, 1)
    if piece.type is PieceType.QUEEN:
        level = min(level, C.QUEEN_MAX_LEVEL)
    return level


def _capture_onto(work: _Scratch, square: int, piece: Piece) -> Piece:
    """Validate and record the capture of the piece on ``square``; return the victim."""
    if work.item(square) is not None:
        raise IllegalMoveError("target square holds an item")
    victim = work.piece(square)
    if victim is None or victim.color is piece.color:
        raise IllegalMoveError("no enemy piece to capture")
    if is_piece_invulnerable(victim, piece):
        raise IllegalMoveError(f"{victim.type.value} is invulnerable to {piece.type.value}")
    work.captured[piece.color].append(victim)
    work.kills += 1
    return victim


# ---------------------------------------------------------------------------
# Primary effects
# ---------------------------------------------------------------------------


def _do_move(work: _Scratch, move: Move, piece: Piece) -> None:
    if not work.board[move.to_square].is_empty:
        raise IllegalMoveError("destination is occupied")
    work.place(move.from_square, move.to_square, piece.evolve(has_moved=True))
    rank_span = chess.square_rank(move.to_square) - chess.square_rank(move.from_square)
    if piece.type in PAWN_LIKE and abs(rank_span) == 2:
        work.en_passant_square = offset(move.from_square, 0, piece.color.forward)


def _do_capture(work: _Scratch, move: Move, piece: Piece) -> None:
    victim = _capture_onto(work, move.to_square, piece)
    level = level_after_capture(piece, victim)
    moved = piece.evolve(level=level, has_moved=True)
    if piece.type is PieceType.PAWN and victim.type is PieceType.COMMANDER:
        moved = moved.evolve(type=PieceType.COMMANDER, id=f"{piece.id}_cmdr")
    if piece.type is PieceType.ROOK and level >= C.ROOK_INVULNERABILITY_LEVEL and level > piece.level:
        moved = moved.evolve(invulnerable_turns=C.ROOK_INVULNERABLE_TURNS)
    work.place(move.from_square, move.to_square, moved)


def _do_promotion(work: _Scratch, move: Move, piece: Piece) -> None:
    if piece.type not in PAWN_LIKE:
        raise IllegalMoveError("only pawns and commanders promote")
    if chess.square_rank(move.to_square) != piece.color.promotion_rank:
        raise IllegalMoveError("promotion must reach the far rank")
    if work.item(move.to_square) is not None:
        raise IllegalMoveError("target square holds an item")

    level = 1
    if work.piece(move.to_square) is not None:
        victim = _capture_onto(work, move.to_square, piece)
        level = 1 + C.CAPTURE_LEVEL_BONUS.get(victim.type, 1)

    if piece.type is PieceType.COMMANDER:
        new_type, new_id = PieceType.HERO, f"{piece.id}_hero"
    else:
        new_type, new_id = move.promote_to or PieceType.QUEEN, piece.id
        if new_type not in C.PROMOTION_CHOICES:
            raise IllegalMoveError(f"cannot promote to {new_type.value}")
    if new_type is PieceType.QUEEN:
        level = min(level, C.QUEEN_MAX_LEVEL)
    work.place(
        move.from_square,
        move.to_square,
        piece.evolve(id=new_id, type=new_type, level=level, has_moved=True),
    )


def _do_castle(work: _Scratch, move: Move, piece: Piece) -> None:
    if piece.type is not PieceType.KING or piece.has_moved:
        raise IllegalMoveError("castling needs an unmoved king")
    file_span = chess.square_file(move.to_square) - chess.square_file(move.from_square)
    if abs(file_span) != 2 or chess.square_rank(move.to_square) != chess.square_rank(move.from_square):
        raise IllegalMoveError("castling moves the king two files")
    direction = 1 if file_span > 0 else -1
    rook_from = chess.square(7 if direction > 0 else 0, chess.square_rank(move.from_square))
    rook_to = offset(move.from_square, direction, 0)
    rook = work.piece(rook_from)
    if rook is None or rook.type is not PieceType.ROOK or rook.color is not piece.color or rook.has_moved:
        raise IllegalMoveError("castling needs an unmoved rook")
    if not work.board[move.to_square].is_empty or not work.board[rook_to].is_empty:
        raise IllegalMoveError("castling path is blocked")
    work.put(rook_from, None)
    work.put(rook_to, rook.evolve(has_moved=True))
    work.place(move.from_square, move.to_square, piece.evolve(has_moved=True))


def _do_self_destruct(work: _Scratch, move: Move, piece: Piece) -> None:
    if piece.type not in KNIGHT_LIKE or piece.level < C.KNIGHT_SELF_DESTRUCT_LEVEL:
        raise IllegalMoveError("self-destruct needs a high-level knight or hero")
    if move.to_square != move.from_square:
        raise IllegalMoveError("self-destruct does not move")
    for square, _, _ in neighbours(move.from_square):
        if work.item(square) is not None:
            work.put_item(square, None)
        victim = work.piece(square)
        if victim is None or victim.color is piece.color or victim.type is PieceType.KING:
            continue
        if victim.type is not PieceType.QUEEN and is_piece_invulnerable(victim, piece):
            continue
        work.captured[piece.color].append(victim)
        work.put(square, None)
        work.kills += 1
    work.put(move.from_square, None)
    work.moved_id = None


def _do_swap(work: _Scratch, move: Move, piece: Piece) -> None:
    partner = work.piece(move.to_square)
    if partner is None or partner.color is not piece.color or work.item(move.to_square) is not None:
        raise IllegalMoveError("swap needs an allied partner")
    knight_with_bishop = (
        piece.type in KNIGHT_LIKE
        and piece.level >= C.KNIGHT_SWAP_LEVEL
        and partner.type is PieceType.BISHOP
    )
    bishop_with_knight = (
        piece.type is PieceType.BISHOP
        and piece.level >= C.BISHOP_SWAP_LEVEL
        and partner.type in KNIGHT_LIKE
    )
    if not (knight_with_bishop or bishop_with_knight):
        raise IllegalMoveError("pieces cannot swap")
    work.put(move.from_square, partner.evolve(has_moved=True))
    work.put(move.to_square, piece.evolve(has_moved=True))
    work.moved_id = piece.id


def _do_en_passant(work: _Scratch, move: Move, piece: Piece) -> None:
    if piece.type is not PieceType.PAWN:
        raise IllegalMoveError("only pawns capture en passant")
    if move.to_square != work.prior_en_passant or not work.board[move.to_square].is_empty:
        raise IllegalMoveError("no en passant target")
    victim_sq = offset(move.to_square, 0, -piece.color.forward)
    victim = work.piece(victim_sq) if victim_sq is not None else None
    if victim is None or victim.type not in PAWN_LIKE:
        raise IllegalMoveError("no pawn to capture en passant")
    victim = _capture_onto(work, victim_sq, piece)
    work.put(victim_sq, None)
    work.place(
        move.from_square,
        move.to_square,
        piece.evolve(
            id=f"{piece.id}_inf",
            type=PieceType.INFILTRATOR,
            level=level_after_capture(piece, victim),
            has_moved=True,
        ),
    )


_HANDLERS: dict[MoveKind, Callable[[_Scratch, Move, Piece], None]] = {
    MoveKind.MOVE:          _do_move,
    MoveKind.CAPTURE:       _do_capture,
    MoveKind.PROMOTION:     _do_promotion,
    MoveKind.CASTLE:        _do_castle,
    MoveKind.SELF_DESTRUCT: _do_self_destruct,
    MoveKind.SWAP:          _do_swap,
    MoveKind.EN_PASSANT:    _do_en_passant,
}


# ---------------------------------------------------------------------------
# Triggered effects
# ---------------------------------------------------------------------------


def _push_back(work: _Scratch, square: int, color: Color) -> None:
    """
    Shove adjacent enemy pieces and anvils one square further away.

    A piece only moves into an empty square. An anvil pushed off the board
    disappears; pushed onto a non-king piece it crushes it (the crushed piece
    is not added to any captured list) and takes its square.
    """
    for adjacent, file_delta, rank_delta in neighbours(square):
        cell = work.board[adjacent]
        destination = offset(adjacent, file_delta, rank_delta)
        if cell.item is Item.ANVIL:
            if destination is None:
                work.put_item(adjacent, None)
                continue
            landing = work.board[destination]
            if landing.item is not None:
                continue
            if landing.piece is not None:
                if landing.piece.type is PieceType.KING:
                    continue
                work.board[destination] = Square(item=Item.ANVIL)
                work.kills += 1
            else:
                work.put_item(destination, Item.ANVIL)
            work.put_item(adjacent, None)
        elif cell.piece is not None and cell.piece.color is not color:
            if destination is not None and work.board[destination].is_empty:
                work.put(destination, cell.piece)
                work.put(adjacent, None)


def _convert(work: _Scratch, square: int, actor: Piece, rng: random.Random) -> None:
    for adjacent, _, _ in neighbours(square):
        cell = work.board[adjacent]
        target = cell.piece
        if cell.item is not None or target is None:
            continue
        if target.color is actor.color or target.type is PieceType.KING:
            continue
        if rng.random() < C.CONVERSION_PROBABILITY:
            work.put(adjacent, target.evolve(color=actor.color, id=f"{target.id}_conv{work.move_counter}"))


def _resurrect(work: _Scratch, color: Color, rng: random.Random) -> None:
    """
    Bring back ``color``'s most valuable lost piece at level 1.

    The pool is the opponent's captured list. The piece lands on an empty
    square of ``color``'s own half (ranks 2-4 for White, 5-7 for Black),
    nearest the centre of its home ranks, or on any empty square if that
    half is full.
    """
    pool = work.captured[color.opponent]
    if not pool:
        return
    chosen = max(pool, key=lambda p: C.PIECE_VALUES[p.type][0])

    empties = [sq for sq in TOP_DOWN_SQUARES if work.board[sq].is_empty]
    if not empties:
        return
    if color is Color.WHITE:
        preferred = [sq for sq in empties if 1 <= chess.square_rank(sq) <= 3]
        home = 1
    else:
        preferred = [sq for sq in empties if 4 <= chess.square_rank(sq) <= 6]
        home = 6
    candidates = preferred or empties
    if len(candidates) > 2:
        target = min(
            candidates,
            key=lambda sq: abs(chess.square_file(sq) - 3.5) + abs(chess.square_rank(sq) - home),
        )
    else:
        target = rng.choice(candidates)

    revived = chosen.evolve(
        id=f"{chosen.id}_res{work.move_counter}",
        color=color,
        level=1,
        has_moved=chosen.type not in (PieceType.KING, PieceType.ROOK),
        invulnerable_turns=0,
    )
    if chess.square_rank(target) == color.promotion_rank and revived.type in PAWN_LIKE:
        promoted = PieceType.QUEEN if revived.type is PieceType.PAWN else PieceType.HERO
        revived = revived.evolve(type=promoted, id=f"{revived.id}_promo")
    pool.remove(chosen)
    work.put(target, revived)
    logger.debug("Resurrected %s on %s", revived.id, chess.square_name(target))


def _sacrifice_pawn(work: _Scratch, color: Color) -> None:
    """Hand one of ``color``'s pawns or commanders to the opponent's captured list."""
    for square, cell in enumerate(work.board):
        piece = cell.piece
        if piece is not None and piece.color is color and piece.type in PAWN_LIKE:
            work.put(square, None)
            work.captured[color.opponent].append(piece.evolve(id=f"{piece.id}_sac"))
            return


def _kings_dominion(work: _Scratch, color: Color, levels: int) -> None:
    for square, cell in enumerate(work.board):
        piece = cell.piece
        if piece is not None and piece.color is not color and piece.type is PieceType.QUEEN:
            work.put(square, piece.evolve(level=max(1, piece.level - levels)))


def _rally(work: _Scratch, commander: Piece) -> None:
    for square, cell in enumerate(work.board):
        piece = cell.piece
        if (
            piece is not None
            and piece.color is commander.color
            and piece.type is PieceType.PAWN
            and piece.id != commander.id
        ):
            work.put(square, piece.evolve(level=piece.level + 1))


def select_commander_candidate(board: list[Square] | tuple[Square, ...], color: Color) -> int | None:
    """
    Pick the level-1 pawn best suited to become ``color``'s commander.

    Central files (c-f) score 10; a pawn on its third rank scores 5 more and
    on its fourth rank 8 more. Ties go to the square met first in
    TOP_DOWN_SQUARES.
    """
    best_sq, best_score = None, -1
    for square in TOP_DOWN_SQUARES:
        piece = board[square].piece
        if piece is None or piece.color is not color or piece.type is not PieceType.PAWN or piece.level != 1:
            continue
        score = 10 if 2 <= chess.square_file(square) <= 5 else 0
        relative_rank = chess.square_rank(square) if color is Color.WHITE else 7 - chess.square_rank(square)
        score += {2: 5, 3: 8}.get(relative_rank, 0)
        if score > best_score:
            best_sq, best_score = square, score
    return best_sq


def _run_triggers(
    work: _Scratch,
    move: Move,
    mover: Color,
    type_before: PieceType,
    level_before: int,
    rng: random.Random,
) -> None:
    actor = work.piece(move.to_square)
    if actor is None or actor.id != work.moved_id:
        return
    kind = move.kind
    # Removals made by the primary effect itself, before any anvil crush.
    captures = work.kills

    # 1. Push-back
    if (
        actor.type in PAWN_LIKE
        and actor.level >= C.PAWN_PUSH_BACK_LEVEL
        and kind in (MoveKind.MOVE, MoveKind.CAPTURE)
    ):
        _push_back(work, move.to_square, actor.color)

    # 2. Conversion
    if (
        actor.type in (PieceType.BISHOP, PieceType.HERO)
        and actor.level >= C.CONVERSION_LEVEL
        and kind in (MoveKind.MOVE, MoveKind.CAPTURE)
    ):
        _convert(work, move.to_square, actor, rng)

    # 3. Rook resurrection
    if actor.type is PieceType.ROOK and actor.level >= C.ROOK_RESURRECTION_LEVEL and actor.level > level_before:
        _resurrect(work, mover, rng)

    # 4. Queen sacrifice
    if actor.type is PieceType.QUEEN and actor.level == C.QUEEN_MAX_LEVEL:
        promoted_to_cap = kind is MoveKind.PROMOTION and move.promote_to is PieceType.QUEEN
        levelled_to_cap = (
            kind is not MoveKind.PROMOTION
            and type_before is PieceType.QUEEN
            and level_before < C.QUEEN_MAX_LEVEL
        )
        if promoted_to_cap or levelled_to_cap:
            _sacrifice_pawn(work, mover)

    # 5. King's dominion
    if actor.type is PieceType.KING and actor.level > level_before:
        _kings_dominion(work, mover, actor.level - level_before)

    # 6. Commander rallying
    if work.kills and not work.first_blood:
        work.first_blood = True
        work.first_blood_player = mover
    if captures and actor.type is PieceType.COMMANDER:
        _rally(work, actor)

    # 7. Infiltrator victory
    if actor.type is PieceType.INFILTRATOR and chess.square_rank(move.to_square) == mover.opponent.back_rank:
        work.game_over = True
        work.winner = mover


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_move(
    state: GameState,
    move: Move,
    mover: Color,
    rng: random.Random | None = None,
    detect_auto_checkmate: bool = True,
) -> GameState:
    """
    Return the state after ``mover`` plays ``move``.

    Never raises for bad input: a move whose preconditions fail leaves the
    game untouched and the very same ``state`` object is returned, so callers
    can detect rejection with ``result is state``.

    Args:
        state:  Snapshot to move from. Not modified.
        move:   The move to play.
        mover:  Side making the move; need not equal state.current_player
                (the search plays extra turns and hypothetical replies).
        rng:    Random source for conversions, anvil spawns and resurrection
                tie-breaks. A fresh unseeded one is used when omitted.
        detect_auto_checkmate: When the mover earns an extra turn, check
                whether the opponent is mated on the spot. The legality
                filter switches this off because it only needs the mover's
                own check status.
    """
    rng = rng if rng is not None else random.Random()
    try:
        return _apply(state, move, mover, rng, detect_auto_checkmate)
    except IllegalMoveError as exc:
        logger.debug("Rejected %s by %s: %s", move, mover.value, exc)
        return state


def _apply(
    state: GameState,
    move: Move,
    mover: Color,
    rng: random.Random,
    detect_auto_checkmate: bool,
) -> GameState:
    if state.game_over:
        raise IllegalMoveError("game is over")
    if not (0 <= move.from_square < 64 and 0 <= move.to_square < 64):
        raise IllegalMoveError("square off the board")
    handler = _HANDLERS.get(move.kind)
    if handler is None:
        raise IllegalMoveError(f"unknown move kind {move.kind!r}")

    work = _Scratch.from_state(state)

    # The mover's invulnerability counters run out as its next turn begins.
    for square, cell in enumerate(work.board):
        piece = cell.piece
        if piece is not None and piece.color is mover and piece.invulnerable_turns > 0:
            work.put(square, piece.evolve(invulnerable_turns=piece.invulnerable_turns - 1))

    piece = work.piece(move.from_square)
    if piece is None or piece.color is not mover:
        raise IllegalMoveError("no piece of the mover on the source square")
    type_before, level_before = piece.type, piece.level

    handler(work, move, piece)
    _run_triggers(work, move, mover, type_before, level_before, rng)

    opponent = mover.opponent
    if work.kills:
        if not work.first_blood:
            work.first_blood = True
            work.first_blood_player = mover
        gained = work.kills if move.kind is MoveKind.SELF_DESTRUCT else 1
        work.kill_streaks[mover] += gained
        work.kill_streaks[opponent] = 0
        if work.kill_streaks[mover] == C.STREAK_RESURRECTION:
            _resurrect(work, mover, rng)
        high_level_promotion = (
            move.kind is MoveKind.PROMOTION
            and type_before in PAWN_LIKE
            and level_before >= C.PROMOTION_EXTRA_TURN_LEVEL
        )
        if work.kill_streaks[mover] == C.STREAK_EXTRA_TURN or high_level_promotion:
            work.extra_turn = True
    else:
        work.kill_streaks[mover] = 0

    # Commander nomination is deferred to the end of the first-blood owner's move.
    if work.first_blood and work.first_blood_player is mover:
        has_commander = any(
            cell.piece is not None and cell.piece.color is mover and cell.piece.type is PieceType.COMMANDER
            for cell in work.board
        )
        if not has_commander:
            candidate = select_commander_candidate(work.board, mover)
            if candidate is not None:
                pawn = work.piece(candidate)
                work.put(candidate, pawn.evolve(type=PieceType.COMMANDER, id=f"{pawn.id}_cmdr"))

    if work.move_counter % C.ANVIL_SPAWN_PERIOD == 0:
        empties = [sq for sq in range(64) if work.board[sq].is_empty]
        if empties:
            work.put_item(rng.choice(empties), Item.ANVIL)

    if not work.extra_turn:
        return work.freeze(current_player=opponent)

    new_state = work.freeze(current_player=mover)
    if detect_auto_checkmate and not new_state.game_over and is_in_check(new_state, opponent):
        if not movegen.generate_legal_moves(new_state, opponent, rng):
            logger.debug("Auto-checkmate by %s after %s", mover.value, move)
            new_state = new_state.evolve(game_over=True, winner=mover, auto_checkmate=True)
    return new_state
