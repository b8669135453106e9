"""
Value types shared by every engine module: colors, piece types, pieces,
squares, moves, and the immutable GameState snapshot.

Squares are python-chess square indices (0..63, a1 == 0). Rank index 0 is
White's back rank, so White advances toward rank index 7 and Black toward 0.
Algebraic names are produced and parsed with chess.square_name and
chess.parse_square.

A GameState is never mutated once built. The transition function copies the
64-slot square tuple, edits the copy, and freezes it into a new snapshot.
Pieces and squares are frozen dataclasses, so unchanged squares are shared
between the old and the new snapshot instead of being deep-copied.

Input coming from outside the engine (JSON from the web adapter, hand-built
test positions) goes through board_from_rows / GameState.from_dict, which
tolerate missing rows, null squares and bad levels by substituting empty
squares and level 1.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Sequence

import chess


class Color(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> Color:
        return Color.BLACK if self is Color.WHITE else Color.WHITE

    @property
    def forward(self) -> int:
        """Rank delta of one step toward the enemy back rank."""
        return 1 if self is Color.WHITE else -1

    @property
    def back_rank(self) -> int:
        return 0 if self is Color.WHITE else 7

    @property
    def promotion_rank(self) -> int:
        return 7 if self is Color.WHITE else 0

    @property
    def pawn_rank(self) -> int:
        return 1 if self is Color.WHITE else 6


class PieceType(str, Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"
    COMMANDER = "commander"
    HERO = "hero"
    INFILTRATOR = "infiltrator"


# Pawn-like units share forward movement, diagonal attacks and push-back.
PAWN_LIKE = frozenset({PieceType.PAWN, PieceType.COMMANDER})
# Knight-like units share the knight's geometry and level abilities.
KNIGHT_LIKE = frozenset({PieceType.KNIGHT, PieceType.HERO})


class Item(str, Enum):
    ANVIL = "anvil"


class MoveKind(str, Enum):
    MOVE = "move"
    CAPTURE = "capture"
    PROMOTION = "promotion"
    CASTLE = "castle"
    SELF_DESTRUCT = "self-destruct"
    SWAP = "swap"
    EN_PASSANT = "en-passant"


DRAW = "draw"


class EngineError(Exception):
    """Base class for errors raised inside the engine."""


@dataclass(frozen=True)
class Piece:
    """
    A unit on the board.

    Attributes:
        id:                 Identity, stable while the piece lives. Rewritten
                            with a suffix when the piece changes type or side.
        type:               PieceType.
        color:              Owning side.
        level:              Experience level, >= 1. Queens cap at 7.
        has_moved:          Used by castling and the pawn double step.
        invulnerable_turns: While positive the piece cannot be attacked.
    """

    id: str
    type: PieceType
    color: Color
    level: int = 1
    has_moved: bool = False
    invulnerable_turns: int = 0

    def evolve(self, **changes: Any) -> Piece:
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Square:
    piece: Piece | None = None
    item: Item | None = None

    @property
    def is_empty(self) -> bool:
        return self.piece is None and self.item is None


EMPTY_SQUARE = Square()


@dataclass(frozen=True)
class Move:
    """
    A move request. ``kind`` selects the handler in transition.apply_move.

    Self-destruct moves have ``to_square == from_square``. ``promote_to`` is
    only meaningful for PROMOTION.
    """

    from_square: int
    to_square: int
    kind: MoveKind = MoveKind.MOVE
    promote_to: PieceType | None = None

    def __str__(self) -> str:
        text = f"{chess.square_name(self.from_square)}{chess.square_name(self.to_square)}"
        if self.kind is MoveKind.PROMOTION and self.promote_to is not None:
            text += f"={self.promote_to.value}"
        elif self.kind not in (MoveKind.MOVE, MoveKind.CAPTURE):
            text += f"({self.kind.value})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": chess.square_name(self.from_square),
            "to": chess.square_name(self.to_square),
            "type": self.kind.value,
            "promote_to": self.promote_to.value if self.promote_to else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Move:
        promote_to = data.get("promote_to") or data.get("promoteTo")
        return cls(
            from_square=chess.parse_square(data["from"]),
            to_square=chess.parse_square(data["to"]),
            kind=MoveKind(data.get("type") or MoveKind.MOVE.value),
            promote_to=PieceType(promote_to) if promote_to else None,
        )


def offset(square: int, file_delta: int, rank_delta: int) -> int | None:
    """Return the square shifted by the given deltas, or None off the board."""
    file = chess.square_file(square) + file_delta
    rank = chess.square_rank(square) + rank_delta
    if 0 <= file < 8 and 0 <= rank < 8:
        return chess.square(file, rank)
    return None


def neighbours(square: int) -> Iterator[tuple[int, int, int]]:
    """Yield (square, file_delta, rank_delta) for the up to eight adjacent squares."""
    for rank_delta in (-1, 0, 1):
        for file_delta in (-1, 0, 1):
            if file_delta == 0 and rank_delta == 0:
                continue
            target = offset(square, file_delta, rank_delta)
            if target is not None:
                yield target, file_delta, rank_delta


def _empty_board() -> tuple[Square, ...]:
    return (EMPTY_SQUARE,) * 64


@dataclass(frozen=True)
class GameState:
    """
    Immutable snapshot of a game in progress.

    ``captured[c]`` holds the pieces that side ``c`` has captured, i.e. enemy
    pieces. It is the pool that ``c``'s *opponent* resurrects from.
    """

    board: tuple[Square, ...] = field(default_factory=_empty_board)
    current_player: Color = Color.WHITE
    captured: Mapping[Color, tuple[Piece, ...]] = field(
        default_factory=lambda: {Color.WHITE: (), Color.BLACK: ()}
    )
    kill_streaks: Mapping[Color, int] = field(
        default_factory=lambda: {Color.WHITE: 0, Color.BLACK: 0}
    )
    extra_turn: bool = False
    move_counter: int = 0
    game_over: bool = False
    winner: Color | str | None = None
    auto_checkmate: bool = False
    first_blood: bool = False
    first_blood_player: Color | None = None
    en_passant_square: int | None = None

    def piece_at(self, square: int) -> Piece | None:
        return self.board[square].piece

    def item_at(self, square: int) -> Item | None:
        return self.board[square].item

    def pieces(self, color: Color | None = None) -> Iterator[tuple[int, Piece]]:
        """Yield (square, piece) in square order, optionally for one side."""
        for square, cell in enumerate(self.board):
            piece = cell.piece
            if piece is not None and (color is None or piece.color is color):
                yield square, piece

    def evolve(self, **changes: Any) -> GameState:
        return dataclasses.replace(self, **changes)

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @classmethod
    def initial(cls) -> GameState:
        """The standard chess starting position with every piece at level 1."""
        back = (
            PieceType.ROOK, PieceType.KNIGHT, PieceType.BISHOP, PieceType.QUEEN,
            PieceType.KING, PieceType.BISHOP, PieceType.KNIGHT, PieceType.ROOK,
        )
        board = list(_empty_board())
        for file in range(8):
            for color, prefix in ((Color.WHITE, "w"), (Color.BLACK, "b")):
                letter = back[file].value[0].upper()
                if back[file] is PieceType.KNIGHT:
                    letter = "N"
                board[chess.square(file, color.back_rank)] = Square(
                    Piece(f"{prefix}{letter}{file}", back[file], color)
                )
                board[chess.square(file, color.pawn_rank)] = Square(
                    Piece(f"{prefix}P{file}", PieceType.PAWN, color)
                )
        return cls(board=tuple(board))

    @classmethod
    def from_pieces(
        cls,
        placement: Mapping[str, Piece],
        anvils: Sequence[str] = (),
        **kwargs: Any,
    ) -> GameState:
        """Build a state from ``{"e1": Piece(...)}`` and anvil square names."""
        board = list(_empty_board())
        for name, piece in placement.items():
            board[chess.parse_square(name)] = Square(piece=piece)
        for name in anvils:
            square = chess.parse_square(name)
            board[square] = Square(piece=board[square].piece, item=Item.ANVIL)
        return cls(board=tuple(board), **kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GameState:
        """
        Parse the surrounding application's JSON game state.

        ``rows`` (or ``board``) lists ranks from 8 down to 1, each a list of
        eight squares ``{"piece": {...} | null, "item": {...} | null}``.
        Missing fields fall back to the values of a fresh game.
        """
        def _color(value: Any) -> Color | None:
            try:
                return Color(value) if value else None
            except ValueError:
                return None

        def _pieces(values: Any) -> tuple[Piece, ...]:
            if not isinstance(values, Sequence) or isinstance(values, str):
                return ()
            parsed = (_parse_piece(v) for v in values)
            return tuple(p for p in parsed if p is not None)

        def _mapping(*keys: str) -> Mapping[str, Any]:
            for key in keys:
                value = data.get(key)
                if isinstance(value, Mapping):
                    return value
            return {}

        def _count(value: Any) -> int:
            try:
                return max(0, int(value or 0))
            except (TypeError, ValueError):
                return 0

        captured = _mapping("captured", "capturedPieces")
        streaks = _mapping("kill_streaks", "killStreaks")
        en_passant = data.get("en_passant_square") or data.get("enPassantTargetSquare")
        winner = data.get("winner")
        return cls(
            board=board_from_rows(data.get("rows") or data.get("board")),
            current_player=_color(data.get("current_player") or data.get("currentPlayer"))
            or Color.WHITE,
            captured={c: _pieces(captured.get(c.value)) for c in Color},
            kill_streaks={c: _count(streaks.get(c.value)) for c in Color},
            extra_turn=bool(data.get("extra_turn") or data.get("extraTurn")),
            move_counter=_count(data.get("move_counter") or data.get("gameMoveCounter")),
            game_over=bool(data.get("game_over") or data.get("gameOver")),
            winner=DRAW if winner == DRAW else _color(winner),
            auto_checkmate=bool(data.get("auto_checkmate") or data.get("autoCheckmate")),
            first_blood=bool(data.get("first_blood") or data.get("firstBloodAchieved")),
            first_blood_player=_color(
                data.get("first_blood_player") or data.get("playerWhoGotFirstBlood")
            ),
            en_passant_square=chess.parse_square(en_passant) if en_passant else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Inverse of from_dict, in snake_case keys."""
        rows = []
        for rank in range(7, -1, -1):
            row = []
            for file in range(8):
                cell = self.board[chess.square(file, rank)]
                row.append({
                    "piece": _piece_to_dict(cell.piece) if cell.piece else None,
                    "item": {"type": cell.item.value} if cell.item else None,
                })
            rows.append(row)
        winner = self.winner.value if isinstance(self.winner, Color) else self.winner
        return {
            "rows": rows,
            "current_player": self.current_player.value,
            "captured": {c.value: [_piece_to_dict(p) for p in self.captured.get(c, ())] for c in Color},
            "kill_streaks": {c.value: self.kill_streaks.get(c, 0) for c in Color},
            "extra_turn": self.extra_turn,
            "move_counter": self.move_counter,
            "game_over": self.game_over,
            "winner": winner,
            "auto_checkmate": self.auto_checkmate,
            "first_blood": self.first_blood,
            "first_blood_player": self.first_blood_player.value if self.first_blood_player else None,
            "en_passant_square": (
                chess.square_name(self.en_passant_square) if self.en_passant_square is not None else None
            ),
        }


def _piece_to_dict(piece: Piece) -> dict[str, Any]:
    return {
        "id": piece.id,
        "type": piece.type.value,
        "color": piece.color.value,
        "level": piece.level,
        "has_moved": piece.has_moved,
        "invulnerable_turns": piece.invulnerable_turns,
    }


def _parse_piece(data: Any) -> Piece | None:
    if not isinstance(data, Mapping):
        return None
    try:
        piece_type = PieceType(data["type"])
        color = Color(data["color"])
    except (KeyError, ValueError):
        return None
    try:
        level = max(1, int(data.get("level") or 1))
    except (TypeError, ValueError):
        level = 1
    if piece_type is PieceType.QUEEN:
        level = min(level, 7)
    invulnerable = data.get("invulnerable_turns", data.get("invulnerableTurnsRemaining")) or 0
    return Piece(
        id=str(data.get("id") or f"{color.value[0]}{piece_type.value}"),
        type=piece_type,
        color=color,
        level=level,
        has_moved=bool(data.get("has_moved", data.get("hasMoved", False))),
        invulnerable_turns=max(0, int(invulnerable)),
    )


def board_from_rows(rows: Any) -> tuple[Square, ...]:
    """
    Convert rank-8-first rows of square dicts into the engine's board.

    Missing rows, short rows and unparseable squares become empty squares.
    """
    board = list(_empty_board())
    if not isinstance(rows, Sequence):
        return tuple(board)
    for row_index, row in enumerate(rows[:8]):
        if not isinstance(row, Sequence):
            continue
        rank = 7 - row_index
        for file, cell in enumerate(row[:8]):
            if not isinstance(cell, Mapping):
                continue
            item_data = cell.get("item")
            item = Item.ANVIL if isinstance(item_data, Mapping) and item_data.get("type") == "anvil" else None
            board[chess.square(file, rank)] = Square(piece=_parse_piece(cell.get("piece")), item=item)
    return tuple(board)
