"""
Pytest fixtures for evochess tests.
"""

import itertools
import random
from typing import Callable

import pytest

from evochess.state import Color, GameState, Piece, PieceType

PieceFactory = Callable[..., Piece]


def _factory(color: Color) -> PieceFactory:
    serial = itertools.count()

    def make(kind: PieceType, level: int = 1, has_moved: bool = True, **fields) -> Piece:
        piece_id = fields.pop("id", f"{color.value[0]}{kind.value}{next(serial)}")
        return Piece(piece_id, kind, color, level=level, has_moved=has_moved, **fields)

    return make


@pytest.fixture
def white() -> PieceFactory:
    """Factory for white pieces; pieces count as moved unless told otherwise."""
    return _factory(Color.WHITE)


@pytest.fixture
def black() -> PieceFactory:
    """Factory for black pieces; pieces count as moved unless told otherwise."""
    return _factory(Color.BLACK)


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so triggered randomness is reproducible."""
    return random.Random(1234)


@pytest.fixture
def initial_state() -> GameState:
    return GameState.initial()


@pytest.fixture
def stalemate_state(white, black) -> GameState:
    """Black to move, not in check, no legal move."""
    return GameState.from_pieces(
        {
            "a8": black(PieceType.KING),
            "b6": white(PieceType.QUEEN),
            "h1": white(PieceType.KING),
        },
        current_player=Color.BLACK,
    )


@pytest.fixture
def checkmate_state(white, black) -> GameState:
    """Black to move and mated by a protected queen."""
    return GameState.from_pieces(
        {
            "h8": black(PieceType.KING),
            "g7": white(PieceType.QUEEN),
            "g6": white(PieceType.KING),
        },
        current_player=Color.BLACK,
    )


@pytest.fixture
def back_rank_state(white, black) -> GameState:
    """White to move; Ra1-a8 mates a king boxed in by its own pawns."""
    return GameState.from_pieces(
        {
            "e1": white(PieceType.KING),
            "a1": white(PieceType.ROOK),
            "h8": black(PieceType.KING),
            "g7": black(PieceType.PAWN),
            "h7": black(PieceType.PAWN),
        }
    )
