"""
Position cache for the search.

The search revisits the same position through different move orders. The
cache maps a canonical key of the full state (plus whether the node is a
maximizing one) to the score, best move and depth of an earlier search.

An entry answers a request only when it was searched at least as deep as the
request asks for. The cache holds at most ``max_size`` entries; inserting
into a full cache evicts the oldest entry. One cache belongs to one
top-level search and is cleared at its start.
"""

from collections import OrderedDict
from dataclasses import dataclass

import chess

from evochess.state import Color, GameState, Move

# One distinct character per piece type.
_TYPE_CODES = {
    "pawn": "p",
    "knight": "n",
    "bishop": "b",
    "rook": "r",
    "queen": "q",
    "king": "k",
    "commander": "c",
    "hero": "h",
    "infiltrator": "f",
}


@dataclass(frozen=True)
class CacheEntry:
    score: int
    move: Move | None
    depth: int


def position_key(state: GameState, maximizing: bool) -> str:
    """
    Canonical string for ``state`` as seen by a (non-)maximizing node.

    Two states with equal keys are interchangeable for the search: the key
    covers every square's piece (color, type, level, invulnerability, moved
    flag) or item, the side to act, the node type, both kill streaks, the
    move counter, first blood and its owner, and the en-passant square.
    """
    parts = []
    for cell in state.board:
        piece = cell.piece
        if piece is not None:
            token = f"{piece.color.value[0]}{_TYPE_CODES[piece.type.value]}{piece.level}"
            if piece.invulnerable_turns > 0:
                token += f"i{piece.invulnerable_turns}"
            if piece.has_moved:
                token += "m"
            if cell.item is not None:
                token += f"+{cell.item.value[0]}"
            parts.append(token)
        elif cell.item is not None:
            parts.append(f"I{cell.item.value[0]}")
        else:
            parts.append("-")

    streaks = state.kill_streaks
    owner = state.first_blood_player.value[0] if state.first_blood_player else "n"
    en_passant = chess.square_name(state.en_passant_square) if state.en_passant_square is not None else "-"
    parts.append(
        f"|{state.current_player.value[0]}"
        f"|{'M' if maximizing else 'm'}"
        f"|w{streaks.get(Color.WHITE, 0)}b{streaks.get(Color.BLACK, 0)}"
        f"|g{state.move_counter}"
        f"|fb{'T' if state.first_blood else 'F'}{owner}"
        f"|ep{en_passant}"
    )
    return "/".join(parts)


class PositionCache:
    """
    Bounded mapping from position keys to CacheEntry.

    Attributes:
        max_size: Entry limit. Zero disables caching entirely.
        hits:     Lookups answered from the cache.
        misses:   Lookups that found nothing usable.
    """

    def __init__(self, max_size: int) -> None:
        self.max_size = max(0, max_size)
        self.hits = 0
        self.misses = 0
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def lookup(self, key: str, depth: int) -> CacheEntry | None:
        """Return the entry for ``key`` if it was searched to at least ``depth``."""
        entry = self._entries.get(key)
        if entry is not None and entry.depth >= depth:
            self.hits += 1
            return entry
        self.misses += 1
        return None

    def store(self, key: str, entry: CacheEntry) -> None:
        if self.max_size == 0:
            return
        if key in self._entries:
            self._entries[key] = entry
            return
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = entry
