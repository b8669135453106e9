"""
FastAPI web application for the evolving-chess engine.

Exposes POST /api/move, which accepts a full game state in the JSON shape the
browser client keeps (ranks listed from 8 down to 1), runs the engine search
for the requested side, and returns the chosen move with its score and
search statistics. GET /api/health is a liveness probe.

Architecture notes:
- Sync endpoints (not async): FastAPI runs sync handlers in a thread pool,
  which is the correct pattern for CPU-bound blocking calls like engine search.
- Stateless per request: the client sends the full game state each time; no
  server-side game is kept between requests.
- Search defaults come from SearchConfig.from_env() once at import time;
  each request may lower or raise the time budget and depth within limits.

Run locally with: uvicorn web.app:app --reload
"""

import dataclasses
import logging
from typing import Literal

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator

from evochess import __version__
from evochess.move_ordering import describe
from evochess.movegen import terminal_winner
from evochess.search import SearchConfig, search_best_move
from evochess.state import Color, GameState, PieceType

# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

logging.basicConfig(level=logging.INFO)
_log = logging.getLogger(__name__)

_BASE_CONFIG = SearchConfig.from_env()

app = FastAPI(title="Evolving Chess AI", version=__version__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class PiecePayload(BaseModel):
    """A piece as the client stores it. Levels below 1 are raised to 1."""

    id: str | None = None
    type: PieceType
    color: Color
    level: int = 1
    has_moved: bool = False
    invulnerable_turns: int = Field(default=0, ge=0)

    @field_validator("level")
    @classmethod
    def clamp_level(cls, v: int) -> int:
        return max(1, v)


class ItemPayload(BaseModel):
    type: Literal["anvil"]


class SquarePayload(BaseModel):
    piece: PiecePayload | None = None
    item: ItemPayload | None = None


class GameStatePayload(BaseModel):
    """
    Full game state.

    Fields:
        rows: Eight rows of eight squares, rank 8 first, file a first.
        captured: Pieces each side has captured, keyed by capturing color.
        en_passant_square: Algebraic square name, e.g. "e3".
    Other fields mirror GameState and default to a fresh game's values.
    """

    rows: list[list[SquarePayload]]
    current_player: Color = Color.WHITE
    captured: dict[Color, list[PiecePayload]] = Field(default_factory=dict)
    kill_streaks: dict[Color, int] = Field(default_factory=dict)
    extra_turn: bool = False
    move_counter: int = Field(default=0, ge=0)
    game_over: bool = False
    winner: Literal["white", "black", "draw"] | None = None
    auto_checkmate: bool = False
    first_blood: bool = False
    first_blood_player: Color | None = None
    en_passant_square: str | None = None

    @field_validator("rows")
    @classmethod
    def check_board_shape(cls, v: list[list[SquarePayload]]) -> list[list[SquarePayload]]:
        """The board must be exactly 8 x 8."""
        if len(v) != 8 or any(len(row) != 8 for row in v):
            raise ValueError("board must have 8 rows of 8 squares")
        return v

    @field_validator("en_passant_square")
    @classmethod
    def check_square_name(cls, v: str | None) -> str | None:
        if v is not None:
            chess.parse_square(v)
        return v

    def to_state(self) -> GameState:
        return GameState.from_dict(self.model_dump(mode="json"))


class MoveRequest(BaseModel):
    """
    Client request to the engine.

    Fields:
        state: The game to move in.
        color: Side the engine plays; defaults to state.current_player.
        time_limit: Seconds allocated to the engine for this move (clamped
                    to [0.1, 30.0] to prevent accidental 0-second calls or
                    runaway searches).
        depth: Optional search depth override, clamped to [1, 6].
    """

    state: GameStatePayload
    color: Color | None = None
    time_limit: float = 1.0
    depth: int | None = None

    @field_validator("time_limit")
    @classmethod
    def clamp_time_limit(cls, v: float) -> float:
        """Clamp time_limit to a safe operating range."""
        return max(0.1, min(v, 30.0))

    @field_validator("depth")
    @classmethod
    def clamp_depth(cls, v: int | None) -> int | None:
        return None if v is None else max(1, min(v, 6))


class MovePayload(BaseModel):
    """
    Engine move in the client's shape.

    Fields:
        from / to: Algebraic square names.
        type: Move kind ("move", "capture", "promotion", "castle",
              "self-destruct", "swap", "en-passant").
        promote_to: Piece type for promotions, else null.
        notation: Human-readable form, e.g. "Ng1-f3".
    """

    model_config = ConfigDict(populate_by_name=True)

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    type: str
    promote_to: str | None = None
    notation: str


class MoveResponse(BaseModel):
    """
    Engine response after computing the best move.

    Fields:
        move: The chosen move.
        score: Evaluation from the engine side's perspective. Positive means
               the engine side is ahead.
        depth: Search depth used.
        nodes: Search nodes entered.
        extra_turn: True when the engine side moves again after this move.
    """

    move: MovePayload
    score: int
    depth: int
    nodes: int
    extra_turn: bool


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------


@app.post("/api/move", response_model=MoveResponse)
def api_move(request: MoveRequest) -> MoveResponse:
    """
    Compute the engine's best move for the given game state.

    Raises:
        HTTPException 400: Game already over.
        HTTPException 422: Request does not match the schema (FastAPI).
        HTTPException 500: Engine failed or returned no move.
    """
    state = request.state.to_state()
    color = request.color or state.current_player
    if state.current_player is not color:
        state = state.evolve(current_player=color)

    winner = terminal_winner(state)
    if winner is not None:
        outcome = getattr(winner, "value", winner)
        raise HTTPException(status_code=400, detail=f"Game is already over: {outcome}")

    config = dataclasses.replace(
        _BASE_CONFIG,
        time_limit_ms=int(request.time_limit * 1000),
        max_depth=request.depth or _BASE_CONFIG.max_depth,
    )

    try:
        result = search_best_move(state, color, config)
    except Exception as exc:
        _log.exception("Engine search failed for %s", color.value)
        raise HTTPException(status_code=500, detail=f"Engine error: {exc}") from exc

    if result.move is None:
        raise HTTPException(status_code=500, detail="Engine returned no move")

    notation = describe(result.move, state)
    _log.info(
        "Move=%s score=%d depth=%d nodes=%d color=%s counter=%d",
        notation,
        result.score,
        result.depth,
        result.nodes,
        color.value,
        state.move_counter,
    )

    return MoveResponse(
        move=MovePayload(**result.move.to_dict(), notation=notation),
        score=result.score,
        depth=result.depth,
        nodes=result.nodes,
        extra_turn=result.extra_turn,
    )


@app.get("/api/health")
def api_health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}
