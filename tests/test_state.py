"""
Tests for the value types and JSON parsing in evochess.state.
"""

import chess

from evochess.state import (
    Color,
    GameState,
    Item,
    Move,
    MoveKind,
    PieceType,
    board_from_rows,
)


class TestColor:
    def test_geometry(self):
        assert Color.WHITE.opponent is Color.BLACK
        assert Color.WHITE.forward == 1 and Color.BLACK.forward == -1
        assert Color.WHITE.back_rank == 0 and Color.BLACK.back_rank == 7
        assert Color.WHITE.promotion_rank == 7 and Color.BLACK.promotion_rank == 0
        assert Color.BLACK.pawn_rank == 6


class TestInitialState:
    def test_standard_setup(self, initial_state):
        """32 level-1 pieces, white to move, kings on e1 and e8."""
        pieces = list(initial_state.pieces())
        assert len(pieces) == 32
        assert all(piece.level == 1 and not piece.has_moved for _, piece in pieces)
        assert initial_state.current_player is Color.WHITE
        assert initial_state.piece_at(chess.E1).type is PieceType.KING
        assert initial_state.piece_at(chess.E8).color is Color.BLACK
        assert initial_state.piece_at(chess.G1).id == "wN6"

    def test_piece_ids_are_unique(self, initial_state):
        ids = [piece.id for _, piece in initial_state.pieces()]
        assert len(ids) == len(set(ids))

    def test_nothing_captured(self, initial_state):
        assert initial_state.captured[Color.WHITE] == ()
        assert initial_state.kill_streaks[Color.BLACK] == 0
        assert not initial_state.first_blood


class TestMove:
    def test_dict_shape(self):
        move = Move(chess.E7, chess.E8, MoveKind.PROMOTION, PieceType.KNIGHT)
        assert move.to_dict() == {"from": "e7", "to": "e8", "type": "promotion", "promote_to": "knight"}
        assert Move.from_dict(move.to_dict()) == move

    def test_from_dict_defaults_to_plain_move(self):
        assert Move.from_dict({"from": "g1", "to": "f3"}) == Move(chess.G1, chess.F3)

    def test_str(self):
        assert str(Move(chess.D4, chess.D4, MoveKind.SELF_DESTRUCT)) == "d4d4(self-destruct)"


class TestParsing:
    def test_garbage_rows_give_empty_board(self):
        board = board_from_rows([None, "x", [1, 2, 3]])
        assert len(board) == 64
        assert all(square.is_empty for square in board)

    def test_bad_levels_are_normalised(self):
        rows = [[None] * 8 for _ in range(8)]
        rows[0][0] = {"piece": {"type": "queen", "color": "black", "level": 12}}
        rows[7][0] = {"piece": {"type": "rook", "color": "white", "level": "high"}}
        rows[4][4] = {"piece": {"type": "dragon", "color": "white"}, "item": {"type": "anvil"}}
        board = board_from_rows(rows)
        assert board[chess.A8].piece.level == 7
        assert board[chess.A1].piece.level == 1
        assert board[chess.E4].piece is None
        assert board[chess.E4].item is Item.ANVIL

    def test_camel_case_keys(self):
        state = GameState.from_dict({
            "board": GameState.initial().to_dict()["rows"],
            "currentPlayer": "black",
            "killStreaks": {"white": 2},
            "gameMoveCounter": 5,
            "firstBloodAchieved": True,
            "playerWhoGotFirstBlood": "white",
            "enPassantTargetSquare": "e3",
        })
        assert state.current_player is Color.BLACK
        assert state.kill_streaks == {Color.WHITE: 2, Color.BLACK: 0}
        assert state.move_counter == 5
        assert state.first_blood_player is Color.WHITE
        assert state.en_passant_square == chess.E3
        assert len(list(state.pieces())) == 32

    def test_malformed_bookkeeping_falls_back_to_defaults(self):
        state = GameState.from_dict({
            "rows": GameState.initial().to_dict()["rows"],
            "captured": ["not", "a", "mapping"],
            "killStreaks": [3, 1],
            "move_counter": "soon",
        })
        assert state.captured == {Color.WHITE: (), Color.BLACK: ()}
        assert state.kill_streaks == {Color.WHITE: 0, Color.BLACK: 0}
        assert state.move_counter == 0

    def test_malformed_pool_entries_are_skipped(self):
        state = GameState.from_dict({
            "captured": {"white": 5, "black": [{"type": "rook", "color": "white"}, "junk"]},
            "kill_streaks": {"white": "two", "black": 1},
        })
        assert state.captured[Color.WHITE] == ()
        assert [p.type for p in state.captured[Color.BLACK]] == [PieceType.ROOK]
        assert state.kill_streaks == {Color.WHITE: 0, Color.BLACK: 1}

    def test_to_dict_round_trip(self, white, black):
        state = GameState.from_pieces(
            {"e1": white(PieceType.KING, level=2), "e8": black(PieceType.KING), "c4": white(PieceType.HERO)},
            anvils=("d5",),
            captured={Color.WHITE: (black(PieceType.ROOK),), Color.BLACK: ()},
            kill_streaks={Color.WHITE: 1, Color.BLACK: 0},
            move_counter=11,
            first_blood=True,
            first_blood_player=Color.WHITE,
        )
        assert GameState.from_dict(state.to_dict()) == state
