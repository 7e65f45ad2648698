"""
Rules engine implemented on top of python-chess.

- Owns a chess.Board and translates between its moves and the typed records of src/rules/contract.py.
- legal_moves() keeps python-chess's generation order. The four promotion variants of a pawn move
  collapse into a single candidate, at the place of the first (queen) variant.
- The exported position token is the FEN string of the board.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Self

import chess

from src.core.exceptions import EngineFaultError, IllegalMoveError, InvalidRequestError
from src.core.shared_types import (
    PROMOTION_PIECE_TYPES,
    Color,
    PieceType,
    TerminalCondition,
)
from src.rules.contract import AppliedMove, CandidateMove, SquareName

PIECE_TYPE_FROM_CHESS: dict[chess.PieceType, PieceType] = {
    chess.PAWN: PieceType.PAWN,
    chess.KNIGHT: PieceType.KNIGHT,
    chess.BISHOP: PieceType.BISHOP,
    chess.ROOK: PieceType.ROOK,
    chess.QUEEN: PieceType.QUEEN,
    chess.KING: PieceType.KING,
}
PIECE_TYPE_TO_CHESS: dict[PieceType, chess.PieceType] = {
    kind: code for code, kind in PIECE_TYPE_FROM_CHESS.items()
}


def _color(turn: chess.Color) -> Color:
    return Color.WHITE if turn == chess.WHITE else Color.BLACK


def _parse_square(name: SquareName) -> chess.Square:
    try:
        return chess.parse_square(name)
    except ValueError as e:
        raise IllegalMoveError(f"Not a square on the board: {name!r}") from e


class ChessRulesEngine:
    """Plain chess rules around a python-chess Board."""

    def __init__(self, board: Optional[chess.Board] = None) -> None:
        self.board = board if board is not None else chess.Board()

    @classmethod
    def from_position(cls, token: str) -> Self:
        """Rebuild an engine from a token produced by export_position()."""
        try:
            return cls(chess.Board(token))
        except ValueError as e:
            raise InvalidRequestError(f"Cannot read position token: {token!r}") from e

    # --- QUERIES ---
    def side_to_move(self) -> Color:
        return _color(self.board.turn)

    def legal_moves(self) -> list[CandidateMove]:
        candidates: list[CandidateMove] = []
        seen: set[tuple[chess.Square, chess.Square]] = set()
        for move in self.board.legal_moves:
            key = (move.from_square, move.to_square)
            if key in seen:
                continue
            seen.add(key)
            candidates.append(self._candidate(move))
        return candidates

    def export_position(self) -> str:
        return self.board.fen()

    # --- MOVES ---
    def apply(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType] = None,
    ) -> AppliedMove:
        move = self._legal_move(origin, destination, promotion)

        # snapshot before the board changes
        mover = self.side_to_move()
        piece = self._moving_piece(move)
        captured = self._captured_piece(move)

        self.board.push(move)

        return AppliedMove(
            mover=mover,
            origin=origin,
            destination=destination,
            piece=piece,
            captured=captured,
            promotion=promotion,
            is_check=self.board.is_check(),
            is_checkmate=self.board.is_checkmate(),
            terminal=self._terminal_condition(),
        )

    def undo(self) -> None:
        if not self.board.move_stack:
            raise EngineFaultError("No move to take back.")
        self.board.pop()

    @contextmanager
    def speculate(
        self, move: CandidateMove, promotion: Optional[PieceType] = None
    ) -> Iterator[AppliedMove]:
        """Look one move ahead. Promotions default to a queen."""
        if move.is_promotion and promotion is None:
            promotion = PieceType.QUEEN
        applied = self.apply(move.origin, move.destination, promotion)
        try:
            yield applied
        finally:
            self.undo()

    # -- PRIVATE HELPERS ---
    def _legal_move(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType],
    ) -> chess.Move:
        from_square = _parse_square(origin)
        to_square = _parse_square(destination)

        if promotion is not None and promotion not in PROMOTION_PIECE_TYPES:
            raise IllegalMoveError(f"A pawn cannot promote to a {promotion}.")

        promote_to = PIECE_TYPE_TO_CHESS[promotion] if promotion else None
        move = chess.Move(from_square, to_square, promotion=promote_to)
        if move in self.board.legal_moves:
            return move

        # give a clearer message when only the promotion piece is missing
        if promotion is None and self._is_promotion(from_square, to_square):
            raise IllegalMoveError(
                f"Move {origin}{destination} promotes a pawn and needs a promotion piece."
            )
        raise IllegalMoveError(f"Move not allowed: {origin}{destination}")

    def _is_promotion(self, from_square: chess.Square, to_square: chess.Square) -> bool:
        queen_move = chess.Move(from_square, to_square, promotion=chess.QUEEN)
        return queen_move in self.board.legal_moves

    def _candidate(self, move: chess.Move) -> CandidateMove:
        return CandidateMove(
            mover=self.side_to_move(),
            origin=chess.square_name(move.from_square),
            destination=chess.square_name(move.to_square),
            piece=self._moving_piece(move),
            captured=self._captured_piece(move),
            is_promotion=move.promotion is not None,
        )

    def _moving_piece(self, move: chess.Move) -> PieceType:
        piece_type = self.board.piece_type_at(move.from_square)
        if piece_type is None:
            raise EngineFaultError(
                f"No piece on {chess.square_name(move.from_square)} for a legal move."
            )
        return PIECE_TYPE_FROM_CHESS[piece_type]

    def _captured_piece(self, move: chess.Move) -> Optional[PieceType]:
        # the pawn taken en passant is not standing on the target square
        if self.board.is_en_passant(move):
            return PieceType.PAWN
        captured = self.board.piece_type_at(move.to_square)
        return PIECE_TYPE_FROM_CHESS[captured] if captured else None

    def _terminal_condition(self) -> Optional[TerminalCondition]:
        """Checks the position after a move. Checkmate takes precedence over all draws."""
        if self.board.is_checkmate():
            return TerminalCondition.CHECKMATE
        if self.board.is_stalemate():
            return TerminalCondition.STALEMATE
        if self.board.is_insufficient_material():
            return TerminalCondition.INSUFFICIENT_MATERIAL
        if self.board.is_repetition(3):
            return TerminalCondition.DRAW_REPETITION
        if self.board.halfmove_clock >= 100:
            return TerminalCondition.DRAW_FIFTY_MOVE_RULE
        return None
