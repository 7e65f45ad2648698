"""
Type definitions used across layers
"""

from enum import StrEnum


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


# a pawn on its last rank may only become one of these
PROMOTION_PIECE_TYPES = (
    PieceType.QUEEN,
    PieceType.ROOK,
    PieceType.BISHOP,
    PieceType.KNIGHT,
)


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Outcome(StrEnum):
    """Result of a session, always from the human player's point of view."""

    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


class SessionState(StrEnum):
    AWAITING_HUMAN_MOVE = "awaiting human move"
    AWAITING_PROMOTION_CHOICE = "awaiting promotion choice"
    AWAITING_OPPONENT_MOVE = "awaiting opponent move"
    TERMINATED = "terminated"


class TerminalCondition(StrEnum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient material"
    DRAW_REPETITION = "draw by repetition"
    DRAW_FIFTY_MOVE_RULE = "draw by 50 moves"


class SubmitResult(StrEnum):
    ACCEPTED = "accepted"
    AWAITING_PROMOTION = "awaiting promotion"
