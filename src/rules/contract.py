"""
Contract between the game layer and whatever engine knows the rules of chess.

The session and the opponent never look inside a position. They only use the query surface below,
and every move crossing the boundary is one of the typed records defined here.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Optional, Protocol

from src.core.shared_types import Color, PieceType, TerminalCondition

SquareName = str


@dataclass(frozen=True)
class CandidateMove:
    """A legal move for the side to move. Promotions appear once per origin/destination pair."""

    mover: Color
    origin: SquareName
    destination: SquareName
    piece: PieceType
    captured: Optional[PieceType]
    is_promotion: bool

    @property
    def is_capture(self) -> bool:
        return self.captured is not None


@dataclass(frozen=True)
class AppliedMove:
    """What happened when a move was played: produced once by the engine, consumed by session and opponent alike."""

    mover: Color
    origin: SquareName
    destination: SquareName
    piece: PieceType
    captured: Optional[PieceType]
    promotion: Optional[PieceType]
    is_check: bool
    is_checkmate: bool
    terminal: Optional[TerminalCondition]

    @property
    def is_terminal(self) -> bool:
        return self.terminal is not None


class RulesEngine(Protocol):
    """Query surface of the rules engine. The engine owns the position."""

    def side_to_move(self) -> Color:
        """Color of the side that plays next."""
        ...

    def legal_moves(self) -> list[CandidateMove]:
        """All legal moves for the side to move, in the engine's (deterministic) enumeration order."""
        ...

    def apply(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType] = None,
    ) -> AppliedMove:
        """Play the move on the engine's own position. Raises IllegalMoveError if it is not legal."""
        ...

    def undo(self) -> None:
        """Take back the most recently applied move."""
        ...

    def speculate(
        self, move: CandidateMove, promotion: Optional[PieceType] = None
    ) -> AbstractContextManager[AppliedMove]:
        """Apply a move for the duration of a with-block, then take it back."""
        ...

    def export_position(self) -> str:
        """Opaque serializable token for the current position."""
        ...
