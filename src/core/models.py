"""
Boundary layer data model(s).

These objects travel between the game layer (sessions), the persistence layer and the service.
(Decouples the data model specific to the DB layer or API layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from src.core.shared_types import (
    Color,
    Difficulty,
    Outcome,
    PieceType,
    SessionState,
)

# Type aliases to make the models easier to read
PlayerId = str
SquareName = str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CapturedPiece:
    kind: PieceType
    color: Color


@dataclass(frozen=True)
class MoveRecord:
    """One accepted move as it is stored in the move log of a session."""

    mover: Color
    origin: SquareName
    destination: SquareName
    piece: PieceType  # promoted kind for a promotion
    captured: Optional[PieceType]
    promotion: Optional[PieceType]
    timestamp: datetime


@dataclass(frozen=True)
class HistorySummary:
    """Immutable record of a finished session, handed over to the history recorder."""

    player_id: PlayerId
    opponent_label: str
    difficulty: Difficulty
    outcome: Outcome
    score: int
    final_score: int
    duration_seconds: int
    started_at: datetime
    ended_at: datetime


@dataclass
class UserStats:
    """Aggregated results of all finished sessions of one player."""

    player_id: PlayerId
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    best_score: int = 0
    average_score: int = 0
    current_streak: int = 0
    best_streak: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of a session. Safe to hand out: nothing in here points back into the session."""

    session_id: UUID
    player_id: PlayerId
    opponent_label: str
    difficulty: Difficulty
    state: SessionState
    turn: Color
    position: str
    move_log: tuple[MoveRecord, ...]
    captured_by_human: tuple[CapturedPiece, ...]
    captured_by_opponent: tuple[CapturedPiece, ...]
    score: int
    outcome: Optional[Outcome]
    started_at: datetime
    ended_at: Optional[datetime]
    pending_promotion: Optional[tuple[SquareName, SquareName]]
