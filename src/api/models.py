"""Requests and Response models"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.models import (
    CapturedPiece,
    HistorySummary,
    MoveRecord,
    SessionSnapshot,
    UserStats,
)
from src.core.shared_types import (
    PROMOTION_PIECE_TYPES,
    Color,
    Difficulty,
    Outcome,
    PieceType,
    SessionState,
    SubmitResult,
)
from src.game.scoring import format_duration

FILES = "abcdefgh"
RANKS = "12345678"


def _validate_square(value: str) -> str:
    """Squares are written in algebraic notation: file a-h followed by rank 1-8."""
    if len(value) != 2 or value[0] not in FILES or value[1] not in RANKS:
        raise InvalidRequestError(
            f"Cannot interpret {value!r} as a valid square name."
        )
    return value


def _validate_promotion(value: Optional[PieceType]) -> Optional[PieceType]:
    if value is not None and value not in PROMOTION_PIECE_TYPES:
        raise InvalidRequestError(
            f"A pawn can only promote to {', '.join(PROMOTION_PIECE_TYPES)}; got {value!r}."
        )
    return value


# --- REQUEST MODELS ---
class StartSessionRequest(BaseModel):
    player_id: str = Field(min_length=1)
    difficulty: Difficulty


class MoveRequest(BaseModel):
    session_id: UUID
    from_square: str
    to_square: str
    promote_to: Optional[PieceType] = None

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)

    @field_validator("promote_to")
    @classmethod
    def validate_promotion(cls, value: Optional[PieceType]) -> Optional[PieceType]:
        return _validate_promotion(value)


class PromotionRequest(BaseModel):
    session_id: UUID
    promote_to: PieceType

    @field_validator("promote_to")
    @classmethod
    def validate_promotion(cls, value: PieceType) -> PieceType:
        return _validate_promotion(value)


class LegalMovesRequest(BaseModel):
    session_id: UUID
    square: str

    @field_validator("square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)


class SessionRequest(BaseModel):
    """Any request that only needs to know which session: get state, forfeit, game end details, close."""

    session_id: UUID


class PlayerRequest(BaseModel):
    """Requests about a player rather than a session: history and statistics."""

    player_id: str = Field(min_length=1)


# --- RESPONSE MODELS ---
class MoveEntry(BaseModel):
    mover: Color
    from_square: str
    to_square: str
    piece: PieceType
    captured: Optional[PieceType]
    promotion: Optional[PieceType]
    timestamp: datetime

    @classmethod
    def from_record(cls, record: MoveRecord) -> "MoveEntry":
        return cls(
            mover=record.mover,
            from_square=record.origin,
            to_square=record.destination,
            piece=record.piece,
            captured=record.captured,
            promotion=record.promotion,
            timestamp=record.timestamp,
        )


class CapturedEntry(BaseModel):
    kind: PieceType
    color: Color

    @classmethod
    def from_piece(cls, piece: CapturedPiece) -> "CapturedEntry":
        return cls(kind=piece.kind, color=piece.color)


class SessionResponse(BaseModel):
    session_id: UUID
    player_id: str
    opponent_label: str
    difficulty: Difficulty
    state: SessionState
    turn: Color
    fen_state: str
    move_history: list[MoveEntry]
    captured_by_human: list[CapturedEntry]
    captured_by_opponent: list[CapturedEntry]
    score: int
    outcome: Optional[Outcome]
    started_at: datetime
    ended_at: Optional[datetime]
    pending_promotion: Optional[tuple[str, str]]

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SessionResponse":
        return cls(
            session_id=snapshot.session_id,
            player_id=snapshot.player_id,
            opponent_label=snapshot.opponent_label,
            difficulty=snapshot.difficulty,
            state=snapshot.state,
            turn=snapshot.turn,
            fen_state=snapshot.position,
            move_history=[MoveEntry.from_record(move) for move in snapshot.move_log],
            captured_by_human=[
                CapturedEntry.from_piece(piece) for piece in snapshot.captured_by_human
            ],
            captured_by_opponent=[
                CapturedEntry.from_piece(piece)
                for piece in snapshot.captured_by_opponent
            ],
            score=snapshot.score,
            outcome=snapshot.outcome,
            started_at=snapshot.started_at,
            ended_at=snapshot.ended_at,
            pending_promotion=snapshot.pending_promotion,
        )


class MoveResponse(BaseModel):
    result: SubmitResult
    session: SessionResponse


class LegalMovesResponse(BaseModel):
    session_id: UUID
    square: str
    destinations: list[str]


class GameSummaryResponse(BaseModel):
    player_id: str
    opponent_label: str
    difficulty: Difficulty
    outcome: Outcome
    score: int
    final_score: int
    duration_seconds: int
    duration: str
    started_at: datetime
    ended_at: datetime

    @classmethod
    def from_summary(cls, summary: HistorySummary) -> "GameSummaryResponse":
        return cls(
            player_id=summary.player_id,
            opponent_label=summary.opponent_label,
            difficulty=summary.difficulty,
            outcome=summary.outcome,
            score=summary.score,
            final_score=summary.final_score,
            duration_seconds=summary.duration_seconds,
            duration=format_duration(summary.duration_seconds),
            started_at=summary.started_at,
            ended_at=summary.ended_at,
        )


class HistoryResponse(BaseModel):
    player_id: str
    games: list[GameSummaryResponse]


class StatsResponse(BaseModel):
    player_id: str
    total_games: int
    wins: int
    losses: int
    draws: int
    best_score: int
    average_score: int
    current_streak: int
    best_streak: int

    @classmethod
    def from_stats(cls, stats: UserStats) -> "StatsResponse":
        return cls(
            player_id=stats.player_id,
            total_games=stats.total_games,
            wins=stats.wins,
            losses=stats.losses,
            draws=stats.draws,
            best_score=stats.best_score,
            average_score=stats.average_score,
            current_streak=stats.current_streak,
            best_streak=stats.best_streak,
        )
