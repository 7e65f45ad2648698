"""
Score of a session.

Two independent formulas:

* move_score(): applied once per accepted move (human or opponent). The difficulty multiplier is applied
  to the whole running total on every move, not only to the increment, so the score grows geometrically.
* final_score(): computed once from a base score when a session ends.

Multipliers are exact decimals, so floor() of e.g. 1010 * 1.2 gives 1212 and not 1211.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Optional

from src.core.models import MoveRecord
from src.core.shared_types import Difficulty, Outcome, PieceType

BASE_SCORE = 1000

PIECE_VALUES: dict[PieceType, int] = {
    PieceType.PAWN: 1,
    PieceType.KNIGHT: 3,
    PieceType.BISHOP: 3,
    PieceType.ROOK: 5,
    PieceType.QUEEN: 9,
    PieceType.KING: 0,
}

DIFFICULTY_MULTIPLIERS: dict[Difficulty, Decimal] = {
    Difficulty.EASY: Decimal("1.0"),
    Difficulty.MEDIUM: Decimal("1.2"),
    Difficulty.HARD: Decimal("1.5"),
}

CAPTURE_FACTOR = 2 * 100
DEVELOPMENT_BONUS = 50
DEVELOPMENT_PIECES = (PieceType.KING, PieceType.BISHOP)
MOVE_BONUS = 10

RESULT_BONUS: dict[Outcome, int] = {
    Outcome.WIN: 500,
    Outcome.DRAW: 250,
    Outcome.LOSS: 0,
}
TIME_BONUS_LIMIT_S = 1800  # 30 minutes
TIME_BONUS_PER_SECOND = 2


def piece_value(kind: Optional[PieceType]) -> int:
    return PIECE_VALUES[kind] if kind else 0


def _scaled(value: int, difficulty: Difficulty) -> int:
    scaled = (Decimal(value) * DIFFICULTY_MULTIPLIERS[difficulty]).to_integral_value(
        rounding=ROUND_FLOOR
    )
    return max(0, int(scaled))


def move_score(
    previous_score: int,
    piece: PieceType,
    captured: Optional[PieceType],
    difficulty: Difficulty,
) -> int:
    """Running score after one more accepted move."""
    raw = previous_score + piece_value(captured) * CAPTURE_FACTOR
    if piece in DEVELOPMENT_PIECES:
        raw += DEVELOPMENT_BONUS
    raw += MOVE_BONUS
    return _scaled(raw, difficulty)


def replay_score(moves: Iterable[MoveRecord], difficulty: Difficulty) -> int:
    """Recompute the running score from a move log."""
    score = BASE_SCORE
    for move in moves:
        score = move_score(score, move.piece, move.captured, difficulty)
    return score


def final_score(
    base_score: int, difficulty: Difficulty, duration_seconds: int, outcome: Outcome
) -> int:
    """Score shown at the end of a session: result bonus plus a bonus for finishing within 30 minutes."""
    total = base_score + RESULT_BONUS[outcome]
    total += max(0, TIME_BONUS_LIMIT_S - duration_seconds) * TIME_BONUS_PER_SECOND
    return _scaled(total, difficulty)


def format_duration(seconds: int) -> str:
    """m:ss, or h:mm:ss from one hour on."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
