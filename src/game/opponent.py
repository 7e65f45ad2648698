"""
Move selection for the synthetic opponent.

- easy: a uniformly random legal move.
- medium: prefers a random capture (70% of the time, when captures exist).
- hard: mates when it can, then likes checks (70%), then the most valuable capture (80%), else random.

Every random decision draws from one uniform source on [0, 1). The only deterministic rule is
"play the first checkmating move", where first means the rules engine's enumeration order.
Pawns reaching the last rank always become queens.
"""

import logging
import random
from typing import Optional, Protocol

from src.core.shared_types import Difficulty, PieceType
from src.game.scoring import piece_value
from src.rules.contract import CandidateMove, RulesEngine

log = logging.getLogger(__name__)

OPPONENT_PROMOTION = PieceType.QUEEN

MEDIUM_CAPTURE_PREFERENCE = 0.7
HARD_CHECK_PREFERENCE = 0.7
HARD_CAPTURE_PREFERENCE = 0.8


class RandomSource(Protocol):
    def random(self) -> float: ...


class OpponentPolicy:
    """Chooses one legal move for the side to move, according to the difficulty tier."""

    def __init__(self, rng: Optional[RandomSource] = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def choose(
        self, engine: RulesEngine, difficulty: Difficulty
    ) -> Optional[CandidateMove]:
        """Return the move to play, or None when there is no legal move at all."""
        moves = engine.legal_moves()
        if not moves:
            return None

        if difficulty == Difficulty.EASY:
            return self._random_move(moves)
        if difficulty == Difficulty.MEDIUM:
            return self._medium_move(moves)
        return self._hard_move(engine, moves)

    # -- TIERS ---
    def _medium_move(self, moves: list[CandidateMove]) -> CandidateMove:
        captures = [move for move in moves if move.is_capture]
        if captures and self._rng.random() < MEDIUM_CAPTURE_PREFERENCE:
            return self._random_move(captures)
        return self._random_move(moves)

    def _hard_move(
        self, engine: RulesEngine, moves: list[CandidateMove]
    ) -> CandidateMove:
        """
        Priority order
        ----

        1. first move that delivers checkmate
        2. a random checking move (70% chance)
        3. the capture of the most valuable piece, first found on ties (80% chance)
        4. a random move
        """
        checks: list[CandidateMove] = []
        for move in moves:
            with engine.speculate(move, self._promotion_for(move)) as result:
                if result.is_checkmate:
                    log.debug("Found mate with %s%s", move.origin, move.destination)
                    return move
                if result.is_check:
                    checks.append(move)

        if checks and self._rng.random() < HARD_CHECK_PREFERENCE:
            return self._random_move(checks)

        captures = [move for move in moves if move.is_capture]
        if captures and self._rng.random() < HARD_CAPTURE_PREFERENCE:
            # max() keeps the first of equally valued captures
            return max(captures, key=lambda move: piece_value(move.captured))

        return self._random_move(moves)

    # -- HELPERS ---
    def _random_move(self, moves: list[CandidateMove]) -> CandidateMove:
        index = min(int(self._rng.random() * len(moves)), len(moves) - 1)
        return moves[index]

    @staticmethod
    def _promotion_for(move: CandidateMove) -> Optional[PieceType]:
        return OPPONENT_PROMOTION if move.is_promotion else None
