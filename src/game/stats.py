"""Folding the result of a finished session into a player's aggregated statistics."""

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from src.core.models import UserStats
from src.core.shared_types import Outcome


def _round_half_up(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def apply_result(stats: UserStats, outcome: Outcome, score: int) -> UserStats:
    """
    Return new statistics with one more finished session.
    ----

    * the counter matching the outcome goes up by one
    * a win extends the current streak (and maybe the best streak), a loss or draw resets it
    * the average is weighted with the number of games played BEFORE this one
    """
    previous_total = stats.total_games
    updated = replace(stats, total_games=previous_total + 1)

    if outcome == Outcome.WIN:
        updated.wins += 1
        updated.current_streak += 1
        updated.best_streak = max(updated.best_streak, updated.current_streak)
    elif outcome == Outcome.LOSS:
        updated.losses += 1
        updated.current_streak = 0
    else:
        updated.draws += 1
        updated.current_streak = 0

    updated.best_score = max(updated.best_score, score)
    updated.average_score = _round_half_up(
        Decimal(stats.average_score * previous_total + score) / (previous_total + 1)
    )
    return updated
