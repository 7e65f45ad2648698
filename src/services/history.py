"""Persistence of finished sessions: the history recorder the GameSession talks to at termination."""

import logging
import threading

from src.core.models import HistorySummary, PlayerId, UserStats
from src.core.shared_types import Outcome
from src.db.repository import HistoryRepository, UserStatsRepository
from src.game.stats import apply_result

log = logging.getLogger(__name__)


class SessionHistoryRecorder:
    """
    Stores summaries and keeps the player statistics up to date.

    NOTE sessions may end on a timer thread (deferred opponent move), so access to the repositories is serialized.
    """

    def __init__(
        self, history: HistoryRepository, stats: UserStatsRepository
    ) -> None:
        self.history = history
        self.stats = stats
        self._lock = threading.Lock()

    def record(self, summary: HistorySummary) -> None:
        with self._lock:
            self.history.add_summary(summary)
        log.info(
            "Recorded %s for player %r (score %d)",
            summary.outcome,
            summary.player_id,
            summary.score,
        )

    def fold_result(self, player_id: PlayerId, outcome: Outcome, score: int) -> None:
        with self._lock:
            current = self.stats.get_stats(player_id) or UserStats(player_id=player_id)
            self.stats.save_stats(apply_result(current, outcome, score))

    def summaries(self, player_id: PlayerId) -> list[HistorySummary]:
        with self._lock:
            return self.history.list_summaries(player_id)

    def user_stats(self, player_id: PlayerId) -> UserStats:
        """Statistics of a player. All zeros before the first finished session."""
        with self._lock:
            return self.stats.get_stats(player_id) or UserStats(player_id=player_id)
