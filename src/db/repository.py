"""Protocol repositories (implemented with SQLAlchemy in sql_repository.py, mocked with dictionaries in tests)"""

from typing import Protocol

from src.core.models import HistorySummary, PlayerId, UserStats


class HistoryRepository(Protocol):
    """Summaries of finished sessions, per player."""

    def add_summary(self, summary: HistorySummary) -> None:
        """Store a summary, then drop the oldest ones of that player beyond the retention limit."""
        ...

    def list_summaries(self, player_id: PlayerId) -> list[HistorySummary]:
        """Summaries of a player, newest first."""
        ...


class UserStatsRepository(Protocol):
    def get_stats(self, player_id: PlayerId) -> UserStats | None:
        """Get statistics of a player, if record exists."""
        ...

    def save_stats(self, stats: UserStats) -> UserStats:
        """Create or overwrite the statistics of a player."""
        ...
