"""Unit tests for src/db/sql_repository.py"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from src.core.models import HistorySummary, UserStats
from src.core.shared_types import Difficulty, Outcome
from src.db.sql_repository import SQLHistoryRepository, SQLUserStatsRepository

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _summary(player_id: str = "player-1", score: int = 1000) -> HistorySummary:
    return HistorySummary(
        player_id=player_id,
        opponent_label="Mock McMock",
        difficulty=Difficulty.MEDIUM,
        outcome=Outcome.LOSS,
        score=score,
        final_score=score * 2,
        duration_seconds=90,
        started_at=T0,
        ended_at=T0 + timedelta(seconds=90),
    )


# -- HISTORY --
def test_add_and_list_summary(db_session_repo: Session) -> None:
    """Conversion from a HistorySummary to DBHistoryEntry and back."""
    repo = SQLHistoryRepository(db_session_repo)
    summary = _summary()
    repo.add_summary(summary)

    assert repo.list_summaries("player-1") == [summary]


def test_unknown_player_has_no_history(db_session_repo: Session) -> None:
    repo = SQLHistoryRepository(db_session_repo)
    assert repo.list_summaries("nobody") == []


def test_newest_first(db_session_repo: Session) -> None:
    """Entries stored with identical timestamps still come back in reverse order of insertion."""
    repo = SQLHistoryRepository(db_session_repo)
    for score in [1000, 2000, 3000]:
        repo.add_summary(_summary(score=score))

    scores = [summary.score for summary in repo.list_summaries("player-1")]
    assert scores == [3000, 2000, 1000]


def test_oldest_entries_are_discarded(db_session_repo: Session) -> None:
    repo = SQLHistoryRepository(db_session_repo, limit=3)
    for score in range(1000, 1005):
        repo.add_summary(_summary(score=score))

    scores = [summary.score for summary in repo.list_summaries("player-1")]
    assert scores == [1004, 1003, 1002]


def test_limit_is_per_player(db_session_repo: Session) -> None:
    repo = SQLHistoryRepository(db_session_repo, limit=2)
    repo.add_summary(_summary("player-1", 1000))
    for score in [2000, 2001, 2002]:
        repo.add_summary(_summary("player-2", score))
    repo.add_summary(_summary("player-1", 1001))

    assert [s.score for s in repo.list_summaries("player-1")] == [1001, 1000]
    assert [s.score for s in repo.list_summaries("player-2")] == [2002, 2001]


def test_timestamps_come_back_in_utc(db_session_repo: Session) -> None:
    repo = SQLHistoryRepository(db_session_repo)
    repo.add_summary(_summary())
    stored = repo.list_summaries("player-1")[0]
    assert stored.started_at.tzinfo is not None
    assert stored.ended_at - stored.started_at == timedelta(seconds=90)


# -- STATISTICS --
def test_unknown_player_has_no_stats(db_session_repo: Session) -> None:
    repo = SQLUserStatsRepository(db_session_repo)
    assert repo.get_stats("nobody") is None


def test_save_and_get_stats(db_session_repo: Session) -> None:
    repo = SQLUserStatsRepository(db_session_repo)
    stats = UserStats(
        player_id="player-1",
        total_games=2,
        wins=1,
        losses=1,
        best_score=3000,
        average_score=2000,
        current_streak=0,
        best_streak=1,
    )
    saved = repo.save_stats(stats)
    assert saved == stats
    assert repo.get_stats("player-1") == stats


def test_save_stats_overwrites(db_session_repo: Session) -> None:
    """Second save of the same player updates the record instead of creating a new one."""
    repo = SQLUserStatsRepository(db_session_repo)
    repo.save_stats(UserStats(player_id="player-1", total_games=1, wins=1))
    repo.save_stats(UserStats(player_id="player-1", total_games=2, wins=1, draws=1))

    stats = repo.get_stats("player-1")
    assert stats is not None
    assert (stats.total_games, stats.wins, stats.draws) == (2, 1, 1)
