"""Implementation of the repositories using SQLAlchemy"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError
from src.core.models import HistorySummary, PlayerId, UserStats
from src.core.shared_types import Difficulty, Outcome
from src.db.schema import DBHistoryEntry, DBUserStats

log = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def _aware(moment: datetime) -> datetime:
    """SQLite hands back naive datetimes. Everything stored is UTC."""
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class SQLHistoryRepository:
    """Keeps the most recent 'limit' summaries per player. Order of insertion is never changed."""

    def __init__(self, db_session: Session, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.db = db_session
        self.limit = limit

    def add_summary(self, summary: HistorySummary) -> None:
        entry = DBHistoryEntry(
            id=uuid4(),
            player_id=summary.player_id,
            opponent_label=summary.opponent_label,
            difficulty=summary.difficulty.value,
            outcome=summary.outcome.value,
            score=summary.score,
            final_score=summary.final_score,
            duration_seconds=summary.duration_seconds,
            started_at=summary.started_at,
            ended_at=summary.ended_at,
        )
        try:
            self.db.add(entry)
            self.db.flush()
            self._discard_oldest(summary.player_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(
                f"Could not store history of player {summary.player_id!r}"
            ) from e

    def list_summaries(self, player_id: PlayerId) -> list[HistorySummary]:
        query = (
            select(DBHistoryEntry)
            .where(DBHistoryEntry.player_id == player_id)
            .order_by(DBHistoryEntry.seq.desc())
        )
        return [self._to_model(entry) for entry in self.db.scalars(query)]

    def _discard_oldest(self, player_id: PlayerId) -> None:
        """Everything older than the newest 'limit' entries goes."""
        keep = (
            select(DBHistoryEntry.seq)
            .where(DBHistoryEntry.player_id == player_id)
            .order_by(DBHistoryEntry.seq.desc())
            .limit(self.limit)
        )
        result = self.db.execute(
            delete(DBHistoryEntry)
            .where(DBHistoryEntry.player_id == player_id)
            .where(DBHistoryEntry.seq.not_in(keep))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            log.debug("Discarded %d old history entries of %r", result.rowcount, player_id)

    def _to_model(self, entry: DBHistoryEntry) -> HistorySummary:
        """Convert SQLAlchemy model to data transfer model."""
        return HistorySummary(
            player_id=entry.player_id,
            opponent_label=entry.opponent_label,
            difficulty=Difficulty(entry.difficulty),
            outcome=Outcome(entry.outcome),
            score=entry.score,
            final_score=entry.final_score,
            duration_seconds=entry.duration_seconds,
            started_at=_aware(entry.started_at),
            ended_at=_aware(entry.ended_at),
        )


class SQLUserStatsRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_stats(self, player_id: PlayerId) -> UserStats | None:
        stats_db = self._fetch_stats(player_id)
        if stats_db:
            return self._to_model(stats_db)
        return None

    def save_stats(self, stats: UserStats) -> UserStats:
        stats_db = self._fetch_stats(stats.player_id)
        if stats_db is None:
            stats_db = DBUserStats(player_id=stats.player_id)
            self.db.add(stats_db)
        stats_db.total_games = stats.total_games
        stats_db.wins = stats.wins
        stats_db.losses = stats.losses
        stats_db.draws = stats.draws
        stats_db.best_score = stats.best_score
        stats_db.average_score = stats.average_score
        stats_db.current_streak = stats.current_streak
        stats_db.best_streak = stats.best_streak
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(
                f"Could not store statistics of player {stats.player_id!r}"
            ) from e
        self.db.refresh(stats_db)
        return self._to_model(stats_db)

    def _fetch_stats(self, player_id: PlayerId) -> DBUserStats | None:
        query = select(DBUserStats).where(DBUserStats.player_id == player_id)
        return self.db.scalar(query)

    def _to_model(self, stats_db: DBUserStats) -> UserStats:
        """Convert SQLAlchemy model to data transfer model."""
        return UserStats(
            player_id=stats_db.player_id,
            total_games=stats_db.total_games,
            wins=stats_db.wins,
            losses=stats_db.losses,
            draws=stats_db.draws,
            best_score=stats_db.best_score,
            average_score=stats_db.average_score,
            current_streak=stats_db.current_streak,
            best_streak=stats_db.best_streak,
        )
