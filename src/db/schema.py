"""Database tables / schema"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.core.models import utc_now


class Base(DeclarativeBase):
    pass


class DBHistoryEntry(Base):
    """One finished session. 'seq' keeps the insertion order, even for entries stored within the same second."""

    __tablename__ = "game_history"
    __table_args__ = (Index("ix_game_history_player_seq", "player_id", "seq"),)

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[UUID] = mapped_column(unique=True)
    player_id: Mapped[str]
    opponent_label: Mapped[str]
    difficulty: Mapped[str]
    outcome: Mapped[str]
    score: Mapped[int]
    final_score: Mapped[int]
    duration_seconds: Mapped[int]
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )


class DBUserStats(Base):
    __tablename__ = "user_stats"
    player_id: Mapped[str] = mapped_column(primary_key=True)
    total_games: Mapped[int] = mapped_column(default=0)
    wins: Mapped[int] = mapped_column(default=0)
    losses: Mapped[int] = mapped_column(default=0)
    draws: Mapped[int] = mapped_column(default=0)
    best_score: Mapped[int] = mapped_column(default=0)
    average_score: Mapped[int] = mapped_column(default=0)
    current_streak: Mapped[int] = mapped_column(default=0)
    best_streak: Mapped[int] = mapped_column(default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
