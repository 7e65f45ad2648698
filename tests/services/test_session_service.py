"""Unit tests for src/services/session_service.py"""

import random
from typing import Generator
from uuid import uuid4

import pytest

from src.api.models import (
    LegalMovesRequest,
    MoveRequest,
    PlayerRequest,
    PromotionRequest,
    SessionRequest,
    StartSessionRequest,
)
from src.core.config import Settings
from src.core.exceptions import (
    GameError,
    InvalidRequestError,
    NotYourTurnError,
    SessionNotFoundError,
    SessionTerminatedError,
)
from src.core.models import HistorySummary, PlayerId, UserStats
from src.core.shared_types import (
    Difficulty,
    Outcome,
    PieceType,
    SessionState,
    SubmitResult,
)
from src.game.opponent import OpponentPolicy
from src.rules.chess_engine import ChessRulesEngine
from src.services.session_service import SessionService

PROMOTION_FEN = "k7/4P3/8/8/8/8/8/4K3 w - - 0 1"


# --- MOCK DEPENDENCIES ----
class MockHistoryRepository:
    """Mock the HistoryRepository using a dictionary of lists, newest first."""

    def __init__(self, limit: int = 50) -> None:
        self.limit = limit
        self._summaries: dict[PlayerId, list[HistorySummary]] = {}

    def add_summary(self, summary: HistorySummary) -> None:
        entries = self._summaries.setdefault(summary.player_id, [])
        entries.insert(0, summary)
        del entries[self.limit :]

    def list_summaries(self, player_id: PlayerId) -> list[HistorySummary]:
        return list(self._summaries.get(player_id, []))

    def clear(self) -> None:
        self._summaries.clear()


class MockStatsRepository:
    """Mock the UserStatsRepository using a dictionary of stats."""

    def __init__(self) -> None:
        self._stats: dict[PlayerId, UserStats] = {}

    def get_stats(self, player_id: PlayerId) -> UserStats | None:
        return self._stats.get(player_id)

    def save_stats(self, stats: UserStats) -> UserStats:
        self._stats[stats.player_id] = stats
        return stats

    def clear(self) -> None:
        self._stats.clear()


@pytest.fixture
def service() -> Generator[SessionService, None, None]:
    """Synchronous opponent (no pause), seeded so every run plays the same games."""
    history = MockHistoryRepository()
    stats = MockStatsRepository()
    service = SessionService(
        history,
        stats,
        policy_factory=lambda: OpponentPolicy(random.Random(5)),
    )
    try:
        yield service
    finally:
        history.clear()
        stats.clear()


def start(service: SessionService, player_id: str = "player-1") -> SessionRequest:
    response = service.start_session(
        StartSessionRequest(player_id=player_id, difficulty=Difficulty.EASY)
    )
    return SessionRequest(session_id=response.session_id)


# --- SERVICE - START ---
def test_start_session(service: SessionService) -> None:
    response = service.start_session(
        StartSessionRequest(player_id="player-1", difficulty=Difficulty.MEDIUM)
    )
    assert response.player_id == "player-1"
    assert response.difficulty == Difficulty.MEDIUM
    assert response.state == SessionState.AWAITING_HUMAN_MOVE
    assert response.score == 1000
    assert response.move_history == []
    assert response.opponent_label


def test_sessions_are_independent(service: SessionService) -> None:
    first = start(service)
    second = start(service)
    assert first.session_id != second.session_id

    service.submit_move(
        MoveRequest(session_id=first.session_id, from_square="e2", to_square="e4")
    )
    assert service.get_session(second).move_history == []


# --- SERVICE - MOVES ---
def test_submit_move_and_opponent_reply(service: SessionService) -> None:
    request = start(service)
    response = service.submit_move(
        MoveRequest(session_id=request.session_id, from_square="g1", to_square="f3")
    )
    assert response.result == SubmitResult.ACCEPTED
    assert response.session.state == SessionState.AWAITING_HUMAN_MOVE
    assert len(response.session.move_history) == 2


def test_legal_destinations(service: SessionService) -> None:
    request = start(service)
    response = service.legal_destinations(
        LegalMovesRequest(session_id=request.session_id, square="b1")
    )
    assert sorted(response.destinations) == ["a3", "c3"]


def test_unknown_session(service: SessionService) -> None:
    with pytest.raises(SessionNotFoundError):
        service.get_session(SessionRequest(session_id=uuid4()))
    with pytest.raises(GameError):
        service.submit_move(
            MoveRequest(session_id=uuid4(), from_square="e2", to_square="e4")
        )


def test_promotion_handshake() -> None:
    service = SessionService(
        MockHistoryRepository(),
        MockStatsRepository(),
        pacing_delay=60.0,
        engine_factory=lambda: ChessRulesEngine.from_position(PROMOTION_FEN),
    )
    request = start(service)

    response = service.submit_move(
        MoveRequest(session_id=request.session_id, from_square="e7", to_square="e8")
    )
    assert response.result == SubmitResult.AWAITING_PROMOTION
    assert response.session.pending_promotion == ("e7", "e8")

    response = service.choose_promotion(
        PromotionRequest(session_id=request.session_id, promote_to=PieceType.QUEEN)
    )
    assert response.result == SubmitResult.ACCEPTED
    assert response.session.state == SessionState.AWAITING_OPPONENT_MOVE
    assert response.session.move_history[0].promotion == PieceType.QUEEN

    with pytest.raises(NotYourTurnError):
        service.submit_move(
            MoveRequest(session_id=request.session_id, from_square="e8", to_square="e1")
        )
    service.close_session(request)


# --- SERVICE - END OF GAME ---
def test_forfeit_records_history_and_stats(service: SessionService) -> None:
    request = start(service)
    summary = service.forfeit(request)
    assert summary.outcome == Outcome.LOSS
    assert summary.score == 1000

    history = service.game_history(PlayerRequest(player_id="player-1"))
    assert [game.outcome for game in history.games] == [Outcome.LOSS]

    stats = service.user_stats(PlayerRequest(player_id="player-1"))
    assert (stats.total_games, stats.losses, stats.current_streak) == (1, 1, 0)
    assert stats.best_score == 1000

    assert service.game_end_details(request) == summary
    with pytest.raises(SessionTerminatedError):
        service.forfeit(request)


def test_game_end_details_while_playing(service: SessionService) -> None:
    request = start(service)
    with pytest.raises(InvalidRequestError):
        service.game_end_details(request)


def test_stats_of_new_player(service: SessionService) -> None:
    stats = service.user_stats(PlayerRequest(player_id="newcomer"))
    assert stats.total_games == 0
    assert service.game_history(PlayerRequest(player_id="newcomer")).games == []


def test_history_is_per_player(service: SessionService) -> None:
    service.forfeit(start(service, "player-1"))
    service.forfeit(start(service, "player-1"))
    service.forfeit(start(service, "player-2"))

    assert len(service.game_history(PlayerRequest(player_id="player-1")).games) == 2
    assert len(service.game_history(PlayerRequest(player_id="player-2")).games) == 1


# --- SERVICE - CLOSE ---
def test_close_session(service: SessionService) -> None:
    request = start(service)
    service.close_session(request)
    with pytest.raises(SessionNotFoundError):
        service.get_session(request)
    with pytest.raises(SessionNotFoundError):
        service.close_session(request)


def test_close_drops_deferred_opponent_move() -> None:
    service = SessionService(
        MockHistoryRepository(), MockStatsRepository(), pacing_delay=60.0
    )
    request = start(service)
    service.submit_move(
        MoveRequest(session_id=request.session_id, from_square="e2", to_square="e4")
    )
    session = service._sessions[request.session_id]
    service.close_session(request)

    assert session.wait_for_opponent(timeout=1.0)
    assert len(session.current_state().move_log) == 1


def test_close_disposes_every_session() -> None:
    service = SessionService(
        MockHistoryRepository(), MockStatsRepository(), pacing_delay=60.0
    )
    waiting = start(service)
    idle = start(service)
    service.submit_move(
        MoveRequest(session_id=waiting.session_id, from_square="e2", to_square="e4")
    )
    session = service._sessions[waiting.session_id]

    service.close()

    assert session.wait_for_opponent(timeout=1.0)
    assert len(session.current_state().move_log) == 1
    for request in [waiting, idle]:
        with pytest.raises(SessionNotFoundError):
            service.get_session(request)


# --- SERVICE - SQL REPOSITORIES ---
def test_from_settings_with_sql_repositories() -> None:
    settings = Settings(database_url="sqlite:///:memory:", pacing_delay_s=0.0, history_limit=2)
    service = SessionService.from_settings(settings)

    for _ in range(3):
        service.forfeit(start(service))

    history = service.game_history(PlayerRequest(player_id="player-1"))
    assert len(history.games) == 2
    assert service.user_stats(PlayerRequest(player_id="player-1")).losses == 3

    service.close()


def test_close_releases_database_session() -> None:
    class MockDBSession:
        closed = False

        def close(self) -> None:
            self.closed = True

    db = MockDBSession()
    service = SessionService(MockHistoryRepository(), MockStatsRepository(), db_session=db)  # type: ignore[arg-type]
    service.close()
    assert db.closed
