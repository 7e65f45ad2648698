"""Orchestration of communication from the caller to the game layer and persistence layer (and the reverse direction)."""

import logging
import threading
from typing import Callable, Optional, Self
from uuid import UUID

from sqlalchemy.orm import Session

from src.api.models import (
    GameSummaryResponse,
    HistoryResponse,
    LegalMovesRequest,
    LegalMovesResponse,
    MoveRequest,
    MoveResponse,
    PlayerRequest,
    PromotionRequest,
    SessionRequest,
    SessionResponse,
    StartSessionRequest,
    StatsResponse,
)
from src.core.config import Settings, load_settings
from src.core.exceptions import InvalidRequestError, SessionNotFoundError
from src.core.logging_config import setup_logging
from src.db.database import create_session_factory
from src.db.repository import HistoryRepository, UserStatsRepository
from src.db.sql_repository import SQLHistoryRepository, SQLUserStatsRepository
from src.game.opponent import OpponentPolicy
from src.game.session import GameSession
from src.rules.chess_engine import ChessRulesEngine
from src.rules.contract import RulesEngine
from src.services.history import SessionHistoryRecorder

log = logging.getLogger(__name__)


class SessionService:
    """
    Orchestration of layers for single-player sessions.

    Every live session is kept here by ID, each with its own engine and opponent policy (nothing shared between sessions).
    """

    def __init__(
        self,
        history: HistoryRepository,
        stats: UserStatsRepository,
        pacing_delay: float = 0.0,
        engine_factory: Callable[[], RulesEngine] = ChessRulesEngine,
        policy_factory: Callable[[], OpponentPolicy] = OpponentPolicy,
        db_session: Optional[Session] = None,
    ) -> None:
        self.recorder = SessionHistoryRecorder(history, stats)
        self.pacing_delay = pacing_delay
        self._engine_factory = engine_factory
        self._policy_factory = policy_factory
        self._sessions: dict[UUID, GameSession] = {}
        self._lock = threading.Lock()
        # only set when the service opened the database session itself (from_settings)
        self._db = db_session

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Self:
        """Wire the service to the SQL repositories configured in the settings (read from the environment if not given)."""
        settings = settings or load_settings()
        setup_logging(settings.log_level)
        SessionLocal = create_session_factory(settings)
        db = SessionLocal()
        return cls(
            history=SQLHistoryRepository(db, limit=settings.history_limit),
            stats=SQLUserStatsRepository(db),
            pacing_delay=settings.pacing_delay_s,
            db_session=db,
        )

    # -- Caller facing logic ---
    def start_session(self, request: StartSessionRequest) -> SessionResponse:
        """Player requested a new match against the synthetic opponent."""
        session = GameSession.start(
            difficulty=request.difficulty,
            player_id=request.player_id,
            recorder=self.recorder,
            engine=self._engine_factory(),
            policy=self._policy_factory(),
            pacing_delay=self.pacing_delay,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return self._create_session_response(session)

    def submit_move(self, request: MoveRequest) -> MoveResponse:
        """Make a move attempt (optionally with the promotion piece)."""
        session = self._fetch_session(request.session_id)
        result = session.submit_move(
            request.from_square, request.to_square, request.promote_to
        )
        return MoveResponse(
            result=result, session=self._create_session_response(session)
        )

    def choose_promotion(self, request: PromotionRequest) -> MoveResponse:
        """Answer to a pending promotion choice."""
        session = self._fetch_session(request.session_id)
        result = session.choose_promotion(request.promote_to)
        return MoveResponse(
            result=result, session=self._create_session_response(session)
        )

    def forfeit(self, request: SessionRequest) -> GameSummaryResponse:
        session = self._fetch_session(request.session_id)
        summary = session.forfeit()
        return GameSummaryResponse.from_summary(summary)

    def get_session(self, request: SessionRequest) -> SessionResponse:
        """
        Retrieve current session state.
        ----
        Used in "polling" loop by a frontend to see when the (deferred) opponent move has been made.
        """
        session = self._fetch_session(request.session_id)
        return self._create_session_response(session)

    def legal_destinations(self, request: LegalMovesRequest) -> LegalMovesResponse:
        """Destinations for the piece on the selected square."""
        session = self._fetch_session(request.session_id)
        return LegalMovesResponse(
            session_id=request.session_id,
            square=request.square,
            destinations=session.legal_destinations(request.square),
        )

    def game_end_details(self, request: SessionRequest) -> GameSummaryResponse:
        session = self._fetch_session(request.session_id)
        summary = session.game_end_details()
        if summary is None:
            raise InvalidRequestError(
                f"Session {request.session_id} is still in progress."
            )
        return GameSummaryResponse.from_summary(summary)

    def close_session(self, request: SessionRequest) -> None:
        """Handle a request to drop a session. A deferred opponent move of that session is never applied."""
        with self._lock:
            session = self._sessions.pop(request.session_id, None)
        if session is None:
            raise SessionNotFoundError(f"Session with {request.session_id=} not found.")
        session.dispose()

    def close(self) -> None:
        """Dispose every live session (no deferred opponent move is applied afterwards) and release the database session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.dispose()
        if self._db is not None:
            self._db.close()
        log.info("Session service closed, %d live sessions disposed", len(sessions))

    def game_history(self, request: PlayerRequest) -> HistoryResponse:
        summaries = self.recorder.summaries(request.player_id)
        return HistoryResponse(
            player_id=request.player_id,
            games=[GameSummaryResponse.from_summary(summary) for summary in summaries],
        )

    def user_stats(self, request: PlayerRequest) -> StatsResponse:
        return StatsResponse.from_stats(self.recorder.user_stats(request.player_id))

    # -- Internal helpers --
    def _create_session_response(self, session: GameSession) -> SessionResponse:
        return SessionResponse.from_snapshot(session.current_state())

    def _fetch_session(self, session_id: UUID) -> GameSession:
        """Attempt to find the live session and raise error if it fails."""
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session with {session_id=} not found.")
        return session
