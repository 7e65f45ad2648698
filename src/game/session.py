"""
The GameSession is the entrypoint into the game layer for the service layer.
It owns one match between the human (white) and the synthetic opponent (black):
turn order, move validation through the rules engine, the promotion handshake, the running score,
and the end of the game (including handing a summary to the history recorder).

States
----
AWAITING_HUMAN_MOVE --> (AWAITING_PROMOTION_CHOICE) --> AWAITING_OPPONENT_MOVE --> AWAITING_HUMAN_MOVE ...
Any of them --> TERMINATED (checkmate, draw or forfeit). TERMINATED is final.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Protocol, Self
from uuid import UUID, uuid4

from src.core.exceptions import (
    EngineFaultError,
    IllegalMoveError,
    InvalidRequestError,
    NotYourTurnError,
    SessionTerminatedError,
)
from src.core.models import (
    CapturedPiece,
    HistorySummary,
    MoveRecord,
    PlayerId,
    SessionSnapshot,
    SquareName,
    utc_now,
)
from src.core.shared_types import (
    Color,
    Difficulty,
    Outcome,
    PieceType,
    SessionState,
    SubmitResult,
    TerminalCondition,
)
from src.game.names import random_opponent_label
from src.game.opponent import OPPONENT_PROMOTION, OpponentPolicy
from src.game.pacing import CancellationToken, ScheduledTurn
from src.game.scoring import BASE_SCORE, final_score, move_score
from src.rules.chess_engine import ChessRulesEngine
from src.rules.contract import AppliedMove, CandidateMove, RulesEngine

log = logging.getLogger(__name__)

HUMAN_COLOR = Color.WHITE
OPPONENT_COLOR = Color.BLACK


class SessionRecorder(Protocol):
    """Where a finished session goes."""

    def record(self, summary: HistorySummary) -> None:
        """Store the summary of a finished session."""
        ...

    def fold_result(self, player_id: PlayerId, outcome: Outcome, score: int) -> None:
        """Update the player's statistics with the result of a finished session."""
        ...


class GameSession:
    def __init__(
        self,
        difficulty: Difficulty,
        player_id: PlayerId,
        engine: RulesEngine,
        policy: OpponentPolicy,
        opponent_label: str,
        recorder: Optional[SessionRecorder] = None,
        clock: Callable[[], datetime] = utc_now,
        pacing_delay: float = 0.0,
        session_id: Optional[UUID] = None,
    ) -> None:
        self.session_id = session_id or uuid4()
        self.player_id = player_id
        self.opponent_label = opponent_label
        self.difficulty = difficulty

        self._engine = engine
        self._policy = policy
        self._recorder = recorder
        self._clock = clock
        self._pacing_delay = pacing_delay

        self._state = SessionState.AWAITING_HUMAN_MOVE
        self._turn = HUMAN_COLOR
        self._move_log: list[MoveRecord] = []
        self._captured_by_human: list[CapturedPiece] = []
        self._captured_by_opponent: list[CapturedPiece] = []
        self._score = BASE_SCORE
        self._outcome: Optional[Outcome] = None
        self._started_at = clock()
        self._ended_at: Optional[datetime] = None
        self._pending_promotion: Optional[tuple[SquareName, SquareName]] = None
        self._summary: Optional[HistorySummary] = None

        self._fault: Optional[EngineFaultError] = None
        self._disposed = False
        self._lock = threading.RLock()
        self._token = CancellationToken()
        self._scheduled: Optional[ScheduledTurn] = None

    # --- GAME LAYER API CALLED BY SERVICE ---
    @classmethod
    def start(
        cls,
        difficulty: Difficulty,
        player_id: PlayerId,
        recorder: Optional[SessionRecorder] = None,
        engine: Optional[RulesEngine] = None,
        policy: Optional[OpponentPolicy] = None,
        opponent_label: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        pacing_delay: float = 0.0,
    ) -> Self:
        """Start a new match from the standard starting position. The human plays white and moves first."""
        session = cls(
            difficulty=difficulty,
            player_id=player_id,
            engine=engine if engine is not None else ChessRulesEngine(),
            policy=policy if policy is not None else OpponentPolicy(),
            opponent_label=opponent_label or random_opponent_label(),
            recorder=recorder,
            clock=clock,
            pacing_delay=pacing_delay,
        )
        log.info(
            "Session %s started: player %r vs %r (%s)",
            session.session_id,
            player_id,
            session.opponent_label,
            difficulty,
        )
        return session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def score(self) -> int:
        return self._score

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    def submit_move(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType] = None,
    ) -> SubmitResult:
        """
        Human attempts a move
        -----

        1. a pawn reaching the last rank without a promotion piece --> wait for the choice, nothing applied yet
        2. otherwise apply the move: move log, captured pieces, score, turn
        3. game over? --> terminate. Else it is the opponent's turn.

        While a promotion choice is pending, only the pending move (with a piece) is accepted.
        """
        with self._lock:
            self._assert_accepting_requests()

            if self._state == SessionState.AWAITING_PROMOTION_CHOICE:
                self._complete_promotion(origin, destination, promotion)
                return SubmitResult.ACCEPTED

            if self._state == SessionState.AWAITING_OPPONENT_MOVE:
                raise NotYourTurnError(
                    f"It is not your turn. Waiting for {self.opponent_label} to make a move first."
                )

            candidate = self._find_legal_move(origin, destination)
            if candidate.is_promotion and promotion is None:
                self._pending_promotion = (origin, destination)
                self._state = SessionState.AWAITING_PROMOTION_CHOICE
                return SubmitResult.AWAITING_PROMOTION

            if promotion is not None and not candidate.is_promotion:
                raise IllegalMoveError(
                    f"Move {origin}{destination} does not promote a pawn."
                )

            self._play_human_move(origin, destination, promotion)
            return SubmitResult.ACCEPTED

    def choose_promotion(self, promotion: Optional[PieceType]) -> SubmitResult:
        """Second half of the promotion handshake: apply the pending pawn move with the chosen piece."""
        with self._lock:
            self._assert_accepting_requests()
            if self._pending_promotion is None:
                raise InvalidRequestError("There is no promotion choice pending.")
            origin, destination = self._pending_promotion
            self._complete_promotion(origin, destination, promotion)
            return SubmitResult.ACCEPTED

    def forfeit(self) -> HistorySummary:
        """Human gives up. Always a loss, whatever the position."""
        with self._lock:
            self._assert_accepting_requests()
            log.info("Session %s forfeited by %r", self.session_id, self.player_id)
            return self._terminate(Outcome.LOSS)

    def current_state(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                player_id=self.player_id,
                opponent_label=self.opponent_label,
                difficulty=self.difficulty,
                state=self._state,
                turn=self._turn,
                position=self._engine.export_position(),
                move_log=tuple(self._move_log),
                captured_by_human=tuple(self._captured_by_human),
                captured_by_opponent=tuple(self._captured_by_opponent),
                score=self._score,
                outcome=self._outcome,
                started_at=self._started_at,
                ended_at=self._ended_at,
                pending_promotion=self._pending_promotion,
            )

    def legal_destinations(self, square: SquareName) -> list[SquareName]:
        """Squares the human's piece on 'square' can move to. Empty when it is not the human's move."""
        with self._lock:
            if self._state != SessionState.AWAITING_HUMAN_MOVE or self._fault or self._disposed:
                return []
            return [
                move.destination
                for move in self._engine.legal_moves()
                if move.origin == square and move.mover == HUMAN_COLOR
            ]

    def game_end_details(self) -> Optional[HistorySummary]:
        """The summary of the finished session (the same object on every call). None while in progress."""
        return self._summary

    def wait_for_opponent(self, timeout: Optional[float] = None) -> bool:
        """Block until a deferred opponent turn has run. True right away if none is scheduled."""
        with self._lock:
            scheduled = self._scheduled
        if scheduled is None:
            return True
        return scheduled.wait(timeout)

    def dispose(self) -> None:
        """Drop the session: a deferred opponent turn will never be applied."""
        with self._lock:
            self._token.cancel()
            self._cancel_scheduled_turn()
            self._disposed = True
            log.debug("Session %s disposed", self.session_id)

    # -- PRIVATE HELPERS ---
    def _assert_accepting_requests(self) -> None:
        if self._state == SessionState.TERMINATED:
            raise SessionTerminatedError(
                f"Session {self.session_id} is over. outcome: {self._outcome}"
            )
        if self._fault is not None:
            raise EngineFaultError(f"Session {self.session_id} is faulted: {self._fault}")
        if self._disposed:
            raise InvalidRequestError(f"Session {self.session_id} was disposed.")

    def _find_legal_move(
        self, origin: SquareName, destination: SquareName
    ) -> CandidateMove:
        self._assert_engine_in_sync()
        for move in self._engine.legal_moves():
            if move.origin == origin and move.destination == destination:
                return move
        raise IllegalMoveError(f"Move not allowed: {origin}{destination}")

    def _complete_promotion(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType],
    ) -> None:
        """Validate the answer to a pending promotion choice, then play the move."""
        if self._pending_promotion is None:
            raise InvalidRequestError("There is no promotion choice pending.")
        if promotion is None:
            raise InvalidRequestError(
                "A promotion choice is pending: pick a queen, rook, bishop or knight."
            )
        if (origin, destination) != self._pending_promotion:
            pending_origin, pending_destination = self._pending_promotion
            raise InvalidRequestError(
                f"Promotion pending for {pending_origin}{pending_destination}, got {origin}{destination}."
            )
        self._play_human_move(origin, destination, promotion)

    def _play_human_move(
        self,
        origin: SquareName,
        destination: SquareName,
        promotion: Optional[PieceType],
    ) -> None:
        applied = self._engine.apply(origin, destination, promotion)
        self._record_move(applied)
        if self._state == SessionState.TERMINATED:
            return
        self._state = SessionState.AWAITING_OPPONENT_MOVE
        self._schedule_opponent_turn()

    # --- OPPONENT TURN ---
    def _schedule_opponent_turn(self) -> None:
        """Reply right away, or after the pacing delay on a cancellable scheduled turn."""
        if self._pacing_delay <= 0:
            self._play_opponent_turn()
            return
        self._scheduled = ScheduledTurn(
            self._pacing_delay, self._run_scheduled_turn, self._token
        )
        self._scheduled.start()

    def _run_scheduled_turn(self) -> None:
        """Runs on the timer thread. There is no caller to raise to, so errors are logged."""
        with self._lock:
            if (
                self._token.cancelled
                or self._state != SessionState.AWAITING_OPPONENT_MOVE
                or self._fault is not None
            ):
                log.debug("Session %s: stale opponent turn dropped", self.session_id)
                return
            try:
                self._play_opponent_turn()
            except Exception:
                # the session is already faulted (or over) at this point
                log.exception("Session %s: opponent turn failed", self.session_id)

    def _play_opponent_turn(self) -> None:
        """Any error before the game is over faults the session, so it never waits for a reply that cannot come."""
        try:
            self._apply_opponent_move()
        except Exception as e:
            if isinstance(e, EngineFaultError) or self._state == SessionState.TERMINATED:
                raise
            raise self._fail(f"Opponent turn failed: {e!r}") from e

    def _apply_opponent_move(self) -> None:
        self._assert_engine_in_sync()
        move = self._policy.choose(self._engine, self.difficulty)
        if move is None:
            raise self._fail("Opponent found no move in a position that is not over.")

        promotion = OPPONENT_PROMOTION if move.is_promotion else None
        try:
            applied = self._engine.apply(move.origin, move.destination, promotion)
        except IllegalMoveError as e:
            raise self._fail(f"Opponent picked an illegal move: {e}") from e

        self._record_move(applied)
        if self._state != SessionState.TERMINATED:
            self._state = SessionState.AWAITING_HUMAN_MOVE

    # --- BOOKKEEPING ---
    def _record_move(self, applied: AppliedMove) -> None:
        """
        Bookkeeping after the engine accepted a move
        ----

        1. append to the move log (a promotion is logged with the promoted piece)
        2. append the captured piece to the captures of the moving side
        3. recompute the score
        4. flip the turn
        5. game over? --> terminate
        """
        if applied.mover != self._turn:
            raise self._fail(
                f"Engine moved for {applied.mover}, but it is {self._turn} to move."
            )

        piece = applied.promotion or applied.piece
        self._move_log.append(
            MoveRecord(
                mover=applied.mover,
                origin=applied.origin,
                destination=applied.destination,
                piece=piece,
                captured=applied.captured,
                promotion=applied.promotion,
                timestamp=self._clock(),
            )
        )

        if applied.captured is not None:
            captured = CapturedPiece(kind=applied.captured, color=applied.mover.opponent)
            if applied.mover == HUMAN_COLOR:
                self._captured_by_human.append(captured)
            else:
                self._captured_by_opponent.append(captured)

        self._score = move_score(self._score, piece, applied.captured, self.difficulty)
        self._pending_promotion = None
        self._turn = self._turn.opponent

        log.debug(
            "Session %s: %s played %s%s, score %d",
            self.session_id,
            applied.mover,
            applied.origin,
            applied.destination,
            self._score,
        )

        if applied.terminal is not None:
            self._terminate(self._outcome_after(applied))

    def _outcome_after(self, applied: AppliedMove) -> Outcome:
        """Checkmate: the side that just moved wins. Anything else that ends the game is a draw."""
        if applied.terminal != TerminalCondition.CHECKMATE:
            return Outcome.DRAW
        return Outcome.WIN if applied.mover == HUMAN_COLOR else Outcome.LOSS

    def _terminate(self, outcome: Outcome) -> HistorySummary:
        self._cancel_scheduled_turn()
        self._pending_promotion = None

        ended_at = self._clock()
        self._outcome = outcome
        self._ended_at = ended_at
        self._state = SessionState.TERMINATED

        duration = max(0, int((ended_at - self._started_at).total_seconds()))
        summary = HistorySummary(
            player_id=self.player_id,
            opponent_label=self.opponent_label,
            difficulty=self.difficulty,
            outcome=outcome,
            score=self._score,
            final_score=final_score(self._score, self.difficulty, duration, outcome),
            duration_seconds=duration,
            started_at=self._started_at,
            ended_at=ended_at,
        )
        self._summary = summary
        log.info(
            "Session %s over: %s, score %d after %d moves",
            self.session_id,
            outcome,
            self._score,
            len(self._move_log),
        )

        if self._recorder is not None:
            self._store_result(self._recorder, summary)
        return summary

    def _store_result(self, recorder: SessionRecorder, summary: HistorySummary) -> None:
        """
        Hand the finished session to the recorder.

        NOTE the statistics are updated even when storing the summary fails. The error is still raised,
        and the session stays terminated: nothing is retried.
        """
        try:
            recorder.record(summary)
        except Exception:
            log.exception("Session %s: summary could not be stored", self.session_id)
            raise
        finally:
            recorder.fold_result(summary.player_id, summary.outcome, summary.score)

    def _cancel_scheduled_turn(self) -> None:
        if self._scheduled is not None:
            self._scheduled.cancel()

    def _assert_engine_in_sync(self) -> None:
        side = self._engine.side_to_move()
        if side != self._turn:
            raise self._fail(f"Engine has {side} to move, session has {self._turn}.")

    def _fail(self, message: str) -> EngineFaultError:
        """Mark the session as faulted. Returns the error for the caller to raise."""
        self._fault = EngineFaultError(message)
        log.error("Session %s: %s", self.session_id, message)
        return self._fault
