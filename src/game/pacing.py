"""
Deferred opponent turns.

A session may wait a short moment before its opponent replies. The reply runs on a ScheduledTurn,
a one-shot timer bound to the session's CancellationToken: once the token is cancelled (the session
was disposed) a turn that fires anyway does nothing.
"""

import logging
import threading
from typing import Callable

log = logging.getLogger(__name__)


class CancellationToken:
    """Set once, never reset."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ScheduledTurn:
    """Runs an action once after a delay, unless cancelled first."""

    def __init__(
        self, delay: float, action: Callable[[], None], token: CancellationToken
    ) -> None:
        self._action = action
        self._token = token
        self._cancelled = False
        self._running = False
        self._finished = threading.Event()
        self._timer = threading.Timer(delay, self._run)
        self._timer.daemon = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled or self._token.cancelled

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()
        # a turn that already started finishes on its own
        if not self._running:
            self._finished.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the turn ran or was cancelled. False if the timeout expired first."""
        return self._finished.wait(timeout)

    def _run(self) -> None:
        self._running = True
        try:
            if self.cancelled:
                log.debug("Dropping cancelled opponent turn.")
                return
            self._action()
        finally:
            self._finished.set()
