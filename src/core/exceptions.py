"""
Exception hierarchy shared by all layers.

Every error raised on purpose derives from GameError, so callers can catch the whole family at once.
"""


class GameError(Exception):
    """Top-level error for anything that goes wrong while playing a session."""


class IllegalMoveError(GameError):
    """The origin/destination pair (or promotion choice) is not legal for the side to move."""


class InvalidRequestError(GameError):
    """The request does not fit the current state of the session. Session is left unchanged."""


class NotYourTurnError(InvalidRequestError):
    """A human move arrived while the opponent is still to move."""


class SessionTerminatedError(InvalidRequestError):
    """The session already ended and accepts no further moves."""


class EngineFaultError(GameError):
    """
    Opponent found no move in a live position, or the rules engine reported an inconsistent state.

    NOTE this is a defect, not a user mistake. The session refuses further transitions once raised.
    """


class RepositoryError(GameError):
    """Persistence layer could not find or store a record."""


class SessionNotFoundError(RepositoryError):
    """No live session with the requested ID."""
