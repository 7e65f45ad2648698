"""Logging setup for the package. Modules log through logging.getLogger(__name__)."""

import logging

PACKAGE_LOGGER = "src"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a single stream handler to the package logger. Calling it again only changes the level."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_chess_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._chess_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
