from __future__ import annotations

import logging
import sys

LOGGER_NAME = "todo_api"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


# PUBLIC_INTERFACE
def setup_logging(level_name: str = "INFO") -> logging.Logger:
    """
    Configure the package logger with a single stdout handler.

    Calling this more than once only adjusts the level, so re-importing the
    app (tests, reloaders) does not stack duplicate handlers.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(h.get_name() == LOGGER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, _DATEFMT))
        handler.set_name(LOGGER_NAME)
        logger.addHandler(handler)

    for h in logger.handlers:
        h.setLevel(level)

    logger.debug("Logging initialized at %s", logging.getLevelName(level))
    return logger
