"""Logging setup shared by the cgtop entry points."""

import logging
import sys
import threading

_config_lock = threading.Lock()
_ROOT_LOGGER_NAME = "cgtop"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | int = logging.WARNING, log_file: str | None = None) -> logging.Logger:
    """
    Configure the ``cgtop`` logger hierarchy.

    Logs go to stderr unless ``log_file`` is given. The terminal viewer passes
    a file so that log lines do not draw over the screen. Calling this again
    replaces the previous handler.

    Returns:
        The configured ``cgtop`` logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    with _config_lock:
        for old in list(logger.handlers):
            logger.removeHandler(old)
            old.close()

        if log_file:
            handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))

        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    return logger
