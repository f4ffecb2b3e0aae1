import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from . import config


_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging() -> logging.Logger:
    """Set up the application, access and uvicorn loggers."""
    logger = logging.getLogger("onceshare")
    logger.setLevel(logging.DEBUG if config.DEBUG else logging.INFO)

    if not config.LOG_ENABLED:
        logger.handlers.clear()
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        for name in _UVICORN_LOGGERS:
            ul = logging.getLogger(name)
            ul.handlers.clear()
            ul.propagate = False
            ul.setLevel(logging.CRITICAL)
        return logger

    if logger.handlers:
        return logger

    level = logging.DEBUG if config.DEBUG else logging.INFO
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    # stdout is reserved for the entry URL.
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    console.setLevel(level)
    logger.addHandler(console)
    logger.propagate = False

    file_handler = None
    if config.LOG_FILE:
        log_dir = os.path.dirname(os.path.abspath(config.LOG_FILE))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(config.LOG_FILE, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(fmt)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    for name in _UVICORN_LOGGERS:
        ul = logging.getLogger(name)
        ul.handlers.clear()
        ul.propagate = False
        ul.setLevel(level)
        ul.addHandler(console)
        if file_handler is not None:
            ul.addHandler(file_handler)

    return logger


log = setup_logging()
access_log = logging.getLogger("onceshare.access")


def reload_logging() -> logging.Logger:
    """Reload logger level and handlers from current configuration."""
    logger = logging.getLogger("onceshare")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        try:
            handler.close()
        except Exception:
            pass
    logger.propagate = True

    for name in _UVICORN_LOGGERS:
        ul = logging.getLogger(name)
        ul.handlers.clear()
        ul.propagate = True

    return setup_logging()
