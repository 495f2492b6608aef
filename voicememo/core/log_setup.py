"""Logging setup shared by the CLI and the HTTP app factory."""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO", log_file: str = "") -> logging.Logger:
    """Configure the ``voicememo`` logger once.

    Args:
        level: Logging level name (e.g. "INFO", "DEBUG").
        log_file: Optional path for a rotating log file in addition to stderr.

    Returns:
        The package root logger.
    """
    logger = logging.getLogger("voicememo")
    logger.setLevel(level.upper())

    if not logger.handlers:
        fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        logger.addHandler(console)

        if log_file:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3)
            handler.setFormatter(fmt)
            logger.addHandler(handler)

    return logger
