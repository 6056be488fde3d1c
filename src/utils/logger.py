"""Logging setup shared by the VoteSnap API, extraction pipeline and CLI."""

import logging
import sys

# Libraries that log every decoded image, HTTP connection or multipart part.
NOISY_LOGGERS = ("PIL", "urllib3", "python_multipart", "multipart")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", echo_sql: bool = False) -> None:
    """Configure the root logger once and quiet third-party chatter.

    Args:
        level: Logging level name for the root logger. Unknown names
            fall back to INFO.
        echo_sql: Keep SQLAlchemy engine logging at INFO instead of
            WARNING.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if echo_sql else logging.WARNING
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
