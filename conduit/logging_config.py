"""
Centralized logging configuration.

Call setup_logging() once at application startup.
"""

import logging
from typing import Union


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure the root logger.

    Handlers are only installed when the root logger has none yet, so a
    second call (or a test harness that already captures logs) just
    adjusts the level.

    Args:
        level: Log level as a number or a name such as "DEBUG"
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logging.getLogger().setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging configured with level: %s", logging.getLevelName(level)
    )
