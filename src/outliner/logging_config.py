"""Log sinks for the outliner: the terminal, plus a rotating file in the data directory."""

import sys
from pathlib import Path

from loguru import logger

from outliner.config import LOG_FILENAME, LOG_RETENTION, LOG_ROTATION

_CONSOLE_FORMAT = "{level.icon} {message}"
_VERBOSE_FORMAT = "{level.icon} <dim>{name}:{line}</dim> {message}"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(*, verbose: bool = False) -> None:
    """Replace loguru's default sink with a terse stderr sink.

    Verbose mode lowers the level to DEBUG and prefixes each line with the
    module and line that logged it.
    """
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_VERBOSE_FORMAT)
    else:
        logger.add(sys.stderr, level="INFO", format=_CONSOLE_FORMAT)


def add_file_log(directory: Path) -> int:
    """Keep a DEBUG-level log next to the database; returns the sink id for removal."""
    return logger.add(
        directory / LOG_FILENAME,
        level="DEBUG",
        format=_FILE_FORMAT,
        rotation=LOG_ROTATION,
        retention=LOG_RETENTION,
        encoding="utf-8",
    )
