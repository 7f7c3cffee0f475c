"""
Logging Configuration
Attaches console (and optional file) output to the 'gridcov' logger.

Library modules only call logging.getLogger(__name__); nothing is printed
until an application calls setup_logging().
"""
import logging
import sys
from typing import Optional, Union

from gridcov import config

PACKAGE_LOGGER = "gridcov"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = config.LOG_LEVEL
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level {level!r}")
        return resolved
    return int(level)


def setup_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configures the 'gridcov' logger.

    Args:
        level: Logging level or its name ("DEBUG", "info", ...). Defaults to
            config.LOG_LEVEL.
        log_file: Optional path to save logs to a file.

    Handlers added by a previous call are replaced; the package NullHandler
    is kept.
    """
    level = _resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("Logging initialized at %s.", logging.getLevelName(level))
    return logger
