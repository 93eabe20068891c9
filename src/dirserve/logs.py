"""
Logging setup for the server.

Each FileServer gets its own child of the "dirserve" logger ("dirserve.0",
"dirserve.1", ...) with its own console and file handlers, so servers in
one process never share or steal sinks. Each handler holds its own lock,
so lines from concurrent requests never interleave.
"""

import itertools
import logging
import os

from dirserve.config import Config
from dirserve.errors import ConfigError

LOGGER_NAME = 'dirserve'

CONSOLE_FORMAT = '%(asctime)s.%(msecs)03d %(message)s'
CONSOLE_DATEFMT = '%H:%M:%S'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_instances = itertools.count()


def configure_logging(config: Config) -> logging.Logger:
    """
    Make a fresh server logger with handlers for config.

    :raises ConfigError: if the log file cannot be created
    """
    logger = logging.getLogger(f'{LOGGER_NAME}.{next(_instances)}')
    logger.setLevel(logging.DEBUG if config.debug else logging.INFO)

    if config.verbose:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATEFMT))
        logger.addHandler(console)

    if config.logfile:
        try:
            os.makedirs(os.path.dirname(config.logfile), exist_ok=True)
            file_handler = logging.FileHandler(config.logfile, encoding='utf-8')
        except OSError as e:
            close_logging(logger)
            raise ConfigError(f'failed to create log file: {config.logfile}: {e}') from e
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def close_logging(logger: logging.Logger) -> None:
    """Detach and close every handler of a server logger."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
