"""
Logging configuration for EchoProbe.

Console output goes to stdout; the progress bar and CLI errors use stderr,
so the two streams can be redirected separately. An optional rotating file
keeps the per-sample debug lines of long runs.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from .config import LoggingConfig


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Transport and HTTP libraries log every frame/request at DEBUG
QUIET_LOGGERS = ('websockets', 'urllib3', 'requests')


def _file_handler(config: LoggingConfig) -> logging.Handler:
    log_path = Path(config.file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=config.max_size * 1024 * 1024,  # MB
        backupCount=config.backup_count
    )


def _install(root_logger: logging.Logger, handler: logging.Handler,
             formatter: logging.Formatter, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def setup_logging(config: LoggingConfig, level: int = logging.INFO) -> None:
    """Route EchoProbe logging to the console and, if configured, a rotating file.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. An unwritable log file only disables file
    logging.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    _install(root_logger, logging.StreamHandler(sys.stdout), formatter, level)

    if config.file:
        try:
            _install(root_logger, _file_handler(config), formatter, level)
        except OSError as e:
            # Console logging is already in place to carry this
            logging.getLogger(__name__).warning(f"File logging disabled ({config.file}): {e}")

    logging.getLogger('echoprobe').setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``echoprobe`` namespace."""
    return logging.getLogger(f"echoprobe.{name}")
