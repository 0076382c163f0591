"""
Logging setup for the netpulse package logger.

Console output always; a size-rotated file under config.logs_dir unless
NETPULSE_LOG_TO_FILE is off. Level, rotation size and backup count come from
config.
"""

import logging
import logging.handlers
from typing import List, Optional

from .config import config

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _build_handlers(logger_name: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.log_to_file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.logs_dir / f"{logger_name}.log",
                maxBytes=config.log_max_bytes,
                backupCount=config.log_backup_count,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(logger_name: str = "netpulse", level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger.

    Handlers are attached on the first call only; later calls just adjust
    the level, so the CLI can run repeatedly in one process.

    Args:
        logger_name: Logger to configure ("netpulse" covers every module)
        level: Level name overriding config.log_level
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel((level or config.log_level).upper())

    if not logger.handlers:
        for handler in _build_handlers(logger_name):
            logger.addHandler(handler)

    return logger
