"""Logging configuration using loguru.

Routes stdlib logging (uvicorn, httpx, sqlalchemy, and the provider client,
which logs through ``logging``) into loguru so every record shares one sink.
``HARBOR_LOG_JSON=true`` switches the sink to one JSON object per line for
log shippers; the human format is the default.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine")


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the original call-site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, json_logs: bool = False, sink: Any = None) -> None:
    """Install loguru as the only sink.  Call once per process.

    *sink* is anything ``logger.add`` accepts and defaults to stderr.
    """
    level = level.upper()
    sink = sink if sink is not None else sys.stderr

    logger.remove()
    if json_logs:
        logger.add(sink, level=level, serialize=True)
    else:
        logger.add(sink, level=level, format=LOG_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialised (level={}, json={})", level, json_logs)
