"""Logging configuration using loguru.

Intercepts stdlib logging so that the restorer, httpx, botocore, etc. all
flow through loguru with a unified format.  Records from the ``mapsession``
package are shown at the configured level; everything else only from
``third_party_level`` up.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from loguru import logger

PACKAGE_LOGGER = "mapsession"

_CHATTY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3")

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, third_party_level: str = "WARNING", sink: Any = sys.stderr) -> None:
    """Configure loguru as the sole logging sink.  Call once at startup."""
    level = level.upper()
    third_party_level = third_party_level.upper()

    logger.remove()
    logger.add(
        sink,
        level="TRACE",
        format=_FORMAT,
        filter={"": third_party_level, PACKAGE_LOGGER: level},
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logger.debug("Logging initialised (level={}, third-party level={})", level, third_party_level)
