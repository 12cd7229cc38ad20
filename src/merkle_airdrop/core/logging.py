"""
Merkle Airdrop Claim Service - Logging Configuration

The service logs to stdout. The CLI passes stderr so that proof JSON and
roots printed on stdout stay machine-readable.
"""

import logging
import sys
from typing import TextIO

import structlog

from merkle_airdrop.core.config import settings

NOISY_LOGGERS = ("uvicorn.access", "multipart")


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> None:
    """
    Configure structured logging.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        stream: Output stream, defaults to stdout
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    stream = stream or sys.stdout
    use_json = settings.ENV == "production"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if use_json:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream)
    logging.getLogger().setLevel(getattr(logging, level_name))
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
