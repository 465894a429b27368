"""Structured logging setup.

Engine modules log through ``structlog.get_logger()`` with snake_case event
names; helper modules use stdlib ``logging``. Both end up in the same
handler once ``configure_logging`` has run.
"""

import logging
import sys
from typing import Optional

import structlog

from capacity_sync.config import get_settings


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Log level name. Defaults to ``Settings.log_level``.
        json_output: Render JSON lines instead of console output.
            Defaults to ``Settings.log_json``.
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    if json_output is None:
        json_output = settings.log_json

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
