"""
structlog setup for berth.

``configure_logging()`` is called once by entry points (the CLI does it
after loading settings). Library code only calls ``get_logger()``; until
logging is configured, structlog's defaults apply.

Level and format fall back to ``BERTH_LOG_LEVEL`` / ``BERTH_LOG_FORMAT``
when not passed explicitly. Format is ``console`` (default) or ``json``.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.types import Processor

from berth.framework.logging.context import add_context_processor

_configured = False


def _shared_processors() -> list[Processor]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_context_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    level: str | None = None,
    format: str | None = None,
    force: bool = False,
) -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        format: ``console`` or ``json``.
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    level_name = (level or os.environ.get("BERTH_LOG_LEVEL") or "INFO").upper()
    log_format = (format or os.environ.get("BERTH_LOG_FORMAT") or "console").lower()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric, force=True)
    logging.getLogger("berth").setLevel(numeric)

    structlog.configure(
        processors=[*_shared_processors(), _renderer(log_format)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def is_configured() -> bool:
    return _configured
