"""
Berth Framework Logging - Structured, job-aware logging.

This module provides:
- Structured logging with structlog
- Job context propagation via contextvars
- Step timing for pipeline stages
- Environment-based configuration

Usage:
    from berth.framework.logging import get_logger, configure_logging, log_step, set_context

    configure_logging()
    log = get_logger(__name__)

    set_context(instance_id="5f1c...", image="alpine:3.20")

    with log_step("image.pull"):
        pull_image()
"""

from berth.framework.logging.config import configure_logging, is_configured
from berth.framework.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    set_context,
)
from berth.framework.logging.timing import StepTimer, log_step

__all__ = [
    # Configuration
    "configure_logging",
    "is_configured",
    # Context
    "get_logger",
    "set_context",
    "clear_context",
    "get_context",
    "bind_context",
    "LogContext",
    # Timing
    "log_step",
    "StepTimer",
]
