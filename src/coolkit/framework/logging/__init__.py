"""
Structured, context-aware logging for cool-kit.

Usage:
    from coolkit.framework.logging import configure_logging, get_logger, scoped_context

    configure_logging(level="INFO", log_file="deploy.log")
    log = get_logger(__name__)
    with scoped_context(provider="hetzner", step="Create server"):
        log.info("server.created", server_id=42)
"""

from coolkit.framework.logging.config import configure_logging
from coolkit.framework.logging.context import (
    LogContext,
    clear_context,
    get_context,
    get_logger,
    pop_context,
    push_context,
    scoped_context,
    set_context,
)
from coolkit.framework.logging.timing import TimingResult, log_step, timed_block

__all__ = [
    "configure_logging",
    "get_logger",
    "set_context",
    "clear_context",
    "get_context",
    "push_context",
    "pop_context",
    "scoped_context",
    "LogContext",
    "TimingResult",
    "log_step",
    "timed_block",
]
