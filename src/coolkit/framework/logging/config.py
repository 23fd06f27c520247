"""
Logging configuration.

Single entry point for structured logging. While the live progress view
owns the terminal, log output on stderr would tear the screen, so the CLI
points logging at a file (``--log-file`` / ``COOLKIT_LOG_FILE``) or keeps the
level at WARNING.

Configuration is read from arguments first, then environment variables:
- COOLKIT_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- COOLKIT_LOG_FORMAT: json | console (default: console)
- COOLKIT_LOG_FILE: path of a file to append logs to (default: stderr)

Usage:
    from coolkit.framework.logging import configure_logging
    configure_logging(level="DEBUG", log_file="deploy.log")
"""

import logging
import os
import sys
from pathlib import Path
from typing import Literal

import structlog
from structlog.types import Processor

from coolkit.framework.logging.context import add_context_processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    log_file: str | Path | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the process.

    Subsequent calls are no-ops unless force=True.

    Args:
        level: Log level (overrides COOLKIT_LOG_LEVEL)
        format: Output format (overrides COOLKIT_LOG_FORMAT)
        log_file: Destination file (overrides COOLKIT_LOG_FILE)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("COOLKIT_LOG_LEVEL", "WARNING")).upper()
    log_format = (format or os.environ.get("COOLKIT_LOG_FORMAT", "console")).lower()
    destination = log_file or os.environ.get("COOLKIT_LOG_FILE") or None

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_context_processor,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=destination is None,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if destination is not None:
        Path(destination).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(destination, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    logging.basicConfig(
        format="%(message)s",
        handlers=[handler],
        level=getattr(logging, log_level),
        force=True,
    )
    logging.getLogger("coolkit").setLevel(getattr(logging, log_level))
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(getattr(logging, log_level), logging.WARNING))

    _configured = True
