"""
Per-thread log context.

The run id, provider and the step or resource being worked on are stored in
a ``ContextVar`` and stamped onto every structlog entry by
:func:`add_context_processor`. Each thread starts empty, so the orchestrator
sets the run on the worker thread itself and the executor and teardown
coordinator narrow it with :func:`scoped_context`.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace
from typing import Any

import structlog


@dataclass(frozen=True)
class LogContext:
    """
    Fields attached to log entries.

    run_id / provider / operation identify the invocation (``deploy``,
    ``destroy``, ``reset``). step is the executor step, resource the teardown
    target and attempt its delete attempt. span_id / parent_span_id come
    from :func:`~coolkit.framework.logging.timing.log_step`.
    """

    run_id: str | None = None
    provider: str | None = None
    operation: str | None = None
    step: str | None = None
    resource: str | None = None
    attempt: int | None = None
    span_id: str | None = None
    parent_span_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **fields: Any) -> "LogContext":
        """Copy with ``fields`` applied; ``None`` values leave a field as is."""
        return replace(self, **{k: v for k, v in fields.items() if v is not None})


_EMPTY = LogContext()
_log_context: ContextVar[LogContext] = ContextVar("coolkit_log_context", default=_EMPTY)


def get_context() -> LogContext:
    return _log_context.get()


def set_context(**fields: Any) -> LogContext:
    """Replace the whole context, e.g. ``set_context(run_id=..., provider="aws")``."""
    ctx = LogContext(**fields)
    _log_context.set(ctx)
    return ctx


def clear_context() -> None:
    _log_context.set(_EMPTY)


def push_context(**fields: Any) -> Token:
    """Layer ``fields`` over the current context; undo with :func:`pop_context`."""
    return _log_context.set(get_context().merge(**fields))


def pop_context(token: Token) -> None:
    _log_context.reset(token)


@contextmanager
def scoped_context(**fields: Any) -> Iterator[LogContext]:
    """``push_context`` for the duration of a ``with`` block."""
    token = push_context(**fields)
    try:
        yield get_context()
    finally:
        pop_context(token)


def add_context_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor; explicit event fields win over context fields."""
    for key, value in get_context().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
