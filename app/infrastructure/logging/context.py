"""Dispatch context binding for structured logging.

Binds dispatch-scoped context (correlation id, notification key, event id)
to every log entry emitted while a dispatch runs, including entries emitted
from worker threads started with ``run_in_context``.

Usage:
    from infrastructure.logging import bind_dispatch_context

    with bind_dispatch_context(notification_key="goal-scored", event_id="goal:1:x:10"):
        logger.info("dispatch_started")

Dependencies:
    - structlog.contextvars
"""

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional, TypeVar

import structlog

T = TypeVar("T")


@contextmanager
def bind_dispatch_context(
    correlation_id: Optional[str] = None,
    notification_key: Optional[str] = None,
    event_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind dispatch-scoped context to all logs within the context manager.

    Args:
        correlation_id: Unique dispatch identifier. Auto-generated if not provided.
        notification_key: Catalog key being dispatched.
        event_id: Deterministic event id being dispatched.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is bound to structlog's context vars.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}

    if notification_key is not None:
        context["notification_key"] = notification_key

    if event_id is not None:
        context["event_id"] = event_id

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def run_in_context(func: Callable[..., T]) -> Callable[..., T]:
    """Wrap func so it runs inside a copy of the caller's context.

    Thread pools do not inherit context variables; submitting the wrapped
    callable keeps the bound dispatch context on worker thread logs. Each
    call takes a fresh copy, so one wrapper can be submitted many times.

    Example:
        executor.submit(run_in_context(check_device), device_id)
    """

    ctx = contextvars.copy_context()

    def _wrapper(*args: Any, **kwargs: Any) -> T:
        return ctx.copy().run(func, *args, **kwargs)

    return _wrapper


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_dispatch_context() -> None:
    """Clear all dispatch-scoped context from the logging context."""
    structlog.contextvars.clear_contextvars()
