"""Correlation ID context for tracing one notifier invocation.

A correlation ID is set once per batch run (handler call or CLI run) and is
read by the logging processor, so every log line of that run carries it.
ContextVar storage means per-claim worker tasks inherit it automatically.

Usage:
    from claim_notifier.observability.context import correlation_id_context

    with correlation_id_context(request_id) as corr_id:
        await pipeline.run(claims)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set the correlation ID for the current context.

    Args:
        corr_id: Optional correlation ID. If None, generates a UUID4.

    Returns:
        The correlation ID that was set.
    """
    if corr_id is None:
        corr_id = str(uuid.uuid4())

    _correlation_id_var.set(corr_id)
    return corr_id


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID, or None if not set."""
    return _correlation_id_var.get()


def clear_correlation_id() -> None:
    """Reset the correlation ID so it does not leak into the next invocation.

    Warm serverless containers reuse the interpreter between invocations.
    """
    _correlation_id_var.set(None)


@contextmanager
def correlation_id_context(
    corr_id: Optional[str] = None,
) -> Generator[str, None, None]:
    """Scope a correlation ID to a block, restoring the previous one on exit.

    Args:
        corr_id: Optional correlation ID. If None, generates a UUID4.

    Yields:
        The correlation ID in effect inside the block.
    """
    if corr_id is None:
        corr_id = str(uuid.uuid4())

    token = _correlation_id_var.set(corr_id)
    try:
        yield corr_id
    finally:
        _correlation_id_var.reset(token)
