"""Structured logging with correlation ID propagation.

Configures structlog so that every entry carries:
- the correlation ID of the current invocation
- the log level and an ISO timestamp
- an optional component name for filtering

Usage:
    from claim_notifier.observability.logging import get_logger, configure_logging

    configure_logging(level="INFO")

    logger = get_logger("dispatcher")
    logger.info("claim_dispatched", claim_id="C1")

    # {"event": "claim_dispatched", "claim_id": "C1",
    #  "correlation_id": "abc-123", "component": "dispatcher", ...}
"""

import logging
import os
import sys
from typing import Any, Mapping, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from claim_notifier.observability.context import get_correlation_id


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds correlation_id to log entries.

    Uses "none" when no correlation ID is set.
    """
    corr_id = get_correlation_id()
    event_dict["correlation_id"] = corr_id if corr_id else "none"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the notifier.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, render JSON (log aggregation). If False, use
            the colored console renderer (local runs).
        add_timestamp: If True, add ISO timestamp to each log entry.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(
    component: Optional[str] = None,
    **initial_context: Any,
) -> Any:
    """Get a structured logger with optional component context.

    Args:
        component: Optional component/service name to include in logs
        **initial_context: Additional context to bind to all log entries

    Returns:
        A bound structlog logger
    """
    logger = structlog.get_logger()

    if component:
        logger = logger.bind(component=component)

    if initial_context:
        logger = logger.bind(**initial_context)

    return logger


def bind_context(**context: Any) -> None:
    """Bind context to all subsequent log entries in the current context.

    Example:
        bind_context(invocation="scheduled", claims=12)
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound structlog contextvars."""
    structlog.contextvars.clear_contextvars()


def configure_logging_from_env(environ: Optional[Mapping[str, str]] = None) -> None:
    """Configure logging from LOG_LEVEL and LOG_FORMAT ("json" or "console").

    Logging is set up before configuration is loaded so that configuration
    errors are themselves logged in the production format.
    """
    env = os.environ if environ is None else environ
    configure_logging(
        level=env.get("LOG_LEVEL", "INFO"),
        json_output=env.get("LOG_FORMAT", "json").lower() != "console",
    )
