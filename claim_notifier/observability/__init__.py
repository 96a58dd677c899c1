"""Observability for the claim notifier.

Provides:
- Correlation ID context management for invocation tracing
- Structured logging with context propagation
- Prometheus counters for per-claim outcomes and failures

Usage:
    from claim_notifier.observability import (
        correlation_id_context,
        get_logger,
        CLAIM_FAILURES,
    )

    with correlation_id_context():
        logger = get_logger("pipeline")
        logger.info("pipeline_started", claims=3)
"""

from claim_notifier.observability.context import (
    set_correlation_id,
    get_correlation_id,
    clear_correlation_id,
    correlation_id_context,
)
from claim_notifier.observability.logging import (
    get_logger,
    configure_logging,
    configure_logging_from_env,
    add_correlation_id_processor,
    bind_context,
    clear_context,
)
from claim_notifier.observability.metrics import (
    # Counters
    CLAIMS_FETCHED,
    CLAIMS_EVALUATED,
    CLAIM_FAILURES,
    DISPATCHES,
    FETCH_FAILURES,
    # Histograms
    CLAIM_PROCESSING_DURATION,
    REGISTRY,
    get_metrics_text,
)

__all__ = [
    # Context
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Logging
    "get_logger",
    "configure_logging",
    "configure_logging_from_env",
    "add_correlation_id_processor",
    "bind_context",
    "clear_context",
    # Counters
    "CLAIMS_FETCHED",
    "CLAIMS_EVALUATED",
    "CLAIM_FAILURES",
    "DISPATCHES",
    "FETCH_FAILURES",
    # Histograms
    "CLAIM_PROCESSING_DURATION",
    "REGISTRY",
    "get_metrics_text",
]
