"""Prometheus metrics for the claim notifier.

Per-claim failures never change the invocation's return signal, so these
counters (together with the logs) are how operators see them.

Usage:
    from claim_notifier.observability.metrics import CLAIM_FAILURES

    CLAIM_FAILURES.labels(error_type="data_integrity").inc()
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Private registry keeps tests and warm re-invocations isolated
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

CLAIMS_FETCHED = Counter(
    name="claim_notifier_claims_fetched_total",
    documentation="Total claims returned by the upstream source",
    registry=REGISTRY,
)

CLAIMS_EVALUATED = Counter(
    name="claim_notifier_claims_evaluated_total",
    documentation="Throttle decisions made",
    labelnames=["decision"],  # send, suppress
    registry=REGISTRY,
)

CLAIM_FAILURES = Counter(
    name="claim_notifier_claim_failures_total",
    documentation="Per-claim failures by type",
    # history_query, data_integrity, dispatch, history_append, unexpected
    labelnames=["error_type"],
    registry=REGISTRY,
)

DISPATCHES = Counter(
    name="claim_notifier_dispatches_total",
    documentation="Publish attempts to the delivery queue",
    labelnames=["status"],  # success, failed
    registry=REGISTRY,
)

FETCH_FAILURES = Counter(
    name="claim_notifier_fetch_failures_total",
    documentation="Upstream claim fetches that aborted the run",
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

CLAIM_PROCESSING_DURATION = Histogram(
    name="claim_notifier_claim_processing_duration_seconds",
    documentation="Time to take one claim to a terminal state",
    labelnames=["state"],  # suppressed, dispatched, failed
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
    registry=REGISTRY,
)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_metrics_text() -> bytes:
    """Generate the notifier metrics in Prometheus text format.

    Returns:
        UTF-8 encoded metrics in Prometheus exposition format.
    """
    return generate_latest(REGISTRY)
