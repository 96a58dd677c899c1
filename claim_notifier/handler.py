"""Invocation entry point.

One invocation is one batch run: load configuration, fetch claims, run the
pipeline. Only configuration and fetch failures fail the invocation;
per-claim failures show up in logs and metrics.

Usage (serverless runtime):
    handler: claim_notifier.handler.handle_request
"""

import asyncio
import time
from typing import Any, Dict, Optional

import structlog
from botocore.exceptions import BotoCoreError

from claim_notifier.models.config import NotifierConfig
from claim_notifier.observability.context import correlation_id_context
from claim_notifier.observability.logging import (
    bind_context,
    clear_context,
    configure_logging_from_env,
)
from claim_notifier.observability.metrics import (
    CLAIMS_FETCHED,
    FETCH_FAILURES,
    get_metrics_text,
)
from claim_notifier.orchestration.pipeline import NotificationPipeline
from claim_notifier.orchestration.result import PipelineResult
from claim_notifier.services.claim_source import ClaimSource
from claim_notifier.services.config_manager import ConfigManager
from claim_notifier.services.delivery_queue import DeliveryQueue, SqsDeliveryQueue
from claim_notifier.services.history_store import DynamoHistoryStore, HistoryStore
from claim_notifier.utils.exceptions import ConfigError, FetchError

logger = structlog.get_logger()

# Time kept in reserve at the end of an invocation for in-flight claims
DEADLINE_MARGIN_SECONDS = 10.0


def deadline_from_context(context: Any) -> Optional[float]:
    """Monotonic deadline derived from the runtime's remaining time, if known."""
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if get_remaining is None:
        return None
    remaining_seconds = get_remaining() / 1000.0
    return time.monotonic() + max(0.0, remaining_seconds - DEADLINE_MARGIN_SECONDS)


def emit_metrics() -> None:
    """Log the Prometheus exposition text so the log pipeline can scrape it.

    Counters are cumulative for the life of the process, so a warm container
    reports totals across its invocations.
    """
    logger.info("invocation_metrics", metrics=get_metrics_text().decode("utf-8"))


async def run_invocation(
    config: NotifierConfig,
    claim_source: Optional[ClaimSource] = None,
    history_store: Optional[HistoryStore] = None,
    queue: Optional[DeliveryQueue] = None,
    deadline: Optional[float] = None,
) -> PipelineResult:
    """Fetch claims and run the pipeline over them.

    Collaborators default to the production adapters built from ``config``.

    Raises:
        ConfigError: AWS clients could not be built from the configuration.
        FetchError: The claim list could not be retrieved; nothing was
            processed.
    """
    try:
        history_store = history_store or DynamoHistoryStore(
            table_name=config.history_table,
            region=config.aws_region,
            timeout_seconds=config.operation_timeout_seconds,
        )
        queue = queue or SqsDeliveryQueue(
            region=config.aws_region,
            timeout_seconds=config.operation_timeout_seconds,
        )
    except BotoCoreError as e:
        # e.g. NoRegionError when neither AWS_REGION nor a profile is set
        raise ConfigError(f"AWS client setup failed: {e}") from e

    source = claim_source or ClaimSource(
        url=config.upstream_url,
        api_key=config.upstream_api_key,
        timeout_seconds=config.operation_timeout_seconds,
    )

    try:
        claims = await source.fetch()
    except FetchError as e:
        FETCH_FAILURES.inc()
        logger.error("claim_fetch_failed", error=str(e))
        raise

    CLAIMS_FETCHED.inc(len(claims))

    pipeline = NotificationPipeline.from_config(config, history_store, queue)
    return await pipeline.run(claims, deadline=deadline)


def handle_request(event: Any = None, context: Any = None) -> Dict[str, Any]:
    """Serverless handler: run one batch and report a single status.

    Args:
        event: Triggering event (contents unused).
        context: Runtime context; supplies the request id and remaining time.

    Returns:
        {"status": "ok", "correlation_id": ..., plus the run summary}.

    Raises:
        ConfigError: Required configuration missing or invalid.
        FetchError: Upstream claim list unavailable.
    """
    configure_logging_from_env()
    request_id = getattr(context, "aws_request_id", None)

    with correlation_id_context(request_id) as correlation_id:
        try:
            try:
                config = ConfigManager().load_config()
            except ConfigError as e:
                logger.error("config_invalid", error=str(e))
                raise

            bind_context(history_table=config.history_table)
            result = asyncio.run(
                run_invocation(config, deadline=deadline_from_context(context))
            )
        finally:
            emit_metrics()
            clear_context()

    return {"status": "ok", "correlation_id": correlation_id, **result.to_dict()}
