"""Notification pipeline.

For each claim, independently:
1. Query send history
2. Decide SEND / SUPPRESS
3. On SEND, dispatch and then commit the history entry

Claims run concurrently under a semaphore. A failure in any step is recorded
against that claim only and the rest of the batch carries on.

Usage:
    pipeline = NotificationPipeline.from_config(config, history_store, queue)
    result = await pipeline.run(claims)
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from claim_notifier.models.claim import Claim, Decision, HistoryEntry
from claim_notifier.models.config import NotifierConfig
from claim_notifier.observability.metrics import (
    CLAIM_FAILURES,
    CLAIM_PROCESSING_DURATION,
    CLAIMS_EVALUATED,
    DISPATCHES,
)
from claim_notifier.orchestration.result import (
    ClaimOutcome,
    ClaimState,
    PipelineResult,
)
from claim_notifier.services.decision_engine import DecisionEngine
from claim_notifier.services.delivery_queue import DeliveryQueue
from claim_notifier.services.dispatcher import DispatchIntent, Dispatcher
from claim_notifier.services.history_store import HistoryStore
from claim_notifier.utils.exceptions import (
    ClaimError,
    DataIntegrityError,
    DispatchError,
    HistoryAppendError,
    HistoryQueryError,
)

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationPipeline:
    """Runs the query -> decide -> dispatch -> record sequence per claim.

    Attributes:
        history_store: Send-history store (shared across workers).
        dispatcher: Publishes claims to the delivery queue.
        engine: Throttle decision engine.
        timeout_seconds: Bound on each history query and append.
        max_concurrent_claims: Claims processed in parallel.
    """

    def __init__(
        self,
        history_store: HistoryStore,
        dispatcher: Dispatcher,
        engine: Optional[DecisionEngine] = None,
        timeout_seconds: float = 30.0,
        max_concurrent_claims: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.history_store = history_store
        self.dispatcher = dispatcher
        self.engine = engine or DecisionEngine()
        self.timeout_seconds = timeout_seconds
        self.max_concurrent_claims = max_concurrent_claims
        self.clock = clock

        self._stop_requested = asyncio.Event()

        logger.info(
            "notification_pipeline_initialized",
            max_notifications=self.engine.policy.max_notifications,
            cooldown_hours=self.engine.policy.cooldown_hours,
            max_concurrent_claims=max_concurrent_claims,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config: NotifierConfig,
        history_store: HistoryStore,
        queue: DeliveryQueue,
    ) -> "NotificationPipeline":
        """Wire a pipeline from configuration and its two collaborators."""
        dispatcher = Dispatcher(
            queue=queue,
            destination=config.queue_url,
            timeout_seconds=config.operation_timeout_seconds,
        )
        return cls(
            history_store=history_store,
            dispatcher=dispatcher,
            engine=DecisionEngine(config.policy),
            timeout_seconds=config.operation_timeout_seconds,
            max_concurrent_claims=config.max_concurrent_claims,
        )

    def request_stop(self) -> None:
        """Stop starting new claims. Claims already in flight finish."""
        self._stop_requested.set()

    async def run(
        self,
        claims: Sequence[Claim],
        deadline: Optional[float] = None,
    ) -> PipelineResult:
        """Process a batch of claims.

        Args:
            claims: Claims to evaluate, in upstream order.
            deadline: Optional ``time.monotonic()`` value after which no new
                claim is started.

        Returns:
            PipelineResult summarizing every claim's outcome.
        """
        start_time = time.monotonic()
        result = PipelineResult(
            outcomes=[ClaimOutcome.for_claim(claim) for claim in claims]
        )

        logger.info("pipeline_started", total_claims=len(claims))

        semaphore = asyncio.Semaphore(self.max_concurrent_claims)
        # Duplicate ids in one batch are processed one after another so the
        # second sees the first one's history entry.
        claim_locks: Dict[str, asyncio.Lock] = {
            claim.claim_id: asyncio.Lock() for claim in claims
        }

        async def worker(claim: Claim, outcome: ClaimOutcome) -> None:
            async with semaphore:
                async with claim_locks[claim.claim_id]:
                    # Checked under the lock: waiting behind a duplicate id
                    # can outlast the deadline
                    if self._should_stop(deadline):
                        result.stopped_early = True
                        return
                    await self._process_claim(claim, outcome)

        tasks: List[asyncio.Task] = [
            asyncio.create_task(worker(claim, outcome))
            for claim, outcome in zip(claims, result.outcomes)
        ]
        if tasks:
            await asyncio.gather(*tasks)

        if result.stopped_early:
            logger.warning(
                "pipeline_stopped_early",
                not_started=result.skipped,
                deadline_reached=deadline is not None
                and time.monotonic() >= deadline,
            )

        logger.info(
            "pipeline_completed",
            duration_seconds=round(time.monotonic() - start_time, 3),
            **{k: v for k, v in result.to_dict().items() if k != "errors"},
        )
        return result

    def _should_stop(self, deadline: Optional[float]) -> bool:
        if self._stop_requested.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    async def _process_claim(self, claim: Claim, outcome: ClaimOutcome) -> None:
        """Take one claim to a terminal state. Never raises ClaimError."""
        start_time = time.monotonic()
        log = logger.bind(claim_id=claim.claim_id, claim_number=claim.claim_number)

        try:
            history = await self._query_history(claim.claim_id)
            outcome.advance(ClaimState.HISTORY_QUERIED)

            now = self.clock()
            decision = self.engine.decide(claim.claim_id, history, now)
            outcome.record_decision(decision)
            CLAIMS_EVALUATED.labels(decision=decision.value).inc()

            if decision is Decision.SUPPRESS:
                outcome.advance(ClaimState.SUPPRESSED)
                log.info("claim_suppressed", history_entries=len(history))
                return

            # Publish and history append form one unit. Cancelling this claim's
            # task leaves the unit running; loop shutdown still cancels it.
            unit = asyncio.ensure_future(self._dispatch_and_record(claim, now))
            try:
                intent = await asyncio.shield(unit)
            except asyncio.CancelledError:
                unit.add_done_callback(self._report_detached_dispatch)
                raise
            outcome.message_id = intent.message_id
            outcome.advance(ClaimState.DISPATCHED)
            log.info(
                "claim_dispatched",
                message_id=intent.message_id,
                notification_number=len(history) + 1,
            )

        except DataIntegrityError as e:
            outcome.fail(e)
            log.error("history_data_integrity_error", error=str(e))
        except HistoryQueryError as e:
            outcome.fail(e)
            log.warning("history_query_failed", error=str(e))
        except DispatchError as e:
            outcome.fail(e)
            log.error("claim_dispatch_failed", error=str(e))
        except HistoryAppendError as e:
            outcome.fail(e)
            log.error(
                "history_append_failed",
                error=str(e),
                action="notification_sent_without_history_record",
            )
        except Exception as e:
            # One bad claim must not take down the batch
            if not outcome.is_terminal:
                outcome.fail(e)
            log.exception("claim_processing_error", error=str(e))
        finally:
            if outcome.state == ClaimState.FAILED:
                CLAIM_FAILURES.labels(error_type=outcome.error_type).inc()
            if outcome.is_terminal:
                CLAIM_PROCESSING_DURATION.labels(state=outcome.state.value).observe(
                    time.monotonic() - start_time
                )

    @staticmethod
    def _report_detached_dispatch(unit: "asyncio.Future[DispatchIntent]") -> None:
        """Log how a dispatch unit ended after its claim task was cancelled."""
        if unit.cancelled():
            logger.error("detached_dispatch_cancelled")
            return
        error = unit.exception()
        if error is not None:
            logger.error("detached_dispatch_failed", error=str(error))
            return
        intent = unit.result()
        logger.warning(
            "detached_dispatch_completed",
            claim_id=intent.claim_id,
            message_id=intent.message_id,
        )

    async def _query_history(self, claim_id: str) -> List[HistoryEntry]:
        try:
            return await asyncio.wait_for(
                self.history_store.query(claim_id), timeout=self.timeout_seconds
            )
        except HistoryQueryError:
            raise
        except asyncio.TimeoutError as e:
            raise HistoryQueryError(
                claim_id,
                f"History query timed out after {self.timeout_seconds}s",
                cause=e,
            ) from e
        except Exception as e:
            raise HistoryQueryError(
                claim_id, f"History query failed: {e}", cause=e
            ) from e

    async def _dispatch_and_record(
        self, claim: Claim, now: datetime
    ) -> DispatchIntent:
        """Publish the claim, then commit its history entry."""
        try:
            intent = await self.dispatcher.dispatch(claim)
        except DispatchError:
            DISPATCHES.labels(status="failed").inc()
            raise
        DISPATCHES.labels(status="success").inc()

        entry = intent.history_entry(now)
        try:
            await asyncio.wait_for(
                self.history_store.append(entry), timeout=self.timeout_seconds
            )
        except ClaimError:
            raise
        except asyncio.TimeoutError as e:
            raise HistoryAppendError(
                claim.claim_id,
                f"History append timed out after {self.timeout_seconds}s "
                f"(message_id={intent.message_id})",
                cause=e,
            ) from e
        except Exception as e:
            raise HistoryAppendError(
                claim.claim_id,
                f"History append failed: {e} (message_id={intent.message_id})",
                cause=e,
            ) from e

        return intent
