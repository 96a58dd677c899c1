"""Claim dispatcher.

Serializes a claim and publishes it to the delivery queue, exactly one
publish call per dispatch and no retry. On success it returns a
DispatchIntent; committing the matching history entry is the caller's job,
so the dispatcher never touches the history store.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from claim_notifier.models.claim import Claim, HistoryEntry
from claim_notifier.services.delivery_queue import DeliveryQueue
from claim_notifier.utils.exceptions import DispatchError

logger = structlog.get_logger()


@dataclass(frozen=True)
class DispatchIntent:
    """Proof of a confirmed publish, awaiting its history append.

    Attributes:
        claim_id: Claim that was published.
        message_id: Id assigned by the delivery queue.
        published_at: When the publish was confirmed.
    """

    claim_id: str
    message_id: str
    published_at: datetime

    def history_entry(self, sent_at: Optional[datetime] = None) -> HistoryEntry:
        """History entry to commit for this dispatch.

        Args:
            sent_at: Timestamp to record. Defaults to published_at.
        """
        return HistoryEntry.sent_at(self.claim_id, sent_at or self.published_at)


class Dispatcher:
    """Publishes claims to a single delivery destination."""

    def __init__(
        self,
        queue: DeliveryQueue,
        destination: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize dispatcher.

        Args:
            queue: Delivery queue client (shared across workers).
            destination: Queue identifier every claim is published to.
            timeout_seconds: Bound on a single publish call.
        """
        self.queue = queue
        self.destination = destination
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def serialize(claim: Claim) -> str:
        """Encode a claim as the JSON message body.

        Raises:
            DispatchError: If the claim contains values JSON cannot encode.
        """
        try:
            return json.dumps(claim.to_payload(), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise DispatchError(
                claim.claim_id, f"Claim serialization failed: {e}", cause=e
            ) from e

    async def dispatch(self, claim: Claim) -> DispatchIntent:
        """Publish a claim.

        Args:
            claim: Claim to notify about.

        Returns:
            DispatchIntent for the pipeline to commit.

        Raises:
            DispatchError: On serialization failure, publish failure or
                publish timeout.
        """
        payload = self.serialize(claim)

        try:
            message_id = await asyncio.wait_for(
                self.queue.publish(self.destination, payload),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise DispatchError(
                claim.claim_id,
                f"Publish timed out after {self.timeout_seconds}s",
                cause=e,
            ) from e
        except Exception as e:
            raise DispatchError(
                claim.claim_id, f"Publish failed: {e}", cause=e
            ) from e

        logger.info(
            "claim_published",
            claim_id=claim.claim_id,
            claim_number=claim.claim_number,
            message_id=message_id,
        )

        return DispatchIntent(
            claim_id=claim.claim_id,
            message_id=message_id,
            published_at=datetime.now(timezone.utc),
        )
