"""Send-history store.

The store is append-only: entries for a claim are only ever added, never
updated or deleted. Two implementations are provided:
- DynamoHistoryStore: DynamoDB table keyed by claimId (production)
- InMemoryHistoryStore: dict-backed store for tests and local runs

Blocking boto3 calls run in a worker thread so they never stall the event
loop that drives the other claims.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from claim_notifier.models.claim import HistoryEntry
from claim_notifier.utils.exceptions import HistoryAppendError, HistoryQueryError

logger = structlog.get_logger()


class HistoryStore(ABC):
    """Capability interface for send history: query by claim, append."""

    @abstractmethod
    async def query(self, claim_id: str) -> List[HistoryEntry]:
        """Return every history entry recorded for a claim.

        Args:
            claim_id: Partition key to look up.

        Returns:
            Zero or more entries, in no particular order.

        Raises:
            HistoryQueryError: If the store cannot be read.
        """
        pass

    @abstractmethod
    async def append(self, entry: HistoryEntry) -> None:
        """Record a new history entry.

        Raises:
            HistoryAppendError: If the entry cannot be written.
        """
        pass


class DynamoHistoryStore(HistoryStore):
    """History store backed by a DynamoDB table.

    Item layout: ``claimId`` (S, partition key) and ``dateSent`` (S, RFC 3339).
    """

    def __init__(
        self,
        table_name: str,
        client: Optional[Any] = None,
        region: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the store.

        Args:
            table_name: DynamoDB table holding send history.
            client: Pre-built boto3 DynamoDB client (tests inject a mock).
            region: AWS region; boto3 defaults apply when None.
            timeout_seconds: botocore connect/read timeout.
        """
        self.table_name = table_name
        self.client = client or boto3.client(
            "dynamodb",
            config=Config(
                region_name=region,
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    async def query(self, claim_id: str) -> List[HistoryEntry]:
        try:
            items = await asyncio.to_thread(self._query_items, claim_id)
        except (ClientError, BotoCoreError) as e:
            raise HistoryQueryError(
                claim_id, f"History query failed: {e}", cause=e
            ) from e

        return [self._to_entry(claim_id, item) for item in items]

    async def append(self, entry: HistoryEntry) -> None:
        try:
            await asyncio.to_thread(
                self.client.put_item,
                TableName=self.table_name,
                Item={
                    "claimId": {"S": entry.claim_id},
                    "dateSent": {"S": entry.date_sent or ""},
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise HistoryAppendError(
                entry.claim_id, f"History append failed: {e}", cause=e
            ) from e

        logger.debug(
            "history_entry_appended",
            claim_id=entry.claim_id,
            date_sent=entry.date_sent,
            table=self.table_name,
        )

    def _query_items(self, claim_id: str) -> List[Dict[str, Any]]:
        """Run the key-condition query, following pagination."""
        kwargs: Dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "claimId = :claimId",
            "ExpressionAttributeValues": {":claimId": {"S": claim_id}},
            "ConsistentRead": True,
        }
        items: List[Dict[str, Any]] = []

        while True:
            response = self.client.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _to_entry(claim_id: str, item: Dict[str, Any]) -> HistoryEntry:
        # Anything other than a string attribute is kept as missing
        date_attr = item.get("dateSent") or {}
        date_sent = date_attr.get("S") if isinstance(date_attr, dict) else None
        return HistoryEntry(claim_id=claim_id, date_sent=date_sent)


class InMemoryHistoryStore(HistoryStore):
    """Dict-backed history store for tests and local dry runs."""

    def __init__(self, entries: Optional[Iterable[HistoryEntry]] = None) -> None:
        self._entries: Dict[str, List[HistoryEntry]] = {}
        for entry in entries or []:
            self._entries.setdefault(entry.claim_id, []).append(entry)

    async def query(self, claim_id: str) -> List[HistoryEntry]:
        return list(self._entries.get(claim_id, []))

    async def append(self, entry: HistoryEntry) -> None:
        self._entries.setdefault(entry.claim_id, []).append(entry)

    def entries_for(self, claim_id: str) -> List[HistoryEntry]:
        """Synchronous snapshot of a claim's entries."""
        return list(self._entries.get(claim_id, []))
