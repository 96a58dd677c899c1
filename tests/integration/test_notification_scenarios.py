"""End-to-end notification scenarios.

Runs the pipeline against the DynamoDB and SQS adapters backed by in-process
fake clients, so the full query -> decide -> publish -> append path including
item mapping is exercised without AWS.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ReadTimeoutError

from claim_notifier.handler import run_invocation
from claim_notifier.models.claim import Claim, HistoryEntry
from claim_notifier.models.config import NotifierConfig
from claim_notifier.orchestration.pipeline import NotificationPipeline
from claim_notifier.orchestration.result import ClaimState
from claim_notifier.services.delivery_queue import SqsDeliveryQueue
from claim_notifier.services.dispatcher import Dispatcher
from claim_notifier.services.history_store import DynamoHistoryStore

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/claim-notifications"


class FakeDynamoClient:
    """Minimal DynamoDB client: query by claimId, put_item."""

    def __init__(self, unavailable_ids=()):
        self.items: List[Dict[str, Any]] = []
        self.unavailable_ids = set(unavailable_ids)

    def seed(self, claim_id: str, when: datetime) -> None:
        self.items.append(
            {
                "claimId": {"S": claim_id},
                "dateSent": {"S": HistoryEntry.sent_at(claim_id, when).date_sent},
            }
        )

    def query(self, **kwargs):
        claim_id = kwargs["ExpressionAttributeValues"][":claimId"]["S"]
        if claim_id in self.unavailable_ids:
            raise ReadTimeoutError(endpoint_url="https://dynamodb.us-east-1.amazonaws.com")
        return {"Items": [i for i in self.items if i["claimId"]["S"] == claim_id]}

    def put_item(self, TableName, Item):
        self.items.append(Item)

    def dates_for(self, claim_id: str) -> List[str]:
        return [i["dateSent"]["S"] for i in self.items if i["claimId"]["S"] == claim_id]


class FakeSqsClient:
    def __init__(self):
        self.sent: List[Dict[str, str]] = []

    def send_message(self, QueueUrl, MessageBody):
        self.sent.append({"QueueUrl": QueueUrl, "MessageBody": MessageBody})
        return {"MessageId": f"msg-{len(self.sent)}"}

    def claim_ids(self) -> List[str]:
        return [json.loads(m["MessageBody"])["claimId"] for m in self.sent]


@pytest.fixture
def dynamo():
    client = FakeDynamoClient(unavailable_ids={"C5"})
    client.seed("C2", NOW - timedelta(days=10))
    client.seed("C3", NOW - timedelta(days=2))
    client.seed("C4", NOW - timedelta(days=30))
    client.seed("C4", NOW - timedelta(days=20))
    return client


@pytest.fixture
def sqs():
    return FakeSqsClient()


@pytest.fixture
def pipeline(dynamo, sqs):
    return NotificationPipeline(
        history_store=DynamoHistoryStore(table_name="emails", client=dynamo),
        dispatcher=Dispatcher(SqsDeliveryQueue(client=sqs), QUEUE_URL),
        clock=lambda: NOW,
    )


def claims(*ids: str) -> List[Claim]:
    return [
        Claim.model_validate({"claimId": cid, "claimNumber": f"CLM-{cid}"})
        for cid in ids
    ]


class TestScenarios:
    @pytest.mark.asyncio
    async def test_first_notification(self, pipeline, dynamo, sqs):
        result = await pipeline.run(claims("C1"))

        assert result.outcome_for("C1").state == ClaimState.DISPATCHED
        assert sqs.claim_ids() == ["C1"]
        assert sqs.sent[0]["QueueUrl"] == QUEUE_URL
        assert dynamo.dates_for("C1") == ["2024-06-15T12:00:00Z"]

    @pytest.mark.asyncio
    async def test_second_and_final_notification(self, pipeline, dynamo, sqs):
        result = await pipeline.run(claims("C2"))

        assert result.outcome_for("C2").state == ClaimState.DISPATCHED
        assert sqs.claim_ids() == ["C2"]
        assert len(dynamo.dates_for("C2")) == 2

        # A later run sees the cap
        again = await pipeline.run(claims("C2"))
        assert again.outcome_for("C2").state == ClaimState.SUPPRESSED

    @pytest.mark.asyncio
    async def test_inside_cooldown_is_suppressed(self, pipeline, dynamo, sqs):
        result = await pipeline.run(claims("C3"))

        assert result.outcome_for("C3").state == ClaimState.SUPPRESSED
        assert sqs.sent == []
        assert len(dynamo.dates_for("C3")) == 1

    @pytest.mark.asyncio
    async def test_capped_claim_is_suppressed(self, pipeline, dynamo, sqs):
        result = await pipeline.run(claims("C4"))

        assert result.outcome_for("C4").state == ClaimState.SUPPRESSED
        assert sqs.sent == []
        assert len(dynamo.dates_for("C4")) == 2

    @pytest.mark.asyncio
    async def test_store_timeout_is_isolated(self, pipeline, dynamo, sqs):
        result = await pipeline.run(claims("C1", "C2", "C3", "C4", "C5"))

        c5 = result.outcome_for("C5")
        assert c5.state == ClaimState.FAILED
        assert c5.error_type == "history_query"

        assert result.dispatched == 2
        assert result.suppressed == 2
        assert result.failed == 1
        assert sorted(sqs.claim_ids()) == ["C1", "C2"]
        assert dynamo.dates_for("C5") == []


class TestFullInvocation:
    @pytest.mark.asyncio
    async def test_fetch_through_dispatch(self, sqs):
        dynamo = FakeDynamoClient()
        dynamo.seed("C9", datetime.now(timezone.utc) - timedelta(hours=1))
        config = NotifierConfig(
            upstream_url="https://claims.example.com/open",
            upstream_api_key="secret",
            history_table="emails",
            queue_url=QUEUE_URL,
        )

        mock_response = AsyncMock()
        mock_response.status = 200
        mock_response.json.return_value = [
            {"claimId": "C8", "claimNumber": "CLM-8", "policyHolder": "A. Smith"},
            {"claimId": "C9", "claimNumber": "CLM-9"},
        ]
        mock_response.__aenter__ = AsyncMock(return_value=mock_response)
        mock_response.__aexit__ = AsyncMock(return_value=None)
        mock_session = AsyncMock()
        mock_session.get = MagicMock(return_value=mock_response)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=None)

        with patch("aiohttp.ClientSession", return_value=mock_session):
            result = await run_invocation(
                config,
                history_store=DynamoHistoryStore(table_name="emails", client=dynamo),
                queue=SqsDeliveryQueue(client=sqs),
            )

        assert result.dispatched == 1
        assert result.suppressed == 1
        assert json.loads(sqs.sent[0]["MessageBody"]) == {
            "claimId": "C8",
            "claimNumber": "CLM-8",
            "policyHolder": "A. Smith",
        }
        assert len(dynamo.dates_for("C8")) == 1
