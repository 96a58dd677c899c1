"""Tests for DynamoHistoryStore and InMemoryHistoryStore."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from claim_notifier.models.claim import HistoryEntry
from claim_notifier.services.history_store import (
    DynamoHistoryStore,
    InMemoryHistoryStore,
)
from claim_notifier.utils.exceptions import HistoryAppendError, HistoryQueryError


def client_error(code: str = "ProvisionedThroughputExceededException") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, "Query")


@pytest.fixture
def client():
    mock_client = MagicMock()
    mock_client.query.return_value = {"Items": []}
    return mock_client


@pytest.fixture
def store(client):
    return DynamoHistoryStore(table_name="emails", client=client)


class TestDynamoQuery:
    """Tests for DynamoHistoryStore.query."""

    @pytest.mark.asyncio
    async def test_queries_by_claim_id(self, store, client):
        await store.query("C1")

        client.query.assert_called_once_with(
            TableName="emails",
            KeyConditionExpression="claimId = :claimId",
            ExpressionAttributeValues={":claimId": {"S": "C1"}},
            ConsistentRead=True,
        )

    @pytest.mark.asyncio
    async def test_maps_items_to_entries(self, store, client):
        client.query.return_value = {
            "Items": [
                {"claimId": {"S": "C1"}, "dateSent": {"S": "2024-06-01T08:00:00Z"}},
                {"claimId": {"S": "C1"}, "dateSent": {"S": "2024-06-09T08:00:00Z"}},
            ]
        }

        entries = await store.query("C1")

        assert [e.date_sent for e in entries] == [
            "2024-06-01T08:00:00Z",
            "2024-06-09T08:00:00Z",
        ]
        assert all(e.claim_id == "C1" for e in entries)

    @pytest.mark.asyncio
    async def test_no_items_returns_empty(self, store):
        assert await store.query("C1") == []

    @pytest.mark.asyncio
    async def test_missing_or_non_string_date_is_kept_as_none(self, store, client):
        client.query.return_value = {
            "Items": [
                {"claimId": {"S": "C1"}},
                {"claimId": {"S": "C1"}, "dateSent": {"N": "1717228800"}},
            ]
        }

        entries = await store.query("C1")

        assert [e.date_sent for e in entries] == [None, None]

    @pytest.mark.asyncio
    async def test_follows_pagination(self, store, client):
        page_key = {"claimId": {"S": "C1"}, "dateSent": {"S": "2024-01-01T00:00:00Z"}}
        client.query.side_effect = [
            {
                "Items": [{"dateSent": {"S": "2024-01-01T00:00:00Z"}}],
                "LastEvaluatedKey": page_key,
            },
            {"Items": [{"dateSent": {"S": "2024-02-01T00:00:00Z"}}]},
        ]

        entries = await store.query("C1")

        assert len(entries) == 2
        assert client.query.call_count == 2
        assert client.query.call_args_list[1].kwargs["ExclusiveStartKey"] == page_key

    @pytest.mark.asyncio
    async def test_client_error_becomes_history_query_error(self, store, client):
        client.query.side_effect = client_error()

        with pytest.raises(HistoryQueryError) as exc_info:
            await store.query("C1")

        assert exc_info.value.claim_id == "C1"
        assert isinstance(exc_info.value.cause, ClientError)

    @pytest.mark.asyncio
    async def test_connection_error_becomes_history_query_error(self, store, client):
        client.query.side_effect = EndpointConnectionError(
            endpoint_url="https://dynamodb.us-east-1.amazonaws.com"
        )

        with pytest.raises(HistoryQueryError):
            await store.query("C1")


class TestDynamoAppend:
    """Tests for DynamoHistoryStore.append."""

    @pytest.mark.asyncio
    async def test_puts_item(self, store, client):
        await store.append(HistoryEntry(claim_id="C1", date_sent="2024-06-15T12:00:00Z"))

        client.put_item.assert_called_once_with(
            TableName="emails",
            Item={
                "claimId": {"S": "C1"},
                "dateSent": {"S": "2024-06-15T12:00:00Z"},
            },
        )

    @pytest.mark.asyncio
    async def test_client_error_becomes_history_append_error(self, store, client):
        client.put_item.side_effect = client_error("ResourceNotFoundException")

        with pytest.raises(HistoryAppendError) as exc_info:
            await store.append(
                HistoryEntry(claim_id="C1", date_sent="2024-06-15T12:00:00Z")
            )

        assert exc_info.value.error_type == "history_append"


class TestInMemoryHistoryStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_seeded_entries_are_grouped_by_claim(self):
        store = InMemoryHistoryStore(
            [
                HistoryEntry(claim_id="C1", date_sent="2024-06-01T00:00:00Z"),
                HistoryEntry(claim_id="C2", date_sent="2024-06-02T00:00:00Z"),
                HistoryEntry(claim_id="C1", date_sent="2024-06-03T00:00:00Z"),
            ]
        )

        assert len(await store.query("C1")) == 2
        assert len(await store.query("C2")) == 1
        assert await store.query("C3") == []

    @pytest.mark.asyncio
    async def test_append_is_visible_to_query(self):
        store = InMemoryHistoryStore()
        entry = HistoryEntry(claim_id="C1", date_sent="2024-06-01T00:00:00Z")

        await store.append(entry)

        assert await store.query("C1") == [entry]
        assert store.entries_for("C1") == [entry]

    @pytest.mark.asyncio
    async def test_query_returns_a_copy(self):
        store = InMemoryHistoryStore()
        entries = await store.query("C1")
        entries.append(HistoryEntry(claim_id="C1", date_sent="x"))

        assert store.entries_for("C1") == []
