"""Delivery queue clients.

A publish takes a destination identifier and an opaque string payload and
returns the queue's message id. Implementations:
- SqsDeliveryQueue: Amazon SQS SendMessage (production)
- InMemoryDeliveryQueue: records published messages (tests, local runs)

Neither implementation retries at this layer beyond botocore's own transport
retries; a failed publish surfaces to the dispatcher as an exception.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import boto3
from botocore.config import Config

# Fractions of the publish timeout given to botocore's connect and read phases
CONNECT_TIMEOUT_SHARE = 0.25
READ_TIMEOUT_SHARE = 0.6


class DeliveryQueue(ABC):
    """Capability interface for publishing a payload to a destination."""

    @abstractmethod
    async def publish(self, destination: str, payload: str) -> str:
        """Publish one message.

        Args:
            destination: Queue identifier (SQS queue URL in production).
            payload: Serialized message body.

        Returns:
            Message id assigned by the queue.
        """
        pass


class SqsDeliveryQueue(DeliveryQueue):
    """Publishes claim payloads to Amazon SQS."""

    def __init__(
        self,
        client: Optional[Any] = None,
        region: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        # Connect plus read stays inside the caller's timeout, so botocore
        # gives up before the dispatcher stops waiting on the worker thread.
        self.client = client or boto3.client(
            "sqs",
            config=Config(
                region_name=region,
                connect_timeout=timeout_seconds * CONNECT_TIMEOUT_SHARE,
                read_timeout=timeout_seconds * READ_TIMEOUT_SHARE,
                # A transport-level retry could enqueue the same claim twice
                retries={"max_attempts": 0},
            ),
        )

    async def publish(self, destination: str, payload: str) -> str:
        response = await asyncio.to_thread(
            self.client.send_message,
            QueueUrl=destination,
            MessageBody=payload,
        )
        return str(response.get("MessageId", ""))


@dataclass(frozen=True)
class PublishedMessage:
    destination: str
    payload: str
    message_id: str


class InMemoryDeliveryQueue(DeliveryQueue):
    """Keeps published messages in a list."""

    def __init__(self) -> None:
        self.messages: List[PublishedMessage] = []

    async def publish(self, destination: str, payload: str) -> str:
        message_id = str(uuid.uuid4())
        self.messages.append(PublishedMessage(destination, payload, message_id))
        return message_id
