"""Upstream claim source.

Fetches the list of claims to evaluate with a single authenticated GET.
Transient failures are retried with exponential backoff; anything else, and
retries that run out, raise FetchError so the run aborts before any claim is
touched.
"""

import asyncio
from typing import Any, List

import aiohttp
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from claim_notifier.models.claim import Claim
from claim_notifier.utils.exceptions import FetchError, TransientFetchError

logger = structlog.get_logger()


class ClaimSource:
    """Reads claims from the upstream HTTP endpoint."""

    API_KEY_HEADER = "x-api-key"

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        backoff_multiplier: float = 1.0,
    ) -> None:
        """Initialize claim source.

        Args:
            url: Claims endpoint.
            api_key: Value for the x-api-key header.
            timeout_seconds: Total timeout per request.
            max_attempts: Attempts for transient failures (1 disables retry).
            backoff_multiplier: Exponential backoff multiplier in seconds
                (0 disables waiting, for tests).
        """
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier

    async def fetch(self) -> List[Claim]:
        """Fetch and validate the current claim list.

        Returns:
            Claims in upstream order.

        Raises:
            FetchError: Upstream unreachable, non-2xx status, or a body that
                is not a JSON array of claim objects.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_multiplier,
                min=2 * self.backoff_multiplier,
                max=10 * self.backoff_multiplier,
            ),
            retry=retry_if_exception_type(TransientFetchError),
            reraise=True,
        )

        data: Any = None
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "claim_fetch_retry",
                        attempt=attempt.retry_state.attempt_number,
                        max_attempts=self.max_attempts,
                    )
                data = await self._get_json()

        claims = self._parse_claims(data)

        logger.info("claims_fetched", count=len(claims))
        return claims

    async def _get_json(self) -> Any:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.url,
                    headers={self.API_KEY_HEADER: self.api_key},
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:

                    if response.status == 429 or response.status >= 500:
                        raise TransientFetchError(
                            f"Upstream unavailable: HTTP {response.status}",
                            status=response.status,
                        )

                    if not 200 <= response.status < 300:
                        text = await response.text()
                        logger.error(
                            "claim_fetch_rejected",
                            status=response.status,
                            body=text[:500],
                        )
                        raise FetchError(
                            f"Upstream request failed: HTTP {response.status}",
                            status=response.status,
                        )

                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        # json.JSONDecodeError and UnicodeDecodeError
                        raise FetchError(
                            f"Upstream body is not valid JSON: {e}",
                            status=response.status,
                        ) from e

        except asyncio.TimeoutError as e:
            logger.error("claim_fetch_timeout", timeout_seconds=self.timeout_seconds)
            raise TransientFetchError(
                f"Upstream request timed out after {self.timeout_seconds}s"
            ) from e
        except aiohttp.ClientError as e:
            logger.error("claim_fetch_connection_error", error=str(e))
            raise TransientFetchError(f"Upstream unreachable: {e}") from e

    @staticmethod
    def _parse_claims(data: Any) -> List[Claim]:
        """Validate the decoded body as a list of claims."""
        if not isinstance(data, list):
            raise FetchError(
                f"Upstream body must be a JSON array, got {type(data).__name__}"
            )

        claims: List[Claim] = []
        for index, item in enumerate(data):
            try:
                claims.append(Claim.model_validate(item))
            except ValidationError as e:
                raise FetchError(f"Malformed claim at index {index}: {e}") from e
        return claims
