"""Custom exceptions for the claim notification pipeline.

This module defines the error taxonomy for a notification run:
- Run-level errors that abort the whole invocation (config, fetch)
- Per-claim errors that are reported and isolated to a single claim

All exceptions inherit from NotifierError to allow catching all
notifier-related errors in a single except block when needed.
"""

from typing import Optional


class NotifierError(Exception):
    """Base exception for all notifier errors

    Use this to catch any error raised by the notifier:
    ```python
    try:
        await pipeline.run(claims)
    except NotifierError as e:
        logger.error("notifier_failed", error=str(e))
    ```
    """

    pass


class ConfigError(NotifierError):
    """Required configuration is missing or invalid

    Raised when:
    - A required environment variable is absent or empty
    - A value fails validation (e.g. non-numeric cooldown)
    - The optional YAML config file cannot be read or parsed

    Fatal for the run. Raised before any network call is made.
    """

    pass


class FetchError(NotifierError):
    """Upstream claim list could not be retrieved

    Raised when:
    - The upstream endpoint is unreachable or times out
    - The response status is not 2xx
    - The body is not a JSON array of claim objects

    Fatal for the run: with no claims there is nothing to process.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ClaimError(NotifierError):
    """Base for errors scoped to a single claim.

    These are caught by the pipeline, reported, and never abort the batch.
    """

    error_type = "claim"

    def __init__(
        self,
        claim_id: str,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(f"{message} (claim_id={claim_id})")
        self.claim_id = claim_id
        self.cause = cause


class HistoryQueryError(ClaimError):
    """Send-history lookup for a claim failed

    Raised when:
    - The history store is unavailable or throttling
    - The query is rejected (e.g. malformed key, missing table)
    - The query exceeds the operation timeout
    """

    error_type = "history_query"


class DataIntegrityError(ClaimError):
    """A stored history entry is malformed

    Raised when a history entry that the throttle rule needs has a missing,
    non-string, or unparseable date_sent. Kept separate from a SUPPRESS
    decision so corrupt records stay visible to operators.
    """

    error_type = "data_integrity"


class DispatchError(ClaimError):
    """Claim could not be serialized or published

    Raised when:
    - The claim payload cannot be encoded as JSON
    - The queue client rejects or fails the publish call
    - The publish exceeds the operation timeout
    """

    error_type = "dispatch"


class HistoryAppendError(ClaimError):
    """History entry could not be recorded after a successful publish

    The notification has already been enqueued when this is raised, so the
    claim has no record of it. The next run will treat it as one send short.
    """

    error_type = "history_append"


class TransientFetchError(FetchError):
    """Upstream failure worth retrying (5xx, 429, connection, timeout).

    Surfaces to the caller as-is once retries are exhausted.
    """

    pass
