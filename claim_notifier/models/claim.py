"""Claim and send-history models.

Provides:
- Claim: upstream record subject to a notification decision
- HistoryEntry: one prior notification attempt for a claim
- Decision: SEND or SUPPRESS, computed fresh per evaluation

Usage:
    from claim_notifier.models.claim import Claim, HistoryEntry

    claim = Claim.model_validate({"claimId": "C1", "claimNumber": "CLM-001"})
    entry = HistoryEntry.sent_at(claim.claim_id, datetime.now(timezone.utc))
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# RFC 3339, whole-second precision, always UTC
DATE_SENT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class Decision(str, Enum):
    """Outcome of the throttle rule for one claim."""

    SEND = "send"
    SUPPRESS = "suppress"


class Claim(BaseModel):
    """A claim fetched from the upstream source.

    Only claim_id takes part in the decision. Any other upstream fields are
    kept as extras so they travel with the dispatched payload.

    Attributes:
        claim_id: Stable, non-empty identifier (history partition key).
        claim_number: Human-facing claim number, used for logging only.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    claim_id: str = Field(..., alias="claimId", min_length=1)
    claim_number: str = Field(default="", alias="claimNumber")

    @field_validator("claim_number", mode="before")
    @classmethod
    def null_claim_number_to_empty(cls, v: Optional[Any]) -> Any:
        """Upstream sends null for claims without a number yet."""
        return "" if v is None else v

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation: upstream field names plus all extra fields."""
        return self.model_dump(mode="json", by_alias=True)


class HistoryEntry(BaseModel):
    """A record that a notification was sent for a claim.

    date_sent is kept as the raw stored string. It is None when the stored
    item has no string dateSent attribute. Parsing is left to the decision
    engine so malformed records surface as data-integrity errors there.
    """

    model_config = ConfigDict(frozen=True)

    claim_id: str = Field(..., min_length=1)
    date_sent: Optional[str] = None

    @classmethod
    def sent_at(cls, claim_id: str, when: datetime) -> "HistoryEntry":
        """Build an entry for a notification sent at ``when``.

        Naive datetimes are taken to be UTC.
        """
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return cls(
            claim_id=claim_id,
            date_sent=when.astimezone(timezone.utc).strftime(DATE_SENT_FORMAT),
        )
