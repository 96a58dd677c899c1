"""Throttle decision engine.

Decides SEND or SUPPRESS for a claim from its send history and the current
time. Pure: no I/O, no hidden state, so a retried invocation that sees the
same history at the same instant reaches the same decision.

Rule (default policy, max_notifications=2, cooldown_hours=168):
- no history                  -> SEND (first notification)
- one entry, >= 168h old      -> SEND (second and final notification)
- one entry, < 168h old       -> SUPPRESS (inside cooldown window)
- two or more entries         -> SUPPRESS (cap reached, timestamps ignored)

Usage:
    engine = DecisionEngine(ThrottlePolicy())
    decision = engine.decide("C1", history, datetime.now(timezone.utc))
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

from claim_notifier.models.claim import Decision, HistoryEntry
from claim_notifier.models.config import ThrottlePolicy
from claim_notifier.utils.exceptions import DataIntegrityError

_ONE_SECOND = timedelta(seconds=1)
_FRACTION = re.compile(r"\.(\d+)")


def parse_date_sent(value: Optional[str]) -> datetime:
    """Parse an RFC 3339 date_sent value.

    Args:
        value: Raw stored value, e.g. "2024-05-01T12:00:00Z".

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: If the value is missing, blank, not ISO 8601, or has no
            UTC offset.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("date_sent is missing")

    text = value.strip()
    # fromisoformat only accepts a trailing "Z" from Python 3.11
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    # Python 3.10 only takes 3 or 6 fractional digits; RFC 3339 allows any
    text = _FRACTION.sub(
        lambda m: "." + (m.group(1) + "000000")[:6], text, count=1
    )

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"date_sent has no UTC offset: {value!r}")
    return parsed


class DecisionEngine:
    """Applies a ThrottlePolicy to a claim's send history.

    Attributes:
        policy: Cap and cooldown in effect.
    """

    def __init__(self, policy: Optional[ThrottlePolicy] = None) -> None:
        self.policy = policy or ThrottlePolicy()

    def decide(
        self,
        claim_id: str,
        history: Iterable[HistoryEntry],
        now: datetime,
    ) -> Decision:
        """Decide whether to notify for a claim.

        Args:
            claim_id: Claim being evaluated (used in error reports).
            history: All send-history entries for the claim, in any order.
            now: Evaluation time. Naive values are taken to be UTC.

        Returns:
            Decision.SEND or Decision.SUPPRESS.

        Raises:
            DataIntegrityError: If an entry the cooldown check needs has a
                missing or unparseable date_sent.
        """
        entries: Sequence[HistoryEntry] = list(history)
        count = len(entries)

        if count == 0:
            return Decision.SEND

        if count >= self.policy.max_notifications:
            return Decision.SUPPRESS

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        last_sent = max(self._sent_time(claim_id, entry) for entry in entries)

        # Floor division truncates the elapsed time to whole seconds
        elapsed_seconds = (now - last_sent) // _ONE_SECOND
        cooldown_seconds = self.policy.cooldown // _ONE_SECOND

        if elapsed_seconds >= cooldown_seconds:
            return Decision.SEND
        return Decision.SUPPRESS

    @staticmethod
    def _sent_time(claim_id: str, entry: HistoryEntry) -> datetime:
        try:
            return parse_date_sent(entry.date_sent)
        except ValueError as e:
            raise DataIntegrityError(
                claim_id,
                f"Malformed date_sent {entry.date_sent!r} in send history: {e}",
                cause=e,
            ) from e
