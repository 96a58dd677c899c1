"""Per-claim outcome tracking and the run summary.

Each claim moves through a fixed state machine:

    FETCHED -> HISTORY_QUERIED -> DECIDED -> SUPPRESSED | DISPATCHED
    (any non-terminal state) -> FAILED

No transition re-enters an earlier state. A claim still in FETCHED when the
run ends was never started (stop requested or deadline reached).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from claim_notifier.models.claim import Claim, Decision
from claim_notifier.utils.exceptions import ClaimError


class ClaimState(str, Enum):
    FETCHED = "fetched"
    HISTORY_QUERIED = "history_queried"
    DECIDED = "decided"
    SUPPRESSED = "suppressed"
    DISPATCHED = "dispatched"
    FAILED = "failed"


TERMINAL_STATES: FrozenSet[ClaimState] = frozenset(
    {ClaimState.SUPPRESSED, ClaimState.DISPATCHED, ClaimState.FAILED}
)

_TRANSITIONS: Dict[ClaimState, FrozenSet[ClaimState]] = {
    ClaimState.FETCHED: frozenset({ClaimState.HISTORY_QUERIED, ClaimState.FAILED}),
    ClaimState.HISTORY_QUERIED: frozenset({ClaimState.DECIDED, ClaimState.FAILED}),
    ClaimState.DECIDED: frozenset(
        {ClaimState.SUPPRESSED, ClaimState.DISPATCHED, ClaimState.FAILED}
    ),
}


@dataclass
class ClaimOutcome:
    """What happened to one claim during a run."""

    claim_id: str
    claim_number: str = ""
    state: ClaimState = ClaimState.FETCHED
    decision: Optional[Decision] = None
    message_id: Optional[str] = None
    error_type: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def for_claim(cls, claim: Claim) -> "ClaimOutcome":
        return cls(claim_id=claim.claim_id, claim_number=claim.claim_number)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, new_state: ClaimState) -> None:
        """Move to ``new_state``.

        Raises:
            ValueError: If the transition is not allowed from the current state.
        """
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise ValueError(
                f"Illegal claim state transition {self.state.value} -> "
                f"{new_state.value} (claim_id={self.claim_id})"
            )
        self.state = new_state

    def record_decision(self, decision: Decision) -> None:
        self.advance(ClaimState.DECIDED)
        self.decision = decision

    def fail(self, error: Exception) -> None:
        self.advance(ClaimState.FAILED)
        self.error_type = (
            error.error_type if isinstance(error, ClaimError) else "unexpected"
        )
        self.error = str(error)


@dataclass
class PipelineResult:
    """Summary of a notification run.

    Informational only: per-claim failures never turn a run into a failure.
    """

    outcomes: List[ClaimOutcome] = field(default_factory=list)
    stopped_early: bool = False

    def _count(self, state: ClaimState) -> int:
        return sum(1 for o in self.outcomes if o.state == state)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def dispatched(self) -> int:
        return self._count(ClaimState.DISPATCHED)

    @property
    def suppressed(self) -> int:
        return self._count(ClaimState.SUPPRESSED)

    @property
    def failed(self) -> int:
        return self._count(ClaimState.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if not o.is_terminal)

    @property
    def errors(self) -> List[Dict[str, str]]:
        return [
            {
                "claim_id": o.claim_id,
                "error_type": o.error_type or "unknown",
                "error": o.error or "",
            }
            for o in self.outcomes
            if o.state == ClaimState.FAILED
        ]

    def outcome_for(self, claim_id: str) -> Optional[ClaimOutcome]:
        """First outcome recorded for a claim id, if any."""
        for outcome in self.outcomes:
            if outcome.claim_id == claim_id:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "total": self.total,
            "dispatched": self.dispatched,
            "suppressed": self.suppressed,
            "failed": self.failed,
            "skipped": self.skipped,
            "stopped_early": self.stopped_early,
            "errors": self.errors,
        }
