"""Orchestration module for the notification pipeline.

Provides:
- NotificationPipeline: per-claim query -> decide -> dispatch -> record
- PipelineResult / ClaimOutcome / ClaimState: run summary and claim states

Usage:
    from claim_notifier.orchestration import NotificationPipeline

    pipeline = NotificationPipeline.from_config(config, history_store, queue)
    result = await pipeline.run(claims)
"""

from claim_notifier.orchestration.pipeline import NotificationPipeline
from claim_notifier.orchestration.result import (
    ClaimOutcome,
    ClaimState,
    PipelineResult,
)

__all__ = [
    "NotificationPipeline",
    "ClaimOutcome",
    "ClaimState",
    "PipelineResult",
]
