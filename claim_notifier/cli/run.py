"""Run command: one notification batch from the command line.

Equivalent to a single handler invocation; exits non-zero only when
configuration or the upstream fetch fails.
"""

import asyncio

import typer

from claim_notifier.cli.utils import (
    display_error,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from claim_notifier.handler import emit_metrics, run_invocation
from claim_notifier.observability.context import correlation_id_context
from claim_notifier.orchestration.result import PipelineResult
from claim_notifier.utils.exceptions import FetchError


@handle_errors
def run_command():
    """Fetch claims and dispatch the notifications that are due."""
    config = load_config()

    display_info("Fetching claims and evaluating notifications...")
    with correlation_id_context():
        try:
            result = asyncio.run(run_invocation(config))
        except FetchError as e:
            display_error(f"Claim fetch failed: {e}")
            raise typer.Exit(code=1)
        finally:
            emit_metrics()

    _display_results(result)


def _display_results(result: PipelineResult) -> None:
    display_success(
        f"Claims: {result.total} | dispatched: {result.dispatched} | "
        f"suppressed: {result.suppressed} | failed: {result.failed}"
    )
    if result.skipped:
        display_warning(f"{result.skipped} claim(s) not started (run stopped early)")
    for error in result.errors:
        display_warning(
            f"  {error['claim_id']}: [{error['error_type']}] {error['error']}"
        )
