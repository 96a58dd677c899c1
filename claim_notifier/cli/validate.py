"""Validate command for the notifier configuration."""

from claim_notifier.cli.utils import (
    display_info,
    display_success,
    handle_errors,
    load_config,
)


@handle_errors
def validate_command():
    """Check that the environment holds a complete, valid configuration."""
    config = load_config()
    display_success("Configuration is valid! ✅")
    display_info(f"  History table: {config.history_table}")
    display_info(
        f"  Policy: at most {config.policy.max_notifications} notification(s), "
        f"{config.policy.cooldown_hours}h apart"
    )
    display_info(f"  Operation timeout: {config.operation_timeout_seconds}s")
