"""Claim notifier CLI.

Usage:
    python -m claim_notifier.cli run
    python -m claim_notifier.cli validate

Both commands read their configuration from the environment (and .env).
"""

import typer

from claim_notifier.cli.run import run_command
from claim_notifier.cli.validate import validate_command

app = typer.Typer(help="Claim notifier: throttled claim notification dispatch")

app.command(name="run")(run_command)
app.command(name="validate")(validate_command)

__all__ = ["app", "run_command", "validate_command"]
