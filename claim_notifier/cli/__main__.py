"""CLI entry point.

Allows running the CLI as a module: python -m claim_notifier.cli
"""

from claim_notifier.cli import app

if __name__ == "__main__":
    app()
