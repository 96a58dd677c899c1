"""Shared CLI utilities.

Provides common functionality for all CLI commands.
"""

import functools
from typing import Callable, TypeVar

import structlog
import typer

from claim_notifier.models.config import NotifierConfig
from claim_notifier.observability.logging import configure_logging_from_env
from claim_notifier.services.config_manager import ConfigManager
from claim_notifier.utils.exceptions import ConfigError

configure_logging_from_env()
logger = structlog.get_logger()

F = TypeVar("F", bound=Callable)


def load_config() -> NotifierConfig:
    """Load and validate configuration from the environment.

    Raises:
        typer.Exit: If configuration is missing or invalid.
    """
    try:
        return ConfigManager().load_config()
    except ConfigError as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
