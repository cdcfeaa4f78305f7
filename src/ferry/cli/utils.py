"""CLI utility functions and error handling.

This module provides shared utilities for the ferry CLI, including:
- Exit code constants
- Output helpers for consistent stderr/stdout usage
- A single handler that turns FerryError into a message and an exit code

Human-readable progress goes to stderr; stdout carries only the command
result (a table or JSON), so ``ferry ... --output json | jq`` works.

Example:
    from ferry.cli.utils import fail, info

    try:
        result = engine.promote(artifact_set, build_id)
    except FerryError as e:
        fail(e, output)
"""

from __future__ import annotations

import json
import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click
import structlog
from pydantic import BaseModel

from ferry.errors import FerryError

if TYPE_CHECKING:
    from typing import NoReturn

logger = structlog.get_logger(__name__)

OUTPUT_CHOICES = ("table", "json")


class ExitCode(IntEnum):
    """Exit codes for CLI commands.

    Values match the ``exit_code`` attributes in ferry.errors so CI
    pipelines can branch on the kind of failure.
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage, name or configuration."""

    ARTIFACT_NOT_FOUND = 3
    """Build id was never pushed to the artifact set."""

    ROLLBACK_NOT_FOUND = 4
    """Rollback alias is unbound."""

    BACKEND_ERROR = 5
    """AWS call failed or credentials were rejected."""

    FLEET_NOT_FOUND = 6
    """Auto Scaling Group does not exist."""

    ROLLOUT_FAILED = 10
    """Instance refresh failed, was cancelled or could not start."""

    ROLLOUT_AUTO_ROLLED_BACK = 11
    """Instance refresh converged only after an automatic artifact rollback."""

    ROLLOUT_DOUBLE_TIMEOUT = 12
    """Instance refresh timed out again after an automatic artifact rollback."""

    INTERRUPTED = 130
    """Interrupted by SIGINT or SIGTERM."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("Rollback alias not found", alias="rollback_prod")
        # Output: Error: Rollback alias not found (alias=rollback_prod)
    """
    context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    full_message = f"Error: {message} ({context_str})" if context_str else f"Error: {message}"
    click.echo(full_message, err=True)


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a warning message to stderr."""
    context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    full_message = (
        f"Warning: {message} ({context_str})" if context_str else f"Warning: {message}"
    )
    click.echo(full_message, err=True)


def success(message: str) -> None:
    """Print a result message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates and console links that should not be captured
    by stdout redirection.
    """
    click.echo(message, err=True)


def emit(model: BaseModel, output: str, table: str) -> None:
    """Print a command result: the model as JSON, or the rendered table."""
    if output == "json":
        click.echo(model.model_dump_json(indent=2))
    else:
        click.echo(table)


def fail(exc: FerryError, output: str = "table", **context: str | int | bool | None) -> NoReturn:
    """Report a FerryError and exit with its code.

    In JSON mode a single JSON object is written to stdout so scripted
    callers always get parseable output.

    Raises:
        SystemExit: Always, with ``exc.exit_code``.
    """
    logger.debug(
        "command_failed",
        error_type=type(exc).__name__,
        exit_code=exc.exit_code,
    )
    if output == "json":
        payload: dict[str, object] = {
            "error": str(exc),
            "error_type": type(exc).__name__,
            "exit_code": exc.exit_code,
        }
        payload.update({k: v for k, v in context.items() if v is not None})
        click.echo(json.dumps(payload))
    else:
        error(str(exc), **context)
    sys.exit(exc.exit_code)


__all__: list[str] = [
    "OUTPUT_CHOICES",
    "ExitCode",
    "emit",
    "error",
    "fail",
    "info",
    "success",
    "warn",
]
