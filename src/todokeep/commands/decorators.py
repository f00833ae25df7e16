"""Decorators and result shell for command functions."""

from __future__ import annotations

import functools
import json
import time
import traceback
from collections.abc import Callable
from typing import Any

import typer
import yaml
from pydantic import BaseModel

from todokeep.models.exceptions import TodoError
from todokeep.utils.exit_codes import ERROR_GENERAL, SUCCESS
from todokeep.utils.logger import get_logger
from todokeep.utils.ui.formatters import (
    format_error,
    format_output,
    format_quiet,
    format_success,
    format_table,
)


class CommandResult(BaseModel):
    """Uniform result of one command.

    Attributes:
        success: Whether the operation succeeded
        payload: Operation output (task, list, report...)
        error: Error message on failure
        code: Stable error code on failure
        exit_code: Process exit code
        message: Short human-readable summary for pretty output
    """

    success: bool = True
    payload: Any = None
    error: str | None = None
    code: str | None = None
    exit_code: int = SUCCESS
    message: str | None = None

    @classmethod
    def ok(cls, payload: Any = None, message: str | None = None) -> CommandResult:
        return cls(payload=payload, message=message)

    @classmethod
    def from_error(cls, error: Exception) -> CommandResult:
        if isinstance(error, TodoError):
            return cls(
                success=False,
                error=error.message,
                code=error.code,
                exit_code=error.exit_code,
            )
        return cls(
            success=False,
            error=f"An unexpected error occurred: {error}",
            code="UNEXPECTED_ERROR",
            exit_code=ERROR_GENERAL,
        )


def render_result(result: CommandResult, output_format: str = "pretty") -> None:
    """Print *result* in the requested format."""
    if output_format == "json":
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return
    if output_format == "yaml":
        print(yaml.safe_dump(result.model_dump(mode="json"), sort_keys=False, allow_unicode=True))
        return

    if not result.success:
        format_error(f"{result.error} [{result.code}]")
        return
    if output_format == "quiet":
        format_quiet(result.payload)
    elif output_format == "table":
        format_table(result.payload)
    else:
        if result.message:
            format_success(result.message)
        if result.payload is not None:
            format_output(result.payload, "pretty")


def _output_format(args: tuple, kwargs: dict) -> str:
    ctx = kwargs.get("ctx")
    if ctx is None:
        ctx = next((a for a in args if isinstance(a, typer.Context)), None)
    state = getattr(ctx, "obj", None)
    return getattr(state, "output", None) or "pretty"


def command_wrapper(func: Callable[..., CommandResult]):
    """Decorator to wrap command functions with common functionality.

    The wrapped function returns a CommandResult; errors are turned into one.
    The result is rendered and the process exits with its exit code.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger()
        cmd = func.__name__
        start = time.monotonic()
        logger.info("command started: %s", cmd)
        try:
            result = func(*args, **kwargs)
            elapsed = time.monotonic() - start
            logger.info("command completed: %s (%.3fs)", cmd, elapsed)

        except TodoError as e:
            elapsed = time.monotonic() - start
            logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, str(e))
            result = CommandResult.from_error(e)

        except typer.Exit:
            # Re-raise Typer's own exits (like --help or explicit Exit(0))
            raise

        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) - %s\n%s",
                cmd,
                elapsed,
                str(e),
                traceback.format_exc(),
            )
            # Generic fallback for unexpected crashes
            result = CommandResult.from_error(e)

        render_result(result, _output_format(args, kwargs))
        if result.exit_code != SUCCESS:
            raise typer.Exit(code=result.exit_code)
        return result

    return wrapper
