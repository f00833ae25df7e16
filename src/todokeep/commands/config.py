"""Configuration management commands."""

import json
from typing import Annotated, Any

import typer

from todokeep.services.config_service import get_config_service

from .decorators import CommandResult, command_wrapper

app = typer.Typer(help="Configuration management commands")


def parse_value(raw: str) -> Any:
    """Parse a command-line value as JSON, falling back to the raw string.

    ``true``, ``300`` and ``null`` become bool, int and None; anything that is
    not valid JSON (a bare path, say) is kept as text.
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command("show")
@command_wrapper
def show_config(ctx: typer.Context) -> CommandResult:
    """Show the current configuration."""
    config_service = get_config_service()
    return CommandResult.ok(config_service.config.model_dump(mode="json"))


@app.command("get")
@command_wrapper
def get_config(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Configuration key (e.g., storage.debounce_ms)")],
) -> CommandResult:
    """Get a configuration value."""
    value = get_config_service().get(key)
    return CommandResult.ok({"key": key, "value": value})


@app.command("set")
@command_wrapper
def set_config(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Configuration key (e.g., storage.debounce_ms)")],
    value: Annotated[str, typer.Argument(help="Configuration value")],
) -> CommandResult:
    """Set a configuration value."""
    stored = get_config_service().set(key, parse_value(value))
    return CommandResult.ok(
        {"key": key, "value": stored}, f"Configuration '{key}' set to '{stored}'"
    )


@app.command("reset")
@command_wrapper
def reset_config(
    ctx: typer.Context,
    key: Annotated[str | None, typer.Argument(help="Configuration key to reset")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> CommandResult:
    """Reset configuration to defaults."""
    if not yes:
        msg = "entire configuration" if not key else f"'{key}'"
        if not typer.confirm(f"Are you sure you want to reset {msg}?"):
            return CommandResult.ok(message="Cancelled")

    config_service = get_config_service()
    config_service.reset(key)
    if key:
        return CommandResult.ok(
            {"key": key, "value": config_service.get(key)},
            f"Configuration '{key}' reset to default",
        )
    return CommandResult.ok(message="Configuration reset to defaults")
