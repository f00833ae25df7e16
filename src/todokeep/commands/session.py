"""Per-invocation CLI state and service lifetime."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import typer

from todokeep.services.config_service import get_config_service
from todokeep.services.storage_strategy import build_service
from todokeep.services.task_service import TaskService


@dataclass
class CliState:
    """Global options shared by every command."""

    file: Path | None = None
    memory: bool = False
    reopen_window_hours: float | None = None
    output: str | None = None


def get_state(ctx: typer.Context) -> CliState:
    if not isinstance(ctx.obj, CliState):
        ctx.obj = CliState()
    return ctx.obj


@contextlib.contextmanager
def open_service(ctx: typer.Context) -> Iterator[TaskService]:
    """Build the task service for this invocation; always close it afterwards.

    Closing flushes pending writes, so a storage failure surfaces here as a
    StorageError even when the command itself succeeded.
    """
    state = get_state(ctx)
    config_service = get_config_service()
    store_path = None if state.memory else config_service.resolve_store_path(state.file)
    service = build_service(
        config_service.config,
        store_path=store_path,
        memory=state.memory,
        reopen_window_hours=state.reopen_window_hours,
    )
    try:
        yield service
    finally:
        service.close()
