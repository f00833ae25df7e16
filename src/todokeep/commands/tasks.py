"""Task management commands.

Each command maps to one TaskService operation and returns a CommandResult.
"""

import json
from pathlib import Path
from typing import Annotated

import typer

from todokeep.models import Task
from todokeep.models.exceptions import ValidationError
from todokeep.services.export_service import EXPORT_FORMATS
from todokeep.utils.task_helpers import resolve_task_id

from .decorators import CommandResult, command_wrapper
from .session import get_state, open_service

# Output formats that render the result shell instead of the raw report.
STRUCTURED_OUTPUTS = ("json", "yaml")


def task_payload(task: Task) -> dict:
    return task.model_dump(mode="json", warnings=False)


def tasks_payload(tasks: list[Task]) -> dict:
    return {"count": len(tasks), "tasks": [task_payload(task) for task in tasks]}


def _short(content: str, limit: int = 60) -> str:
    return content if len(content) <= limit else content[: limit - 3] + "..."


@command_wrapper
def add_command(
    ctx: typer.Context,
    content: Annotated[str, typer.Argument(help="Task description")],
    tags: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable)")
    ] = None,
) -> CommandResult:
    """Add a new task."""
    with open_service(ctx) as service:
        task = service.add(content, tags=tags or [])
    return CommandResult.ok(task_payload(task), f"Added: {_short(task.content)}")


def _list(
    ctx: typer.Context,
    status: str | None,
    tag: str | None,
    text: str | None,
    include_archived: bool,
    sort: str,
) -> CommandResult:
    with open_service(ctx) as service:
        tasks = service.list_tasks(
            status=status,
            tag=tag,
            text=text,
            include_archived=include_archived,
            sort=sort,
        )
    return CommandResult.ok(tasks_payload(tasks))


@command_wrapper
def list_command(
    ctx: typer.Context,
    status: Annotated[str | None, typer.Option("--status", "-s", help="Filter by state")] = None,
    tag: Annotated[str | None, typer.Option("--tag", "-t", help="Filter by tag")] = None,
    text: Annotated[str | None, typer.Option("--text", help="Content substring")] = None,
    include_archived: Annotated[
        bool, typer.Option("--include-archived", "-a", help="Include archived tasks")
    ] = False,
    sort: Annotated[str, typer.Option("--sort", help="order or created")] = "order",
) -> CommandResult:
    """List tasks."""
    return _list(ctx, status, tag, text, include_archived, sort)


@command_wrapper
def search_command(
    ctx: typer.Context,
    text: Annotated[str, typer.Argument(help="Content substring")],
    status: Annotated[str | None, typer.Option("--status", "-s", help="Filter by state")] = None,
    tag: Annotated[str | None, typer.Option("--tag", "-t", help="Filter by tag")] = None,
    include_archived: Annotated[
        bool, typer.Option("--include-archived", "-a", help="Include archived tasks")
    ] = False,
) -> CommandResult:
    """Search tasks by content."""
    return _list(ctx, status, tag, text, include_archived, "order")


@command_wrapper
def start_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
) -> CommandResult:
    """Start a pending task."""
    with open_service(ctx) as service:
        task = service.start(resolve_task_id(service, task_id))
    return CommandResult.ok(task_payload(task), f"Started: {_short(task.content)}")


@command_wrapper
def done_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
) -> CommandResult:
    """Complete an active task."""
    with open_service(ctx) as service:
        task = service.complete(resolve_task_id(service, task_id))
    return CommandResult.ok(task_payload(task), f"✓ Completed: {_short(task.content)}")


@command_wrapper
def reopen_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
) -> CommandResult:
    """Reopen a recently completed task."""
    with open_service(ctx) as service:
        task = service.reopen(resolve_task_id(service, task_id))
    return CommandResult.ok(task_payload(task), f"Reopened: {_short(task.content)}")


@command_wrapper
def update_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
    content: Annotated[str | None, typer.Option("--content", "-c", help="New content")] = None,
    tags: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Replace tags (repeatable)")
    ] = None,
    clear_tags: Annotated[bool, typer.Option("--clear-tags", help="Remove all tags")] = False,
) -> CommandResult:
    """Edit a task's content or tags."""
    if content is None and not tags and not clear_tags:
        raise ValidationError("Nothing to update: pass --content, --tag or --clear-tags")
    new_tags = [] if clear_tags else (tags or None)
    with open_service(ctx) as service:
        task = service.update(resolve_task_id(service, task_id), content=content, tags=new_tags)
    return CommandResult.ok(task_payload(task), f"Updated: {_short(task.content)}")


@command_wrapper
def reorder_command(
    ctx: typer.Context,
    task_ids: Annotated[
        list[str], typer.Argument(help="Every non-archived task ID, in the new order")
    ],
) -> CommandResult:
    """Reorder all non-archived tasks."""
    with open_service(ctx) as service:
        resolved = [resolve_task_id(service, ref) for ref in task_ids]
        tasks = service.reorder(resolved)
    return CommandResult.ok(tasks_payload(tasks), "Reordered tasks")


@command_wrapper
def move_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
    position: Annotated[int, typer.Argument(help="New 0-based position")],
) -> CommandResult:
    """Move one task to a new position."""
    with open_service(ctx) as service:
        tasks = service.move(resolve_task_id(service, task_id), position)
    return CommandResult.ok(tasks_payload(tasks), f"Moved task to position {position}")


@command_wrapper
def archive_command(
    ctx: typer.Context,
    task_id: Annotated[
        str | None, typer.Argument(help="Completed task ID or unique prefix")
    ] = None,
    all_completed: Annotated[
        bool, typer.Option("--all-completed", help="Archive every completed task")
    ] = False,
) -> CommandResult:
    """Archive a completed task (or all of them)."""
    if all_completed == (task_id is not None):
        raise ValidationError("Pass either a task ID or --all-completed")
    with open_service(ctx) as service:
        if all_completed:
            archived = service.archive_completed()
            return CommandResult.ok(
                {"archived_ids": archived, "count": len(archived)},
                f"Archived {len(archived)} completed task(s)",
            )
        task = service.archive(resolve_task_id(service, task_id))
    return CommandResult.ok(task_payload(task), f"Archived: {_short(task.content)}")


@command_wrapper
def archive_completed_command(ctx: typer.Context) -> CommandResult:
    """Archive every completed task."""
    with open_service(ctx) as service:
        archived = service.archive_completed()
    return CommandResult.ok(
        {"archived_ids": archived, "count": len(archived)},
        f"Archived {len(archived)} completed task(s)",
    )


@command_wrapper
def delete_command(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID or unique prefix")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> CommandResult:
    """Delete a task permanently."""
    with open_service(ctx) as service:
        resolved = resolve_task_id(service, task_id)
        if not yes:
            task = service.get_task(resolved)
            if not typer.confirm(f"Delete '{_short(task.content)}' permanently?"):
                return CommandResult.ok(message="Cancelled")
        task = service.delete(resolved)
    return CommandResult.ok(task_payload(task), f"Deleted: {_short(task.content)}")


@command_wrapper
def metrics_command(ctx: typer.Context) -> CommandResult:
    """Show task metrics."""
    with open_service(ctx) as service:
        metrics = service.get_metrics()
    return CommandResult.ok(metrics.model_dump(mode="json"))


@command_wrapper
def integrity_command(ctx: typer.Context) -> CommandResult:
    """Check the task store for anomalies (read-only)."""
    with open_service(ctx) as service:
        report = service.check_integrity()
    payload = report.model_dump(mode="json")
    payload["by_severity"] = report.by_severity
    payload["by_type"] = report.by_type
    return CommandResult.ok(payload)


@command_wrapper
def export_command(
    ctx: typer.Context,
    fmt: Annotated[str, typer.Option("--format", "-f", help="md or json")] = "md",
    out: Annotated[Path | None, typer.Option("--out", help="Write to this file")] = None,
    include_archived: Annotated[
        bool, typer.Option("--include-archived", "-a", help="Include archived tasks")
    ] = False,
) -> CommandResult:
    """Export a snapshot as markdown or JSON."""
    if fmt.lower() not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format: {fmt}")
    with open_service(ctx) as service:
        text = service.export(fmt, include_archived=include_archived)
    if out is None:
        if get_state(ctx).output in STRUCTURED_OUTPUTS:
            content = json.loads(text) if fmt.lower() == "json" else text
            return CommandResult.ok({"format": fmt, "content": content})
        typer.echo(text)
        return CommandResult.ok()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    return CommandResult.ok({"path": str(out), "format": fmt}, f"Exported to {out}")


COMMANDS = {
    "add": add_command,
    "list": list_command,
    "search": search_command,
    "start": start_command,
    "done": done_command,
    "reopen": reopen_command,
    "update": update_command,
    "reorder": reorder_command,
    "move": move_command,
    "archive": archive_command,
    "archive-completed": archive_completed_command,
    "delete": delete_command,
    "metrics": metrics_command,
    "integrity": integrity_command,
    "export": export_command,
}
