"""Snapshot export rendering.

``render_snapshot`` is a pure function over a point-in-time copy of the task
set; it never touches the repository.
"""

from __future__ import annotations

import json
from datetime import datetime

from todokeep.integrity.fields import sort_key, status_of
from todokeep.models import Metrics, Task, TaskStatus
from todokeep.models.exceptions import ValidationError

EXPORT_FORMATS = ("md", "markdown", "json")

_SECTION_TITLES = {
    TaskStatus.ACTIVE: "Active",
    TaskStatus.PENDING: "Pending",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.ARCHIVED: "Archived",
}


def build_tag_index(tasks: list[Task]) -> dict[str, list[str]]:
    """Map each tag to the sorted ids of the tasks carrying it."""
    index: dict[str, set[str]] = {}
    for task in tasks:
        tags = task.tags if isinstance(task.tags, list) else []
        for tag in tags:
            if isinstance(tag, str):
                index.setdefault(tag, set()).add(str(task.id))
    return {tag: sorted(ids) for tag, ids in sorted(index.items())}


def _visible(tasks: list[Task], include_archived: bool) -> list[Task]:
    if include_archived:
        return list(tasks)
    return [t for t in tasks if status_of(t) != TaskStatus.ARCHIVED]


def _format_item(task: Task) -> str:
    status = status_of(task)
    box = "[x]" if status in (TaskStatus.COMPLETED, TaskStatus.ARCHIVED) else "[ ]"
    line = f"- {box} {task.content}"
    if task.order is not None:
        line = f"- {box} #{task.order} {task.content}"
    tags = task.tags if isinstance(task.tags, list) else []
    if tags:
        line += " " + " ".join(f"`{tag}`" for tag in tags)
    return line + f" <!-- {task.id} -->"


def render_markdown(tasks: list[Task], metrics: Metrics, generated_at: datetime) -> str:
    lines = [
        "# Todo Snapshot",
        "",
        f"_Generated {generated_at.isoformat()}_",
        "",
        "## Summary",
        "",
        f"- Total: {metrics.total}",
    ]
    for state, count in metrics.by_state.items():
        lines.append(f"- {state.capitalize()}: {count}")
    lines.append(f"- Completion rate: {metrics.completion_rate:.0%}")
    if metrics.average_completion_seconds is not None:
        hours = metrics.average_completion_seconds / 3600
        lines.append(f"- Average time to complete: {hours:.1f}h")
    if metrics.oldest_pending is not None:
        lines.append(f"- Oldest pending: {metrics.oldest_pending.content}")

    # Lifecycle order, with in-progress work first.
    for status in (TaskStatus.ACTIVE, TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.ARCHIVED):
        section = sorted((t for t in tasks if status_of(t) == status), key=sort_key)
        if not section:
            continue
        lines += ["", f"## {_SECTION_TITLES[status]} ({len(section)})", ""]
        lines += [_format_item(task) for task in section]

    tag_index = build_tag_index(tasks)
    if tag_index:
        lines += ["", "## Tags", ""]
        for tag, ids in tag_index.items():
            lines.append(f"- `{tag}`: {len(ids)}")
    return "\n".join(lines) + "\n"


def render_json(tasks: list[Task], metrics: Metrics, generated_at: datetime) -> str:
    payload = {
        "generated_at": generated_at.isoformat(),
        "metrics": metrics.model_dump(mode="json"),
        "tasks": [task.model_dump(mode="json", warnings=False) for task in tasks],
        "tag_index": build_tag_index(tasks),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_snapshot(
    tasks: list[Task],
    metrics: Metrics,
    fmt: str = "md",
    *,
    include_archived: bool = False,
    generated_at: datetime,
) -> str:
    """Render tasks, metrics and a tag index as markdown or JSON text.

    Args:
        tasks: Point-in-time snapshot of the task set
        metrics: Metrics computed from the same snapshot
        fmt: "md" (or "markdown") or "json"
        include_archived: Include archived tasks in the listing
        generated_at: Timestamp written into the report

    Raises:
        ValidationError: If the format is not supported
    """
    fmt = fmt.lower()
    visible = _visible(tasks, include_archived)
    if fmt in ("md", "markdown"):
        return render_markdown(visible, metrics, generated_at)
    if fmt == "json":
        return render_json(visible, metrics, generated_at)
    raise ValidationError(f"Unsupported export format: {fmt}")
