"""Helpers for resolving task references typed on the command line."""

from __future__ import annotations

from typing import TYPE_CHECKING

from todokeep.models.exceptions import ItemNotFoundError, ValidationError

if TYPE_CHECKING:
    from todokeep.services.task_service import TaskService


def resolve_task_id(task_service: TaskService, task_id_or_prefix: str) -> str:
    """
    Resolve a task ID or ID prefix to a full task ID.

    Pretty output shows the first 8 characters of each id, so any unique
    prefix is accepted.

    Args:
        task_service: The task service instance
        task_id_or_prefix: Full task ID or prefix to resolve

    Returns:
        The full task ID

    Raises:
        ItemNotFoundError: If no task matches
        ValidationError: If the prefix matches more than one task
    """
    ref = task_id_or_prefix.strip()
    if not ref:
        raise ValidationError("Task id must not be empty")
    if task_service.get_task(ref) is not None:
        return ref

    matches = [
        task.id
        for task in task_service.snapshot()
        if isinstance(task.id, str) and task.id.startswith(ref)
    ]
    if not matches:
        raise ItemNotFoundError(ref)
    if len(matches) > 1:
        raise ValidationError(
            f"Task id prefix '{ref}' is ambiguous ({len(matches)} matches)"
        )
    return matches[0]
