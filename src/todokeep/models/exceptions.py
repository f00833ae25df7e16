"""Exceptions raised by the task engine.

Every error carries a stable ``code`` and the CLI exit code it maps to, so
callers can tell "your input was invalid" apart from "the store could not be
read or written".
"""

from __future__ import annotations

from todokeep.utils.exit_codes import (
    ERROR_GENERAL,
    ERROR_INVALID_ARGS,
    ERROR_NOT_FOUND,
    ERROR_STORAGE,
)


class TodoError(Exception):
    """Base exception for all engine errors."""

    code = "TODO_ERROR"
    exit_code = ERROR_GENERAL
    default_message = "Task engine error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ItemNotFoundError(TodoError):
    """Raised when an operation targets an id that does not exist."""

    code = "ITEM_NOT_FOUND"
    exit_code = ERROR_NOT_FOUND
    default_message = "Task not found"

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class InvalidTransitionError(TodoError):
    """Raised when a lifecycle transition is not an edge of the state graph."""

    code = "INVALID_TRANSITION"
    exit_code = ERROR_INVALID_ARGS
    default_message = "Invalid lifecycle transition"


class DuplicateContentError(TodoError):
    """Raised when content collides with a pending or active task."""

    code = "DUPLICATE_CONTENT"
    exit_code = ERROR_INVALID_ARGS
    default_message = "A pending or active task with the same content already exists"

    def __init__(self, message: str | None = None, existing_id: str | None = None):
        super().__init__(message)
        self.existing_id = existing_id


class InvalidOrderError(TodoError):
    """Raised when a target ordering is not dense, unique and complete."""

    code = "INVALID_ORDER"
    exit_code = ERROR_INVALID_ARGS
    default_message = "Invalid task ordering"


class OutsideReopenWindowError(TodoError):
    """Raised when reopening a task completed longer ago than the window."""

    code = "OUTSIDE_REOPEN_WINDOW"
    exit_code = ERROR_INVALID_ARGS
    default_message = "Reopen window has expired"


class ValidationError(TodoError):
    """Raised for business-rule violations on caller input."""

    code = "VALIDATION_ERROR"
    exit_code = ERROR_INVALID_ARGS
    default_message = "Invalid input"


class StorageError(TodoError):
    """Raised by storage adapters when the store cannot be read or written."""

    code = "STORAGE_ERROR"
    exit_code = ERROR_STORAGE
    default_message = "Storage failure"

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    def to_dict(self) -> dict[str, str]:
        data = super().to_dict()
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


DOMAIN_ERRORS = (
    ItemNotFoundError,
    InvalidTransitionError,
    DuplicateContentError,
    InvalidOrderError,
    OutsideReopenWindowError,
    ValidationError,
)


def is_domain_error(exc: BaseException) -> bool:
    """Return True if *exc* is a recoverable business-rule error."""
    return isinstance(exc, DOMAIN_ERRORS)
