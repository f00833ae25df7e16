"""Tests for exit code helpers."""

import pytest

from todokeep.models.exceptions import (
    DuplicateContentError,
    InvalidOrderError,
    ItemNotFoundError,
    OutsideReopenWindowError,
    StorageError,
    ValidationError,
    is_domain_error,
)
from todokeep.utils.exit_codes import (
    ERROR_INVALID_ARGS,
    ERROR_NOT_FOUND,
    ERROR_STORAGE,
    SUCCESS,
    get_exit_code_description,
    get_exit_code_name,
)


def test_names():
    assert get_exit_code_name(SUCCESS) == "SUCCESS"
    assert get_exit_code_name(ERROR_STORAGE) == "ERROR_STORAGE"
    assert get_exit_code_name(42) == "UNKNOWN(42)"


def test_descriptions():
    assert get_exit_code_description(ERROR_NOT_FOUND) == "Task not found"
    assert get_exit_code_description(42) == "Unknown error"


@pytest.mark.parametrize(
    "error,exit_code",
    [
        (ItemNotFoundError("x"), ERROR_NOT_FOUND),
        (DuplicateContentError(), ERROR_INVALID_ARGS),
        (InvalidOrderError(), ERROR_INVALID_ARGS),
        (OutsideReopenWindowError(), ERROR_INVALID_ARGS),
        (ValidationError(), ERROR_INVALID_ARGS),
        (StorageError(), ERROR_STORAGE),
    ],
)
def test_error_exit_codes(error, exit_code):
    assert error.exit_code == exit_code


def test_storage_errors_are_not_domain_errors():
    assert is_domain_error(ValidationError())
    assert not is_domain_error(StorageError())


def test_storage_error_reports_cause():
    error = StorageError("write failed", cause=OSError("disk full"))
    assert error.to_dict() == {
        "code": "STORAGE_ERROR",
        "message": "write failed",
        "cause": "OSError: disk full",
    }
