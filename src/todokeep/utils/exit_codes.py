"""
Exit codes for the todokeep CLI.

Semantic exit codes so scripts can tell input mistakes from storage failures.
"""

# Success
SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments, validation or business-rule error
ERROR_INVALID_ARGS = 2

# Store could not be read or written
ERROR_STORAGE = 4

# Resource not found
ERROR_NOT_FOUND = 5


def get_exit_code_name(code: int) -> str:
    """Get the name of an exit code for display purposes."""
    code_names = {
        SUCCESS: "SUCCESS",
        ERROR_GENERAL: "ERROR_GENERAL",
        ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
        ERROR_STORAGE: "ERROR_STORAGE",
        ERROR_NOT_FOUND: "ERROR_NOT_FOUND",
    }
    return code_names.get(code, f"UNKNOWN({code})")


def get_exit_code_description(code: int) -> str:
    """Get a human-readable description of an exit code."""
    descriptions = {
        SUCCESS: "Command executed successfully",
        ERROR_GENERAL: "A general error occurred",
        ERROR_INVALID_ARGS: "Invalid input - fix the arguments and retry",
        ERROR_STORAGE: "The task store could not be read or written",
        ERROR_NOT_FOUND: "Task not found",
    }
    return descriptions.get(code, "Unknown error")
