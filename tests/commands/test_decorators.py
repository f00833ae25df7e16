"""Tests for CommandResult and command_wrapper."""

import json

import pytest
import typer

from todokeep.commands.decorators import CommandResult, command_wrapper, render_result
from todokeep.commands.session import CliState
from todokeep.models.exceptions import InvalidTransitionError, ItemNotFoundError, StorageError
from todokeep.utils.exit_codes import (
    ERROR_GENERAL,
    ERROR_INVALID_ARGS,
    ERROR_NOT_FOUND,
    ERROR_STORAGE,
)


class FakeContext:
    def __init__(self, output):
        self.obj = CliState(output=output)


class TestFromError:
    @pytest.mark.parametrize(
        "error,code,exit_code",
        [
            (ItemNotFoundError("abc"), "ITEM_NOT_FOUND", ERROR_NOT_FOUND),
            (InvalidTransitionError("nope"), "INVALID_TRANSITION", ERROR_INVALID_ARGS),
            (StorageError("disk full"), "STORAGE_ERROR", ERROR_STORAGE),
            (RuntimeError("boom"), "UNEXPECTED_ERROR", ERROR_GENERAL),
        ],
    )
    def test_mapping(self, error, code, exit_code):
        result = CommandResult.from_error(error)
        assert result.success is False
        assert result.code == code
        assert result.exit_code == exit_code

    def test_message_is_kept(self):
        result = CommandResult.from_error(ItemNotFoundError("abc"))
        assert result.error == "Task not found: abc"


class TestWrapper:
    def test_success_is_rendered_and_returned(self, capsys):
        @command_wrapper
        def ok_command(ctx):
            return CommandResult.ok({"n": 1}, "done")

        result = ok_command(ctx=FakeContext("json"))

        assert result.payload == {"n": 1}
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is True
        assert data["message"] == "done"

    def test_domain_error_exits_with_its_code(self, capsys):
        @command_wrapper
        def failing_command(ctx):
            raise ItemNotFoundError("abc")

        with pytest.raises(typer.Exit) as exc_info:
            failing_command(ctx=FakeContext("json"))

        assert exc_info.value.exit_code == ERROR_NOT_FOUND
        assert json.loads(capsys.readouterr().out)["code"] == "ITEM_NOT_FOUND"

    def test_unexpected_error_is_general(self, capsys):
        @command_wrapper
        def crashing_command(ctx):
            raise KeyError("oops")

        with pytest.raises(typer.Exit) as exc_info:
            crashing_command(ctx=FakeContext("json"))

        assert exc_info.value.exit_code == ERROR_GENERAL

    def test_typer_exit_passes_through(self):
        @command_wrapper
        def exiting_command(ctx):
            raise typer.Exit(0)

        with pytest.raises(typer.Exit):
            exiting_command(ctx=FakeContext("json"))

    def test_commands_are_logged(self, tmp_path):
        from todokeep.utils.logger import get_log_path

        @command_wrapper
        def logged_command(ctx):
            raise ItemNotFoundError("abc")

        with pytest.raises(typer.Exit):
            logged_command(ctx=FakeContext("quiet"))

        log = get_log_path().read_text()
        assert "command started: logged_command" in log
        assert "command failed: logged_command" in log


def test_render_yaml(capsys):
    render_result(CommandResult.ok({"a": 1}), "yaml")
    out = capsys.readouterr().out
    assert "success: true" in out
    assert "a: 1" in out


def test_render_pretty_error(capsys):
    render_result(CommandResult.from_error(ItemNotFoundError("abc")), "pretty")
    out = capsys.readouterr().out
    assert "Task not found: abc" in out
