"""Main entry point for the todokeep CLI."""

from pathlib import Path
from typing import Annotated

import typer

from todokeep import __version__
from todokeep.commands import config
from todokeep.commands.session import CliState
from todokeep.commands.tasks import COMMANDS
from todokeep.services.config_service import get_config_service
from todokeep.utils.typer_helpers import SuggestingGroup
from todokeep.utils.ui.formatters import OUTPUT_FORMATS, console

app = typer.Typer(
    name="todokeep",
    cls=SuggestingGroup,
    help="A local, file-backed task tracker",
    no_args_is_help=True,
)

app.add_typer(config.app, name="config", help="Configuration management")

for _name, _command in COMMANDS.items():
    app.command(_name)(_command)


@app.callback()
def main_callback(
    ctx: typer.Context,
    file: Annotated[
        Path | None,
        typer.Option("--file", help="Task store file (overrides $TODOKEEP_FILE)"),
    ] = None,
    memory: Annotated[
        bool, typer.Option("--memory", help="Keep tasks in memory only")
    ] = False,
    reopen_window_hours: Annotated[
        float | None,
        typer.Option("--reopen-window-hours", min=0, help="Override the reopen window"),
    ] = None,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Output format: pretty, json, yaml, table, quiet"),
    ] = None,
) -> None:
    """Track tasks in a local JSON file."""
    if output is None:
        output = get_config_service().config.output.format
    output = output.lower()
    if output not in OUTPUT_FORMATS:
        raise typer.BadParameter(
            f"expected one of: {', '.join(OUTPUT_FORMATS)}", param_hint="--output"
        )
    ctx.obj = CliState(
        file=file,
        memory=memory,
        reopen_window_hours=reopen_window_hours,
        output=output,
    )


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]todokeep[/bold] version [cyan]{__version__}[/cyan]")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
