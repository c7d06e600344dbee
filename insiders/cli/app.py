from __future__ import annotations

import typer

from insiders import __version__
from insiders.cli.commands.plan_cmd import plan
from insiders.cli.commands.run_cmd import run
from insiders.cli.commands.version_cmd import cache_key, version


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(run)
app.command()(plan)
app.command()(version)
app.command("cache-key")(cache_key)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(
        False, "--version", help="Show version and exit.", callback=_show_version, is_eager=True
    ),
) -> None:
    del show_version


def main() -> None:
    app()
