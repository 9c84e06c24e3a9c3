"""Main Typer application — global options and command registration.

Entry point: ``packsmith`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from packsmith.cli.commands.package import package_app
from packsmith.cli.state import CliState
from packsmith.config import ClientConfig

_VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


app = typer.Typer(
    name="packsmith",
    help="Packsmith: build and manage function packages.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    server: Optional[str] = typer.Option(
        None, "--server", envvar="PACKSMITH_SERVER_URL", help="Controller server URL."
    ),
    verbosity: int = typer.Option(
        1, "--verbosity", min=0, max=2, help="CLI verbosity (0 is quiet, 1 is the default, 2 is verbose)."
    ),
) -> None:
    """Resolve configuration and logging before any subcommand runs."""
    state = ctx.ensure_object(CliState)
    base = state.config or ClientConfig()
    if server:
        base = base.model_copy(update={"server_url": server})
    state.config = base

    level = _VERBOSITY_LEVELS.get(verbosity, logging.INFO)
    if verbosity == 1:
        level = getattr(logging, base.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app.add_typer(package_app, name="package", help="Manage packages.")
app.add_typer(package_app, name="pkg", help="Alias of 'package'.", hidden=True)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
