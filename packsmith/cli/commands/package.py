"""``packsmith package`` — create, update, inspect and delete packages.

Every command resolves a ``PackageOrchestrator`` from the CLI state, runs a
single operation against it and renders the result with Rich.  Library
errors are reported in red and exit with status 1.
"""

from __future__ import annotations

import contextlib
import os
from collections.abc import Iterator
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from packsmith.cli.state import CliState
from packsmith.core.archive_builder import kubify_name
from packsmith.core.errors import FunctionSyncError, PacksmithError
from packsmith.core.orchestrator import PackageOrchestrator
from packsmith.models.archive import ArchiveSource
from packsmith.models.package import PackageCreateRequest, PackageUpdateRequest

console = Console()
err_console = Console(stderr=True, soft_wrap=True)

package_app = typer.Typer(no_args_is_help=True, rich_markup_mode="rich")


@contextlib.contextmanager
def _orchestrator(ctx: typer.Context) -> Iterator[PackageOrchestrator]:
    state: CliState = ctx.ensure_object(CliState)
    try:
        with state.orchestrator() as orchestrator:
            yield orchestrator
    except FunctionSyncError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        for fn_name, cause in sorted(exc.failures.items()):
            err_console.print(f"  [red]{fn_name}[/red]: {escape(str(cause))}")
        raise typer.Exit(code=1) from exc
    except PacksmithError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


def _namespace(ctx: typer.Context, value: Optional[str]) -> str:
    if value:
        return value
    state: CliState = ctx.ensure_object(CliState)
    return state.config.namespace if state.config else "default"


# ---------------------------------------------------------------------------
# create / update / rebuild
# ---------------------------------------------------------------------------


def create_cmd(
    ctx: typer.Context,
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace for the package."),
    env: str = typer.Option("", "--env", help="Environment name for the package."),
    envns: str = typer.Option("default", "--envns", help="Namespace of the environment."),
    src: Optional[List[str]] = typer.Option(
        None,
        "--src",
        "--sourcearchive",
        help="Source file, glob or URL. Repeat for several inputs.",
    ),
    deploy: Optional[List[str]] = typer.Option(
        None,
        "--deploy",
        "--deployarchive",
        help="Deployment file, glob or URL. Repeat for several inputs.",
    ),
    buildcmd: str = typer.Option("", "--buildcmd", help="Build command run by the builder."),
    no_zip: bool = typer.Option(
        False, "--no-zip", help="Upload a single deployment file as-is instead of zipping it."
    ),
    spec: bool = typer.Option(
        False, "--spec", help="Record a declarative spec instead of creating the package."
    ),
) -> None:
    """Create a package from source and/or deployment archives."""
    src_files = list(src or [])
    deploy_files = list(deploy or [])
    spec_file = ""
    if spec:
        first = (src_files or deploy_files or ["package"])[0]
        spec_file = f"package-{kubify_name(os.path.basename(first.rstrip('/')))}.json"

    with _orchestrator(ctx) as orchestrator:
        meta = orchestrator.build_package(
            PackageCreateRequest(
                env_name=env,
                namespace=_namespace(ctx, pkgns),
                env_namespace=envns,
                src_files=src_files,
                deploy_files=deploy_files,
                build_command=buildcmd,
                no_zip=no_zip,
                spec_file=spec_file,
            )
        )
    if spec_file:
        console.print(f"Package '{meta.name}' recorded in {spec_file}")
    else:
        console.print(f"Package '{meta.name}' created")


def update_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Name of the package to update."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
    env: str = typer.Option("", "--env", help="New environment name."),
    envns: str = typer.Option("", "--envns", help="New environment namespace."),
    src: Optional[List[str]] = typer.Option(
        None, "--src", "--sourcearchive", help="Replacement source inputs."
    ),
    deploy: Optional[List[str]] = typer.Option(
        None, "--deploy", "--deployarchive", help="Replacement deployment inputs."
    ),
    buildcmd: str = typer.Option("", "--buildcmd", help="New build command."),
    no_zip: bool = typer.Option(False, "--no-zip", help="Upload a single deployment file as-is."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Update even if several functions share the package."
    ),
    rebuild: bool = typer.Option(
        False, "--rebuild", help="Force a new build even if nothing build-related changed."
    ),
) -> None:
    """Update a package and re-pin the functions that use it."""
    with _orchestrator(ctx) as orchestrator:
        result = orchestrator.update_package(
            name,
            _namespace(ctx, pkgns),
            PackageUpdateRequest(
                env_name=env,
                env_namespace=envns,
                src_files=list(src or []),
                deploy_files=list(deploy or []),
                build_command=buildcmd,
                force_rebuild=rebuild,
                no_zip=no_zip,
            ),
            force=force,
        )
    console.print(f"Package '{result.package.name}' updated")
    if result.sync.updated:
        console.print(f"  functions re-pinned: {', '.join(result.sync.updated)}")


def rebuild_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Name of the package to rebuild."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
) -> None:
    """Retry the build of a package whose last build failed."""
    namespace = _namespace(ctx, pkgns)
    with _orchestrator(ctx) as orchestrator:
        meta = orchestrator.rebuild_package(name, namespace)
    console.print(f"Retrying build for pkg {meta.name}. Use \"package info\" to check status.")


# ---------------------------------------------------------------------------
# getsrc / getdeploy
# ---------------------------------------------------------------------------


def _emit_archive(
    ctx: typer.Context, name: str, pkgns: Optional[str], which: ArchiveSource, output: Optional[Path]
) -> None:
    namespace = _namespace(ctx, pkgns)
    with _orchestrator(ctx) as orchestrator:
        if output is not None:
            path = orchestrator.save_archive(name, namespace, which, output)
            console.print(f"Wrote {which.value} archive of '{name}' to {path}")
            return
        stdout = typer.get_binary_stream("stdout")
        for chunk in orchestrator.fetch_archive(name, namespace, which):
            stdout.write(chunk)
        stdout.flush()


def getsrc_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Name of the package."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout."
    ),
) -> None:
    """Fetch the source archive of a package."""
    _emit_archive(ctx, name, pkgns, ArchiveSource.SOURCE, output)


def getdeploy_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Name of the package."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout."
    ),
) -> None:
    """Fetch the deployment archive of a package."""
    _emit_archive(ctx, name, pkgns, ArchiveSource.DEPLOYMENT, output)


# ---------------------------------------------------------------------------
# info / list / delete
# ---------------------------------------------------------------------------


def info_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Name of the package."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
) -> None:
    """Show the environment, build status and build log of a package."""
    namespace = _namespace(ctx, pkgns)
    with _orchestrator(ctx) as orchestrator:
        package = orchestrator.package_info(name, namespace)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Name", package.name)
    table.add_row("Environment", package.spec.environment.name)
    table.add_row("Status", package.status.build_status.value)
    console.print(Panel(table, title=f"Package {namespace}/{name}", border_style="cyan"))
    if package.status.build_log:
        console.print(Panel(escape(package.status.build_log), title="Build Logs", border_style="dim"))


def list_cmd(
    ctx: typer.Context,
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace to list."),
    orphan: bool = typer.Option(
        False, "--orphan", help="Only packages no function references."
    ),
) -> None:
    """List packages in a namespace."""
    namespace = _namespace(ctx, pkgns)
    with _orchestrator(ctx) as orchestrator:
        packages = orchestrator.list_packages(namespace, orphans_only=orphan)

    table = Table(title=f"Packages in {namespace}")
    table.add_column("NAME", style="cyan")
    table.add_column("BUILD_STATUS")
    table.add_column("ENV")
    for package in packages:
        table.add_row(
            package.name, package.status.build_status.value, package.spec.environment.name
        )
    console.print(table)


def delete_cmd(
    ctx: typer.Context,
    name: str = typer.Option("", "--name", help="Name of the package to delete."),
    pkgns: Optional[str] = typer.Option(None, "--pkgns", help="Namespace of the package."),
    orphan: bool = typer.Option(
        False, "--orphan", help="Delete every package no function references."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Delete even if functions reference the package."
    ),
) -> None:
    """Delete one package by name, or every orphan package."""
    if bool(name) == orphan:
        err_console.print("[bold red]Error:[/bold red] Need --name argument or --orphan flag.")
        raise typer.Exit(code=1)

    namespace = _namespace(ctx, pkgns)
    with _orchestrator(ctx) as orchestrator:
        if orphan:
            deleted = orchestrator.delete_orphan_packages(namespace)
        else:
            orchestrator.delete_package(name, namespace, force=force)
    if orphan:
        console.print(f"Orphan packages deleted ({len(deleted)})")
    else:
        console.print(f"Package '{name}' deleted")


# Register subcommands
package_app.command(name="create", help="Create a new package.")(create_cmd)
package_app.command(name="update", help="Update a package.")(update_cmd)
package_app.command(name="rebuild", help="Rebuild a failed package.")(rebuild_cmd)
package_app.command(name="getsrc", help="Get the source archive of a package.")(getsrc_cmd)
package_app.command(name="getdeploy", help="Get the deployment archive of a package.")(
    getdeploy_cmd
)
package_app.command(name="info", help="Show package information.")(info_cmd)
package_app.command(name="list", help="List packages.")(list_cmd)
package_app.command(name="delete", help="Delete a package.")(delete_cmd)
