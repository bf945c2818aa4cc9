"""Cairn CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from cairn.cli.common import setup_logging
from cairn.cli.ingest import ingest_cmd
from cairn.cli.project import project_app
from cairn.cli.remove import remove_cmd
from cairn.cli.search import search_cmd
from cairn.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("cairn")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cairn {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="cairn",
    help=(
        "Cairn: local semantic index for documents and codebases.\n\n"
        "  cairn ingest          Index files, images and audio.\n"
        "  cairn project index   Analyse a codebase and index its structure.\n"
        "  cairn search          Query documents, projects and code together."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """Cairn: local semantic index for documents and codebases."""
    setup_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("search")(search_cmd)
app.command("remove")(remove_cmd)
app.command("status")(status_cmd)
app.add_typer(project_app, name="project")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Cairn version."""
    typer.echo(f"cairn {_installed_version()}")


if __name__ == "__main__":
    app()
