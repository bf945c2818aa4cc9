"""cairn project CLI commands.

Commands:
  cairn project index PATH   analyse one codebase and store it
  cairn project scan ROOT    discover and index every codebase under ROOT
  cairn project list         show indexed projects
  cairn project show ID      project details, knowledge document and skeleton count
  cairn project remove ID    delete a project, its skeletons and knowledge document
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cairn.cli.common import build_indexer, console, get_config, require_api_key, store_session
from cairn.cli.errors import err_not_a_codebase, err_persistence, err_project_not_found
from cairn.errors import NotACodebase, PersistenceFailed
from cairn.projects.indexer import IndexOptions

project_app = typer.Typer(
    name="project",
    help="Index and manage codebases (index, scan, list, show, remove).",
    add_completion=False,
)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Database path (default from config)."),
]


def _options(
    name: str | None,
    llm: bool,
    summary: bool,
    skip_skeletons: bool,
    include_tests: bool,
    ignore: list[str] | None,
) -> IndexOptions:
    return IndexOptions(
        name=name,
        use_llm=llm,
        quick_summary=summary,
        skip_skeletons=skip_skeletons,
        include_tests=include_tests,
        ignore_dirs=list(ignore or []),
    )


@project_app.command("index")
def project_index_cmd(
    path: Annotated[Path, typer.Argument(help="Codebase root directory.")],
    name: Annotated[str | None, typer.Option("--name", help="Project name override.")] = None,
    llm: Annotated[
        bool, typer.Option("--llm", help="Have the LLM write the knowledge document.")
    ] = False,
    summary: Annotated[
        bool, typer.Option("--summary", help="Prepend a short LLM summary to the template.")
    ] = False,
    skip_skeletons: Annotated[
        bool, typer.Option("--skip-skeletons", help="Do not extract code skeletons.")
    ] = False,
    include_tests: Annotated[
        bool, typer.Option("--include-tests", help="Extract skeletons from test files too.")
    ] = False,
    ignore: Annotated[
        list[str] | None,
        typer.Option("--ignore", help="Extra directory name to skip (repeatable)."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Analyse a codebase and add it to the project index."""
    cfg = get_config(db)
    require_api_key(cfg.embedding.model)
    if llm or summary:
        require_api_key(cfg.generation.model)

    opts = _options(name, llm, summary, skip_skeletons, include_tests, ignore)
    with store_session(cfg) as store:
        indexer = build_indexer(store, cfg, with_llm=llm or summary)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task(f"Indexing {path}…", total=None)
            try:
                details = indexer.index_project(path, opts)
            except NotACodebase as exc:
                console.print(err_not_a_codebase(exc.path))
                raise typer.Exit(1) from exc
            except PersistenceFailed as exc:
                console.print(err_persistence(str(exc)))
                raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] {details.message}")
    console.print(f"  id: {details.project.id}")
    console.print(f"  Tech stack: {', '.join(details.project.tech_stack) or '-'}")
    console.print(f"  Skeletons: {details.skeleton_count}")
    if details.truncated:
        console.print(f"  [yellow]Structure walk stopped at {cfg.projects.max_files} files[/]")


@project_app.command("scan")
def project_scan_cmd(
    root: Annotated[Path, typer.Argument(help="Directory to search for codebases.")],
    max_depth: Annotated[
        int, typer.Option("--max-depth", min=0, help="How deep to look for codebases.")
    ] = 3,
    skip_skeletons: Annotated[
        bool, typer.Option("--skip-skeletons", help="Do not extract code skeletons.")
    ] = False,
    db: _DbOption = None,
) -> None:
    """Discover every codebase under ROOT and index each one."""
    cfg = get_config(db)
    require_api_key(cfg.embedding.model)

    with store_session(cfg) as store:
        indexer = build_indexer(store, cfg)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task(f"Scanning {root}…", total=None)
            result = indexer.scan_and_index_all(
                root, max_depth=max_depth, options=IndexOptions(skip_skeletons=skip_skeletons)
            )

    for details in result.indexed:
        console.print(f"[green]✓[/] {details.project.name}  [dim]{details.project.path}[/]")
    for path, message in result.failed.items():
        console.print(f"[red]✗[/] {path}: {message}")
    console.print(f"\n  {len(result.indexed)} indexed, {len(result.failed)} failed")
    if not result.indexed and not result.failed:
        console.print(f"[yellow]No codebases found under {root}.[/]")


@project_app.command("list")
def project_list_cmd(db: _DbOption = None) -> None:
    """List indexed projects."""
    cfg = get_config(db)
    with store_session(cfg) as store:
        projects = build_indexer(store, cfg).list_projects()

    if not projects:
        console.print(
            "[yellow]No projects indexed.[/]\n"
            "  Run:  cairn project index <path>"
        )
        raise typer.Exit(0)

    table = Table(title="Projects", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Tech stack")
    table.add_column("Files", justify="right")
    table.add_column("Path")
    table.add_column("ID", style="dim")
    for p in projects:
        table.add_row(p.name, ", ".join(p.tech_stack[:4]), str(p.file_count), p.path, p.id)
    console.print(table)


@project_app.command("show")
def project_show_cmd(
    project_id: Annotated[str, typer.Argument(help="Project id.")],
    db: _DbOption = None,
) -> None:
    """Show a project's details and knowledge document."""
    cfg = get_config(db)
    with store_session(cfg) as store:
        indexer = build_indexer(store, cfg)
        project = indexer.get_project(project_id)
        if project is None:
            console.print(err_project_not_found(project_id))
            raise typer.Exit(1)
        skeletons = indexer.get_project_skeletons(project_id)

    lines = [
        f"Path:       {project.path}",
        f"Tech stack: {', '.join(project.tech_stack) or '-'}",
        f"Tags:       {', '.join(project.tags) or '-'}",
        f"Files:      {project.file_count}",
        f"Skeletons:  {len(skeletons)}",
        f"Indexed:    {project.created_at or '-'}",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold]{project.name}[/]", expand=False))
    console.print(Markdown(project.description))


@project_app.command("remove")
def project_remove_cmd(
    project_id: Annotated[str, typer.Argument(help="Project id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = None,
) -> None:
    """Remove a project, its code skeletons and its knowledge document."""
    cfg = get_config(db)
    with store_session(cfg) as store:
        indexer = build_indexer(store, cfg)
        project = indexer.get_project(project_id)
        if project is None:
            console.print(err_project_not_found(project_id))
            raise typer.Exit(1)
        if not yes and not typer.confirm(f"Remove project '{project.name}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        result = indexer.delete_project(project_id)

    console.print(f"[green]✓[/] {result.message}")
