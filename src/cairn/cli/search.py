"""cairn search: one query across documents, projects and code skeletons.

Usage:
  cairn search "vector store"
  cairn search "auth middleware" --project <id> --code 20
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from cairn.cli.common import console, get_config, require_api_key, store_session
from cairn.cli.errors import err_search_partial
from cairn.rag.search import SearchOptions, UnifiedResults, UnifiedSearch

_SNIPPET_CHARS = 120


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    projects: Annotated[
        int | None, typer.Option("--projects", min=0, help="Max project results.")
    ] = None,
    code: Annotated[
        int | None, typer.Option("--code", min=0, help="Max code skeleton results.")
    ] = None,
    documents: Annotated[
        int | None, typer.Option("--documents", min=0, help="Max document results.")
    ] = None,
    project: Annotated[
        str | None,
        typer.Option("--project", help="Restrict code results to one project id."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default from config)."),
    ] = None,
) -> None:
    """Search documents, projects and code skeletons in one pass."""
    cfg = get_config(db)
    require_api_key(cfg.embedding.model)
    options = SearchOptions(
        project_limit=cfg.search.project_limit if projects is None else projects,
        code_limit=cfg.search.code_limit if code is None else code,
        document_limit=cfg.search.document_limit if documents is None else documents,
        project_id=project,
    )

    with store_session(cfg) as store:
        results = UnifiedSearch(store).search(query, options)

    _show_results(results)
    for kind, message in results.errors.items():
        console.print(err_search_partial(kind.capitalize(), message))
    if results.total == 0 and not results.errors:
        console.print(f"[yellow]No results for[/] '{query}'.")


def _snippet(text: str) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= _SNIPPET_CHARS else flat[: _SNIPPET_CHARS - 1] + "…"


def _show_results(results: UnifiedResults) -> None:
    if results.projects:
        table = Table(title="Projects", show_header=True, header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Tech stack")
        table.add_column("Path", style="dim")
        for hit in results.projects:
            table.add_row(f"{hit.score:.3f}", hit.name, ", ".join(hit.tech_stack[:4]), hit.path)
        console.print(table)

    if results.skeletons:
        table = Table(title="Code", show_header=True, header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Project")
        table.add_column("File")
        table.add_column("Language", style="dim")
        for hit in results.skeletons:
            table.add_row(
                f"{hit.score:.3f}", hit.project_name or "-", hit.file_path, hit.language
            )
        console.print(table)

    if results.documents:
        table = Table(title="Documents", show_header=True, header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("File", style="bold")
        table.add_column("Type", style="dim")
        table.add_column("Match")
        for hit in results.documents:
            table.add_row(f"{hit.score:.4f}", hit.file_name, hit.media_type, _snippet(hit.content))
        console.print(table)
