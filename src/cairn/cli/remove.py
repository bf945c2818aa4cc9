"""cairn remove: delete ingested documents.

Removes every chunk row of a document (and its vectors and full-text
entries) by document id, or clears the whole document index.

Usage:
  cairn remove --id 3f2a...
  cairn remove --all --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from cairn.cli.common import build_ingest_service, console, get_config, store_session
from cairn.cli.errors import err_document_not_found, err_remove_target


def remove_cmd(
    document_id: Annotated[
        str | None,
        typer.Option("--id", help="Document id to remove."),
    ] = None,
    remove_all: Annotated[
        bool,
        typer.Option("--all", help="Remove every ingested document."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default from config)."),
    ] = None,
) -> None:
    """Remove one document, or all documents, from the index."""
    if (document_id is None) == (not remove_all):
        console.print(err_remove_target())
        raise typer.Exit(1)

    cfg = get_config(db)
    with store_session(cfg) as store:
        service = build_ingest_service(store, cfg)

        if remove_all:
            count = service.get_document_count()
            if not yes and not typer.confirm(f"Remove all {count} documents?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
            result = service.delete_all_documents()
        else:
            if not yes and not typer.confirm(f"Remove document {document_id}?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
            result = service.delete_document(document_id)

    if not result.success:
        console.print(err_document_not_found(document_id or ""))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
