"""cairn status: index overview.

Shows the database, the configured models, document and project counts, and
the ingested documents.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from cairn.cli.common import console, get_config, store_session
from cairn.config import CairnConfig
from cairn.db.models import Document
from cairn.db.store import VectorStore

_MAX_LISTED = 50


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default from config)."),
    ] = None,
) -> None:
    """Show index status: database, models, documents and projects."""
    cfg = get_config(db)
    db_path = Path(cfg.database.path).expanduser()

    _show_config_panel(db_path, cfg)
    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  cairn ingest <path>  or  cairn project index <path>",
                title="[bold]Index[/]",
                expand=False,
            )
        )
        return

    with store_session(cfg) as store:
        _show_index_panel(store)
        documents = store.get_unique_documents()
    if documents:
        _show_documents(documents)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(db_path: Path, cfg: CairnConfig) -> None:
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    lines = [
        f"Database:   {db_info}",
        f"Embedding:  {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
        f"Generation: {cfg.generation.model}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Cairn[/]", expand=False))


def _show_index_panel(store: VectorStore) -> None:
    projects = store.list_projects()
    lines = [
        f"Documents: [bold]{store.get_document_count()}[/]  |  "
        f"Chunks: [bold]{store.get_chunk_count():,}[/]",
        f"Projects:  [bold]{len(projects)}[/]  |  "
        f"Code skeletons: [bold]{store.count_skeletons():,}[/]",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))


def _show_documents(documents: list[Document]) -> None:
    table = Table(title="Documents", show_header=True, header_style="bold")
    table.add_column("File", style="bold")
    table.add_column("Type")
    table.add_column("Chunks", justify="right")
    table.add_column("Added", style="dim")
    table.add_column("ID", style="dim")
    for doc in documents[:_MAX_LISTED]:
        added = (doc.created_at or "")[:10] or "-"
        table.add_row(doc.file_name, doc.media_type, str(len(doc.chunk_ids)), added, doc.id)
    console.print(table)
    if len(documents) > _MAX_LISTED:
        console.print(f"[dim]… and {len(documents) - _MAX_LISTED} more[/]")
