"""cairn ingest: index files into the document store.

One path is ingested directly; several paths (or a directory) go through the
batch scheduler with per-media-type concurrency:

  text   → extracted (PDF / Word / spreadsheet / plain), chunked into windows
  audio  → transcribed, stored as one transcript document
  image  → captioned, stored as one caption document
"""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cairn.cli.common import (
    build_ingest_service,
    console,
    get_config,
    require_api_key,
    store_session,
)
from cairn.cli.errors import err_no_sources, err_persistence
from cairn.errors import IngestError, PersistenceFailed
from cairn.ingest.media import (
    AUDIO,
    AUDIO_EXTENSIONS,
    IMAGE,
    IMAGE_EXTENSIONS,
    detect_media_type,
)
from cairn.ingest.models import BatchResult, IngestRequest
from cairn.ingest.service import IngestService

_TEXT_EXTS = frozenset(
    {
        ".txt", ".md", ".markdown", ".rst", ".csv", ".json", ".log", ".yaml", ".yml",
        ".html", ".xml", ".pdf", ".docx", ".xlsx", ".xls", ".pptx", ".doc", ".ppt", ".rtf",
    }
)
_ALL_FILE_EXTS = _TEXT_EXTS | IMAGE_EXTENSIONS | AUDIO_EXTENSIONS
_MAX_DIR_DEPTH = 10


def ingest_cmd(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to ingest."),
    ],
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, max=50, help="Text workers (default from config)."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0, help="Whole-batch deadline in seconds."),
    ] = None,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Recurse into subdirectories (max 10 levels)."),
    ] = False,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob pattern to exclude (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default from config)."),
    ] = None,
) -> None:
    """Ingest documents, images and audio into the Cairn index."""
    files = expand_paths(paths, recursive=recursive, exclude=exclude or [])
    if not files:
        console.print(err_no_sources())
        raise typer.Exit(1)

    cfg = get_config(db)
    require_api_key(cfg.embedding.model)
    media = {detect_media_type(f) for f in files}
    if AUDIO in media:
        require_api_key(cfg.transcription.model)
    if IMAGE in media:
        require_api_key(cfg.captioning.model)

    with store_session(cfg) as store:
        service = build_ingest_service(store, cfg)
        if len(files) == 1 and files[0] in {str(p.resolve()) for p in paths}:
            _ingest_one(service, files[0])
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task(f"Ingesting {len(files)} files…", total=None)
            result = service.batch_ingest(
                [IngestRequest(file_path=f) for f in files],
                concurrency=concurrency,
                timeout=timeout,
            )
    _show_batch(result)
    if result.failed and not result.success:
        raise typer.Exit(1)


def _ingest_one(service: IngestService, file_path: str) -> None:
    console.print(f"\n[bold]→ {file_path}[/]")
    try:
        result = service.ingest(IngestRequest(file_path=file_path))
    except IngestError as exc:
        console.print(f"  [red]✗ Error:[/] {exc}")
        raise typer.Exit(1) from exc
    except PersistenceFailed as exc:
        console.print(err_persistence(str(exc)))
        raise typer.Exit(1) from exc
    console.print(f"  [green]✓[/] {result.message}")
    console.print(f"  [dim]id: {result.id}[/]")


def _show_batch(result: BatchResult) -> None:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("", width=1)
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Result")
    for item in result.results:
        mark = "[green]✓[/]" if item.success else "[red]✗[/]"
        message = item.message if item.success else f"[red]{item.message}[/]"
        table.add_row(mark, item.file_name, item.media_type or "-", message)
    console.print(table)
    console.print(
        f"\n[bold]{result.success}[/] ingested, "
        f"[bold]{result.failed}[/] failed in {result.elapsed_ms / 1000:.1f}s"
    )


# ------------------------------------------------------------------
# Path expansion
# ------------------------------------------------------------------


def expand_paths(paths: list[Path], recursive: bool, exclude: list[str]) -> list[str]:
    """Expand directories to supported files. Every path comes back absolute and resolved."""
    result: list[str] = []
    for p in paths:
        if p.is_dir():
            files = _scan_dir(p, recursive=recursive, exclude=exclude, depth=0)
            if not files:
                console.print(f"[yellow]No supported files found in directory:[/] {p}")
            result.extend(str(f.resolve()) for f in files)
        else:
            result.append(str(p.resolve()))
    return list(dict.fromkeys(result))


def _scan_dir(directory: Path, recursive: bool, exclude: list[str], depth: int) -> list[Path]:
    if depth > _MAX_DIR_DEPTH:
        return []
    files: list[Path] = []
    try:
        entries = sorted(directory.iterdir())
    except PermissionError:
        return []
    for entry in entries:
        if entry.name.startswith(".") or any(fnmatch.fnmatch(entry.name, pat) for pat in exclude):
            continue
        if entry.is_file() and entry.suffix.lower() in _ALL_FILE_EXTS:
            files.append(entry)
        elif entry.is_dir() and recursive:
            files.extend(_scan_dir(entry, recursive=recursive, exclude=exclude, depth=depth + 1))
    return files
