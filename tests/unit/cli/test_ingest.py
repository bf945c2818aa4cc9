"""Tests for the cairn ingest command."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from cairn.cli.common import store_session
from cairn.cli.ingest import expand_paths
from cairn.cli.main import app

runner = CliRunner()


# ------------------------------------------------------------------
# Path expansion
# ------------------------------------------------------------------


def test_expand_paths_filters_hidden_excluded_and_unsupported(tmp_path: Path) -> None:
    (tmp_path / "a.md").write_text("a")
    (tmp_path / "b.txt").write_text("b")
    (tmp_path / "draft.md").write_text("c")
    (tmp_path / ".secret.md").write_text("d")
    (tmp_path / "tool.exe").write_bytes(b"\x00")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.pdf").write_bytes(b"%PDF")

    root = tmp_path.resolve()
    flat = expand_paths([tmp_path], recursive=False, exclude=["draft*"])
    assert flat == [str(root / "a.md"), str(root / "b.txt")]

    deep = expand_paths([tmp_path], recursive=True, exclude=[])
    assert str(root / "sub" / "c.pdf") in deep
    assert str(root / "draft.md") in deep


def test_expand_paths_keeps_explicit_files_and_dedupes(tmp_path: Path) -> None:
    f = tmp_path / "notes.xyz"
    assert expand_paths([f, f], recursive=False, exclude=[]) == [str(f.resolve())]


def test_expand_paths_relative_and_absolute_are_one_file(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "notes.md").write_text("n")
    monkeypatch.chdir(tmp_path)
    absolute = (tmp_path / "notes.md").resolve()

    files = expand_paths(
        [Path("notes.md"), Path("./notes.md"), absolute, Path(".")], recursive=False, exclude=[]
    )

    assert files == [str(absolute)]


# ------------------------------------------------------------------
# Command
# ------------------------------------------------------------------


def test_empty_directory_exits_1(tmp_path: Path, cli_config) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["ingest", str(empty)])
    assert result.exit_code == 1
    assert "No files to ingest" in result.output


def test_single_file(tmp_path: Path, cli_config) -> None:
    doc = tmp_path / "notes.txt"
    doc.write_text("Vector stores index embeddings for semantic search.")

    result = runner.invoke(app, ["ingest", str(doc)])

    assert result.exit_code == 0, result.output
    assert 'Text "notes.txt" ingested successfully' in result.output
    with store_session(cli_config) as store:
        assert store.get_document_count() == 1


def test_missing_file_exits_1(tmp_path: Path, cli_config) -> None:
    result = runner.invoke(app, ["ingest", str(tmp_path / "gone.txt")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_directory_goes_through_batch(tmp_path: Path, cli_config) -> None:
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "one.md").write_text("# One\n\nfirst document")
    (docs / "two.md").write_text("# Two\n\nsecond document")

    result = runner.invoke(app, ["ingest", str(docs), "--concurrency", "2"])

    assert result.exit_code == 0, result.output
    assert "2 ingested" in result.output
    assert "0 failed" in result.output
    with store_session(cli_config) as store:
        assert store.get_document_count() == 2


def test_reingest_supersedes(tmp_path: Path, cli_config) -> None:
    doc = tmp_path / "notes.txt"
    doc.write_text("first version")
    runner.invoke(app, ["ingest", str(doc)])
    doc.write_text("second version")
    runner.invoke(app, ["ingest", str(doc)])

    with store_session(cli_config) as store:
        documents = store.get_unique_documents()
    assert len(documents) == 1
    assert len(documents[0].chunk_ids) == 1


def test_missing_api_key_exits_1(tmp_path: Path, cli_config, monkeypatch) -> None:
    cli_config.embedding.model = "openai/text-embedding-3-small"
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    doc = tmp_path / "notes.txt"
    doc.write_text("hello")

    result = runner.invoke(app, ["ingest", str(doc)])

    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
