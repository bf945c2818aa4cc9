"""Tests for IngestService single ingest and document lifecycle."""

from __future__ import annotations

import pytest

from cairn.errors import NotFound, PersistenceFailed
from cairn.ingest.extractor import ContentExtractor
from cairn.ingest.models import IngestRequest
from cairn.ingest.service import IngestService


class StubTranscriber:
    def transcribe(self, path: str) -> str:
        return "spoken words"


class StubCaptioner:
    def caption(self, path: str) -> str:
        return "a red bicycle"


@pytest.fixture
def service(store):
    extractor = ContentExtractor.default(StubTranscriber(), StubCaptioner())
    return IngestService(store, extractor, default_concurrency=2)


def _write(tmp_path, name, text="some text to index"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_ingest_text_returns_first_chunk_id(tmp_path, service, store):
    path = _write(tmp_path, "notes.txt")
    result = service.ingest(IngestRequest(file_path=path))
    assert result.success
    assert result.message == 'Text "notes.txt" ingested successfully'
    assert store.get_unique_documents()[0].id == result.id


def test_ingest_image_and_audio(tmp_path, service):
    image = service.ingest(IngestRequest(file_path=_write(tmp_path, "pic.png")))
    audio = service.ingest(IngestRequest(file_path=_write(tmp_path, "memo.mp3")))
    assert image.media_type == "image"
    assert audio.message == 'Audio "memo.mp3" ingested successfully'
    docs = {d.file_name: d for d in service.list_documents()}
    assert docs["pic.png"].thumbnail_path.endswith("pic.png")
    assert docs["memo.mp3"].media_type == "audio"


def test_image_content_is_prefixed_once(tmp_path, service, store):
    service.ingest(IngestRequest(file_path=_write(tmp_path, "bike.png")))
    service.ingest(IngestRequest(file_path=str(tmp_path / "car.png"), content="a blue car"))

    contents = sorted(c.content for c, _ in store.search_document_text("image", 10))
    assert contents == [
        "[image, picture, file, png format, bike.png] a red bicycle",
        "[image, picture, file, png format, car.png] a blue car",
    ]


def test_ingest_missing_file_raises(tmp_path, service):
    with pytest.raises(NotFound):
        service.ingest(IngestRequest(file_path=str(tmp_path / "nope.txt")))


def test_ingest_persistence_failure_propagates(tmp_path, service, embedder, monkeypatch):
    monkeypatch.setattr(embedder, "embed", lambda texts: [])
    with pytest.raises(PersistenceFailed):
        service.ingest(IngestRequest(file_path=_write(tmp_path, "a.txt")))


def test_reingest_keeps_one_document(tmp_path, service):
    path = _write(tmp_path, "a.txt", " ".join(f"w{i}" for i in range(2000)))
    service.ingest(IngestRequest(file_path=path))
    _write(tmp_path, "a.txt", "now it is short")
    service.ingest(IngestRequest(file_path=path))
    docs = service.list_documents()
    assert service.get_document_count() == 1
    assert len(docs[0].chunk_ids) == 1


def test_batch_ingest_uses_default_concurrency(tmp_path, service):
    paths = [_write(tmp_path, f"f{i}.txt") for i in range(3)]
    result = service.batch_ingest([IngestRequest(file_path=p) for p in paths])
    assert result.success == 3
    assert service.get_document_count() == 3


def test_delete_document(tmp_path, service):
    result = service.ingest(IngestRequest(file_path=_write(tmp_path, "a.txt")))
    outcome = service.delete_document(result.id)
    assert outcome.success
    assert outcome.message == f'Document "{result.id}" deleted successfully'
    assert service.get_document_count() == 0


def test_delete_unknown_document(service):
    outcome = service.delete_document("missing-id")
    assert not outcome.success
    assert outcome.message == 'Document "missing-id" not found'


def test_delete_all_documents_on_empty_store(service):
    outcome = service.delete_all_documents()
    assert outcome.success
    assert outcome.message == "All documents deleted successfully"
