"""Media-type detection and enrichment prefixes."""

from __future__ import annotations

from pathlib import Path

TEXT = "text"
IMAGE = "image"
AUDIO = "audio"
MEDIA_TYPES: tuple[str, ...] = (TEXT, IMAGE, AUDIO)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"})
AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a", ".flac", ".ogg"})

_DOC_TYPES: dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "word",
    ".xlsx": "spreadsheet",
    ".xls": "spreadsheet",
}

AUDIO_DOC_TYPE = "audio transcript"


def detect_media_type(path: str | Path) -> str:
    """Classify *path* by extension: image, audio, or text (everything else)."""
    ext = Path(path).suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return IMAGE
    if ext in AUDIO_EXTENSIONS:
        return AUDIO
    return TEXT


def format_label(path: str | Path) -> str:
    """Lowercased extension without the dot, or ``text`` for extensionless files."""
    ext = Path(path).suffix.lower().lstrip(".")
    return ext or "text"


def doc_type_for(path: str | Path) -> str:
    return _DOC_TYPES.get(Path(path).suffix.lower(), "text")


def enrichment_prefix(path: str | Path, doc_type: str | None = None) -> str:
    """``[document, file, <docType>, <ext> format, <fileName>] ``"""
    doc_type = doc_type or doc_type_for(path)
    return f"[document, file, {doc_type}, {format_label(path)} format, {Path(path).name}] "


def image_prefix(path: str | Path) -> str:
    return f"[image, picture, file, {format_label(path)} format, {Path(path).name}] "
