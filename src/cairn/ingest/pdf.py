"""PDF text extraction via pypdf."""

from __future__ import annotations

import pypdf


def extract_pdf_text(path: str) -> str:
    """Extract the text layer of the PDF at *path*.

    Pages that yield no text (scanned images, etc.) are skipped; the rest are
    joined with blank lines.
    """
    reader = pypdf.PdfReader(path)
    parts: list[str] = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        stripped = page_text.strip()
        if stripped:
            parts.append(stripped)
    return "\n\n".join(parts)
