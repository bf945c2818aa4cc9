"""Office document extraction: Word, spreadsheets, presentations, legacy formats.

Presentations and legacy binary formats are not parsed; they get a short
synthetic description so the file is still findable by name and format.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

import docx
import openpyxl


def extract_docx(path: str) -> str:
    """Return the paragraph text of a .docx file, one paragraph per line."""
    document = docx.Document(path)
    return "\n".join(p.text for p in document.paragraphs if p.text.strip())


def extract_spreadsheet(path: str) -> str:
    """Dump every sheet as CSV under a ``[Sheet: <name>]`` label."""
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        blocks: list[str] = []
        for sheet in workbook.worksheets:
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            for row in sheet.iter_rows(values_only=True):
                writer.writerow(["" if v is None else v for v in row])
            blocks.append(f"[Sheet: {sheet.title}]\n{buf.getvalue().rstrip()}")
        return "\n\n".join(blocks)
    finally:
        workbook.close()


def describe_presentation(path: str) -> str:
    name = Path(path).name
    return (
        "[document, file, presentation, slides, pptx format] "
        f"PowerPoint presentation: {name}. Contains slides and visual content."
    )


def describe_legacy(path: str) -> str:
    p = Path(path)
    ext = p.suffix.lower().lstrip(".")
    return f"[document, file, {ext} format] Document file: {p.name}. Legacy document format."
