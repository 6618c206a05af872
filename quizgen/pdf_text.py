"""Extract plain text from uploaded documents."""
from __future__ import annotations

import io
from pathlib import Path

from pypdf import PdfReader


def extract_pdf_text(data: bytes) -> str:
    """Page texts joined by newlines.  Raises pypdf errors on unreadable input."""
    reader = PdfReader(io.BytesIO(data))
    if reader.is_encrypted:
        reader.decrypt("")
    pages = []
    for page in reader.pages:
        text = " ".join((page.extract_text() or "").split())
        if text:
            pages.append(text)
    return "\n".join(pages).strip()


def read_document(path: Path) -> str:
    if path.suffix.lower() == ".pdf":
        return extract_pdf_text(path.read_bytes())
    return path.read_text(encoding="utf-8")
