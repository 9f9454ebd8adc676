"""PDF text extraction via pypdf."""

from __future__ import annotations

import io
from pathlib import Path

import pypdf
from pypdf.errors import PdfReadError

from lantern.errors import ExtractionFailure, InvalidInput
from lantern.ingest.base import ExtractedContent

PDF_CONTENT_TYPE = "application/pdf"


class PdfExtractor:
    """Extract plain text from a PDF document.

    Strategy:
    - Read page-by-page via ``pypdf.PdfReader``.
    - Pages that yield no text (scanned images, etc.) are skipped.
    - Pages are joined with a blank line so page breaks act as paragraph
      boundaries for the chunker.
    """

    def extract(self, data: bytes, filename: str = "", title: str | None = None) -> ExtractedContent:
        """Extract text from raw PDF *data*.

        Args:
            data: PDF file contents.
            filename: Original file name (used for the fallback title and messages).
            title: Explicit document title; defaults to the PDF metadata title,
                then to the file stem.

        Raises:
            ExtractionFailure: If the bytes cannot be parsed as a PDF.
            InvalidInput: If the PDF contains no extractable text.
        """
        try:
            reader = pypdf.PdfReader(io.BytesIO(data))
            parts: list[str] = []
            for page in reader.pages:
                page_text = (page.extract_text() or "").strip()
                if page_text:
                    parts.append(page_text)
        except (PdfReadError, ValueError, OSError) as exc:
            raise ExtractionFailure(
                f"could not parse PDF '{filename or 'upload'}'", details=type(exc).__name__
            ) from exc

        text = "\n\n".join(parts)
        if not text.strip():
            raise InvalidInput("PDF appears to be empty or could not extract text")

        return ExtractedContent(
            title=title or _metadata_title(reader) or Path(filename).stem or "Untitled",
            content=text,
        )

    def extract_file(self, path: Path | str, title: str | None = None) -> ExtractedContent:
        p = Path(path)
        return self.extract(p.read_bytes(), filename=p.name, title=title)


def _metadata_title(reader: pypdf.PdfReader) -> str:
    try:
        meta = reader.metadata
    except (PdfReadError, ValueError):
        return ""
    if meta is None or not meta.title:
        return ""
    return str(meta.title).strip()
