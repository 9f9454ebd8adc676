"""Tests for PdfExtractor."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from pypdf.errors import PdfReadError

from lantern.errors import ExtractionFailure, InvalidInput
from lantern.ingest.pdf import PdfExtractor


def _make_reader(pages: list[str | None], meta_title: str | None = None) -> MagicMock:
    reader = MagicMock()
    reader.pages = []
    for text in pages:
        page = MagicMock()
        page.extract_text.return_value = text
        reader.pages.append(page)
    if meta_title is None:
        reader.metadata = None
    else:
        reader.metadata = MagicMock(title=meta_title)
    return reader


def _patch_reader(reader):
    return patch("lantern.ingest.pdf.pypdf.PdfReader", return_value=reader)


def test_pages_joined_with_blank_line():
    with _patch_reader(_make_reader(["Page one.", "Page two."])):
        result = PdfExtractor().extract(b"%PDF", filename="manual.pdf")
    assert result.content == "Page one.\n\nPage two."


def test_empty_pages_skipped():
    with _patch_reader(_make_reader(["First.", None, "   ", "Last."])):
        result = PdfExtractor().extract(b"%PDF", filename="manual.pdf")
    assert result.content == "First.\n\nLast."


def test_explicit_title_wins():
    with _patch_reader(_make_reader(["Text."], meta_title="Meta Title")):
        result = PdfExtractor().extract(b"%PDF", filename="manual.pdf", title="Given")
    assert result.title == "Given"


def test_metadata_title_used_when_no_explicit_title():
    with _patch_reader(_make_reader(["Text."], meta_title="Meta Title")):
        result = PdfExtractor().extract(b"%PDF", filename="manual.pdf")
    assert result.title == "Meta Title"


def test_filename_stem_fallback():
    with _patch_reader(_make_reader(["Text."])):
        result = PdfExtractor().extract(b"%PDF", filename="annual-report.pdf")
    assert result.title == "annual-report"


def test_no_text_raises_invalid_input():
    with _patch_reader(_make_reader([None, ""])):
        with pytest.raises(InvalidInput, match="PDF appears to be empty"):
            PdfExtractor().extract(b"%PDF", filename="scan.pdf")


def test_unparseable_pdf_raises_extraction_failure():
    with patch("lantern.ingest.pdf.pypdf.PdfReader", side_effect=PdfReadError("EOF marker not found")):
        with pytest.raises(ExtractionFailure, match="could not parse PDF 'broken.pdf'"):
            PdfExtractor().extract(b"not a pdf", filename="broken.pdf")


def test_extract_file_reads_bytes(tmp_path):
    path = tmp_path / "guide.pdf"
    path.write_bytes(b"%PDF-1.4")
    with _patch_reader(_make_reader(["Guide text."])) as mock_reader:
        result = PdfExtractor().extract_file(path)
    assert result.title == "guide"
    assert mock_reader.call_args[0][0].getvalue() == b"%PDF-1.4"
