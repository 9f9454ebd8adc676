"""Tests for POST /scrape and POST /upload-pdf."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from lantern.db.models import document_id
from lantern.ingest.base import ExtractedContent
from lantern.ingest.web import WebExtractor

_URL = "https://example.com/guide"


def _patch_embed():
    return patch("lantern.ingest.coordinator.embed", return_value=[1.0, 0.0, 0.0])


def _patch_extract(title="Lantern Guide", content="Lanterns are lit at dusk."):
    return patch.object(
        WebExtractor, "extract", return_value=ExtractedContent(title=title, content=content)
    )


def _patch_pdf(pages):
    reader = MagicMock()
    reader.metadata = None
    reader.pages = []
    for text in pages:
        page = MagicMock()
        page.extract_text.return_value = text
        reader.pages.append(page)
    return patch("lantern.ingest.pdf.pypdf.PdfReader", return_value=reader)


# ------------------------------------------------------------------
# /scrape
# ------------------------------------------------------------------


def test_scrape_stores_page(store, api_config, make_client):
    with _patch_extract(), _patch_embed():
        response = make_client(api_config).post("/scrape", json={"url": _URL})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Content scraped and stored. Ready for retrieval."
    data = body["data"]
    assert data["id"] == document_id(_URL)
    assert data["url"] == _URL
    assert data["title"] == "Lantern Guide"
    assert data["chunksProcessed"] == 1
    assert data["deletedVectors"] == 0
    assert data["chunks"] == [
        {
            "index": 0,
            "length": len("Lanterns are lit at dusk."),
            "preview": "Lanterns are lit at dusk.",
            "hasNext": False,
            "hasPrevious": False,
        }
    ]
    assert "originalFileName" not in data
    assert store.count({"source_key": _URL}) == 1


def test_rescrape_replaces_records(store, api_config, make_client):
    client = make_client(api_config)
    with _patch_embed():
        with _patch_extract(content="abcd " * 240):
            client.post("/scrape", json={"url": _URL})
        with _patch_extract(content="Updated page."):
            response = client.post("/scrape", json={"url": _URL})

    assert response.json()["data"]["deletedVectors"] == 3
    assert store.count({"source_key": _URL}) == 1


def test_scrape_forbidden_outside_development(store, api_config, make_client):
    api_config.server.environment = "production"
    with _patch_extract() as mock_extract:
        response = make_client(api_config).post("/scrape", json={"url": _URL})

    assert response.status_code == 403
    assert "development" in response.json()["error"]
    mock_extract.assert_not_called()


def test_scrape_requires_url(store, api_config, make_client):
    response = make_client(api_config).post("/scrape", json={"url": "  "})
    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}


def test_scrape_unknown_extractor(store, api_config, make_client):
    response = make_client(api_config).post("/scrape", json={"url": _URL, "extractor": "rss"})
    assert response.status_code == 400
    assert "Unknown extractor" in response.json()["error"]


def test_scrape_blocks_private_addresses(store, api_config, make_client):
    with patch(
        "lantern.ingest.web.socket.getaddrinfo",
        return_value=[(None, None, None, None, ("127.0.0.1", 0))],
    ):
        response = make_client(api_config).post("/scrape", json={"url": "http://localhost/admin"})

    assert response.status_code == 400
    assert "private address" in response.json()["error"]
    assert store.count() == 0


# ------------------------------------------------------------------
# /upload-pdf
# ------------------------------------------------------------------


def test_upload_pdf_stores_document(store, api_config, make_client):
    payload = b"%PDF-1.4 fake"
    with _patch_pdf(["Page one text.", "Page two text."]), _patch_embed():
        response = make_client(api_config).post(
            "/upload-pdf",
            files={"file": ("manual.pdf", payload, "application/pdf")},
            data={"title": "Manual"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "PDF processed and stored successfully."
    data = body["data"]
    assert data["id"] == document_id("pdf:Manual")
    assert data["title"] == "Manual"
    assert data["originalFileName"] == "manual.pdf"
    assert data["fileSize"] == len(payload)
    assert data["textLength"] == len("Page one text.\n\nPage two text.")
    assert "url" not in data
    assert store.count({"source_key": "pdf:Manual"}) == 1


def test_upload_pdf_title_defaults_to_filename(store, api_config, make_client):
    with _patch_pdf(["Some text."]), _patch_embed():
        response = make_client(api_config).post(
            "/upload-pdf", files={"file": ("annual-report.pdf", b"%PDF", "application/pdf")}
        )

    assert response.json()["data"]["title"] == "annual-report"
    assert store.count({"source_key": "pdf:annual-report"}) == 1


def test_upload_pdf_rejects_other_types(store, api_config, make_client):
    response = make_client(api_config).post(
        "/upload-pdf", files={"file": ("notes.txt", b"hello", "text/plain")}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Only PDF files are allowed"}


def test_upload_pdf_requires_file(store, api_config, make_client):
    response = make_client(api_config).post("/upload-pdf", data={"title": "Manual"})
    assert response.status_code == 400
    assert response.json() == {"error": "No file provided"}


def test_upload_pdf_rejects_empty_file(store, api_config, make_client):
    response = make_client(api_config).post(
        "/upload-pdf", files={"file": ("empty.pdf", b"", "application/pdf")}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Uploaded file is empty"}


def test_upload_pdf_without_text(store, api_config, make_client):
    with _patch_pdf([None]), _patch_embed() as mock_embed:
        response = make_client(api_config).post(
            "/upload-pdf", files={"file": ("scan.pdf", b"%PDF", "application/pdf")}
        )
    assert response.status_code == 400
    assert "PDF appears to be empty" in response.json()["error"]
    mock_embed.assert_not_called()
