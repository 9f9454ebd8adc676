"""Ingestion endpoints.

Routes:
- POST /scrape      - Fetch a URL and store it (development only)
- POST /upload-pdf  - Upload a PDF and store it
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from lantern.api.deps import Services, get_services
from lantern.api.schemas import IngestData, IngestResponse, ScrapeRequest
from lantern.db.models import document_id
from lantern.errors import AccessDenied, InvalidInput, LanternError
from lantern.ingest.pdf import PDF_CONTENT_TYPE, PdfExtractor
from lantern.ingest.web import get_extractor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sources"])


@router.post("/scrape", response_model=IngestResponse, response_model_exclude_none=True)
def scrape(
    body: ScrapeRequest,
    services: Services = Depends(get_services),
) -> IngestResponse:
    """Extract a web page and replace its records in the knowledge base."""
    if not services.config.is_development:
        raise AccessDenied("Scraping is only available in development environments.")

    url = body.url.strip()
    if not url:
        raise InvalidInput("URL is required")
    extractor = get_extractor(body.extractor)

    try:
        content = extractor.extract(url)
    except LanternError as exc:
        logger.warning("extract: %s failed (%s)", url, exc.public_message)
        raise

    result = services.coordinator.ingest(url, content.title, content.content)
    return IngestResponse(
        data=IngestData.from_result(document_id(url), result, url=url),
        message="Content scraped and stored. Ready for retrieval.",
    )


@router.post("/upload-pdf", response_model=IngestResponse, response_model_exclude_none=True)
def upload_pdf(
    file: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
    services: Services = Depends(get_services),
) -> IngestResponse:
    """Extract an uploaded PDF and replace its records, keyed by title."""
    if file is None:
        raise InvalidInput("No file provided")
    if file.content_type != PDF_CONTENT_TYPE:
        raise InvalidInput("Only PDF files are allowed")

    data = file.file.read()
    if not data:
        raise InvalidInput("Uploaded file is empty")
    filename = file.filename or ""

    try:
        content = PdfExtractor().extract(data, filename=filename, title=(title or "").strip() or None)
    except LanternError as exc:
        logger.warning("extract: %s failed (%s)", filename or "upload", exc.public_message)
        raise

    source_key = f"pdf:{content.title}"
    result = services.coordinator.ingest(
        source_key, content.title, content.content, source_type="pdf"
    )
    return IngestResponse(
        data=IngestData.from_result(
            document_id(source_key),
            result,
            original_file_name=filename,
            file_size=len(data),
            text_length=len(content.content),
        ),
        message="PDF processed and stored successfully.",
    )
