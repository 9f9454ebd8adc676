"""Lantern ingest pipeline — extractors, chunker, ingestion coordinator."""

from lantern.ingest.base import BaseChunker, ExtractedContent
from lantern.ingest.chunker import TextChunker, chunk_text
from lantern.ingest.coordinator import IngestionCoordinator, IngestResult
from lantern.ingest.pdf import PdfExtractor
from lantern.ingest.web import CatalogExtractor, WebExtractor, get_extractor

__all__ = [
    "BaseChunker",
    "CatalogExtractor",
    "ExtractedContent",
    "IngestResult",
    "IngestionCoordinator",
    "PdfExtractor",
    "TextChunker",
    "WebExtractor",
    "chunk_text",
    "get_extractor",
]
