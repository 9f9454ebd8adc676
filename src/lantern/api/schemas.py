"""Request and response models for the HTTP API.

Responses use camelCase keys on the wire; fields are snake_case in Python.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lantern.db.models import Chunk
from lantern.ingest.coordinator import IngestResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class MessagePart(BaseModel):
    type: str = "text"
    text: str | None = None


class ChatMessage(BaseModel):
    """One conversation message. Text is either ``content`` or the text ``parts``."""

    role: str
    content: str | None = None
    parts: list[MessagePart] | None = None

    def text(self) -> str:
        if self.content is not None:
            return self.content
        if self.parts:
            return "".join(p.text or "" for p in self.parts if p.type == "text")
        return ""


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)

    def last_user_text(self) -> str:
        """Text of the most recent user message, or "" when there is none."""
        for message in reversed(self.messages):
            if message.role == "user":
                return message.text().strip()
        return ""


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class ScrapeRequest(BaseModel):
    url: str = ""
    extractor: str = "generic"


class ChunkSummary(_CamelModel):
    index: int
    length: int
    preview: str
    has_next: bool
    has_previous: bool

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> ChunkSummary:
        return cls(
            index=chunk.index,
            length=len(chunk.text),
            preview=chunk.preview(),
            has_next=chunk.has_next,
            has_previous=chunk.has_previous,
        )


class IngestData(_CamelModel):
    id: str
    title: str
    chunks_processed: int
    deleted_vectors: int
    chunks: list[ChunkSummary]
    url: str | None = None
    original_file_name: str | None = None
    file_size: int | None = None
    text_length: int | None = None

    @classmethod
    def from_result(cls, doc_id: str, result: IngestResult, **extra) -> IngestData:
        return cls(
            id=doc_id,
            title=result.title,
            chunks_processed=result.chunks_processed,
            deleted_vectors=result.deleted_vectors,
            chunks=[ChunkSummary.from_chunk(c) for c in result.chunks],
            **extra,
        )


class IngestResponse(_CamelModel):
    success: bool = True
    data: IngestData
    message: str


class HealthResponse(BaseModel):
    status: str
    records: int
