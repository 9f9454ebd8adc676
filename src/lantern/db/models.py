"""Domain models for the Lantern knowledge base."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from lantern.errors import InvalidRecord

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class Chunk:
    """One segment of a source document.

    ``has_next`` and ``has_previous`` are derived from the position so they
    can never disagree with ``index`` / ``total_chunks``.
    """

    text: str
    index: int
    total_chunks: int

    @property
    def has_next(self) -> bool:
        return self.index < self.total_chunks - 1

    @property
    def has_previous(self) -> bool:
        return self.index > 0

    def preview(self, length: int = 150) -> str:
        if len(self.text) <= length:
            return self.text
        return self.text[:length] + "..."


@dataclass(frozen=True)
class RecordMetadata:
    """Fixed metadata schema stored alongside every vector."""

    source_key: str
    title: str
    content: str
    chunk_index: int
    total_chunks: int
    timestamp: str

    _FIELDS = ("source_key", "title", "content", "chunk_index", "total_chunks", "timestamp")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RecordMetadata:
        """Validate and narrow an arbitrary key bag read from the store.

        Unknown keys are dropped. ``title``, ``total_chunks`` and
        ``timestamp`` fall back to defaults when missing.

        Raises:
            InvalidRecord: If ``source_key`` or ``content`` is missing or blank,
                or an integer field cannot be coerced.
        """
        source_key = raw.get("source_key")
        content = raw.get("content")
        if not isinstance(source_key, str) or not source_key.strip():
            raise InvalidRecord("record metadata has no source_key")
        if not isinstance(content, str) or not content.strip():
            raise InvalidRecord(f"record metadata for '{source_key}' has no content")

        try:
            chunk_index = int(raw.get("chunk_index", 0))
            total_raw = raw.get("total_chunks")
            total_chunks = chunk_index + 1 if total_raw is None else int(total_raw)
        except (TypeError, ValueError) as exc:
            raise InvalidRecord(
                f"record metadata for '{source_key}' has a non-integer chunk position"
            ) from exc
        if chunk_index < 0 or total_chunks <= chunk_index:
            raise InvalidRecord(
                f"record metadata for '{source_key}' has chunk_index {chunk_index} "
                f"outside total_chunks {total_chunks}"
            )

        title = raw.get("title")
        timestamp = raw.get("timestamp")
        return cls(
            source_key=source_key,
            title=title if isinstance(title, str) else "",
            content=content,
            chunk_index=chunk_index,
            total_chunks=total_chunks,
            timestamp=timestamp if isinstance(timestamp, str) else "",
        )

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self._FIELDS}

    def to_chunk(self) -> Chunk:
        return Chunk(text=self.content, index=self.chunk_index, total_chunks=self.total_chunks)


@dataclass(frozen=True)
class VectorRecord:
    id: str
    embedding: list[float]
    metadata: RecordMetadata


@dataclass(frozen=True)
class QueryMatch:
    """One nearest-neighbour hit as returned by the vector store."""

    id: str
    score: float
    metadata: RecordMetadata


@dataclass(frozen=True)
class RelevanceMatch:
    """A retrieved chunk with its similarity score. Never persisted."""

    chunk: Chunk
    score: float
    source_key: str
    title: str
    record_id: str = ""

    @classmethod
    def from_query_match(cls, match: QueryMatch) -> RelevanceMatch:
        return cls(
            chunk=match.metadata.to_chunk(),
            score=match.score,
            source_key=match.metadata.source_key,
            title=match.metadata.title,
            record_id=match.id,
        )


@dataclass
class SourceSummary:
    source_key: str
    title: str
    record_count: int
    last_ingested: str = ""


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def record_id(source_key: str, chunk_index: int) -> str:
    """Deterministic record id for chunk *chunk_index* of *source_key*.

    Re-ingesting the same source yields the same ids. The hash suffix keeps
    keys that sanitise identically ("a b" / "a_b") apart.

    Example:
        record_id("https://example.com/a", 2)
        -> "https___example_com_a_<8 hex>_chunk_2"
    """
    return f"{document_id(source_key)}_chunk_{chunk_index}"


def document_id(source_key: str) -> str:
    """Stable, id-safe form of *source_key* shared by all of its records."""
    digest = hashlib.sha1(source_key.encode("utf-8")).hexdigest()[:8]
    safe = _UNSAFE_ID_CHARS.sub("_", source_key)[:64]
    return f"{safe}_{digest}"


def utc_timestamp() -> str:
    """Current UTC time in ISO 8601."""
    return datetime.now(timezone.utc).isoformat()
