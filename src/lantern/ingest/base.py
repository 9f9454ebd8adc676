"""Base chunker interface: parameter validation, normalisation, Chunk assembly."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from lantern.db.models import Chunk
from lantern.errors import InvalidInput

_HSPACE_RE = re.compile(r"[ \t\f\v]+")
_TRAILING_SPACE_RE = re.compile(r" +\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class ExtractedContent:
    """Plain text pulled out of a source, as handed to the ingestion coordinator."""

    title: str
    content: str


def normalize_whitespace(text: str) -> str:
    """Collapse horizontal whitespace and bound blank lines to one.

    Line endings become ``\\n``; at most one blank line separates paragraphs.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HSPACE_RE.sub(" ", text)
    text = _TRAILING_SPACE_RE.sub("\n", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Subclasses implement ``_split()`` over already-normalised text; ``chunk()``
    handles normalisation, short-chunk filtering and indexing.

    Sizes are measured in characters.
    """

    def __init__(
        self, max_chunk_size: int = 500, overlap_size: int = 50, min_chunk_length: int = 50
    ) -> None:
        if max_chunk_size <= 0:
            raise InvalidInput(f"max_chunk_size must be > 0, got {max_chunk_size}")
        if overlap_size < 0:
            raise InvalidInput(f"overlap_size must be >= 0, got {overlap_size}")
        if overlap_size >= max_chunk_size:
            raise InvalidInput(
                f"overlap_size ({overlap_size}) must be smaller than "
                f"max_chunk_size ({max_chunk_size})"
            )
        self.max_chunk_size = max_chunk_size
        self.overlap_size = overlap_size
        self.min_chunk_length = max(0, min_chunk_length)

    def chunk(self, text: str) -> list[Chunk]:
        """Split *text* into an ordered list of Chunks.

        Returns an empty list for empty or whitespace-only input.
        """
        normalized = normalize_whitespace(text)
        if not normalized:
            return []
        segments = [s for s in self._split(normalized) if s]
        return self._make_chunks(self._drop_short(segments))

    @abstractmethod
    def _split(self, text: str) -> list[str]:
        """Return stripped text segments of at most ``max_chunk_size`` characters."""

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token."""
        return max(1, len(text) // 4)

    def _drop_short(self, segments: list[str]) -> list[str]:
        """Drop segments under ``min_chunk_length`` unless nothing would remain."""
        if len(segments) <= 1:
            return segments
        kept = [s for s in segments if len(s) >= self.min_chunk_length]
        return kept or segments

    @staticmethod
    def _make_chunks(texts: list[str]) -> list[Chunk]:
        """Convert text segments into sequentially indexed Chunks."""
        total = len(texts)
        return [Chunk(text=t, index=i, total_chunks=total) for i, t in enumerate(texts)]
