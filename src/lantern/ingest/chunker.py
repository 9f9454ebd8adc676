"""Boundary-aware text chunker with overlap.

Strategy (greedy window over normalised text):
- If the rest of the text fits in ``max_chunk_size`` it becomes the last chunk.
- Otherwise cut at the last boundary inside the window, preferring a
  paragraph break, then a sentence end, then any whitespace. Paragraph and
  sentence cuts are only taken in the second half of the window so chunks
  stay reasonably full.
- No boundary at all → hard cut at ``max_chunk_size``.
- The next window starts ``overlap_size`` characters before the cut, moved
  forward to the next word start, so neighbours share up to
  ``overlap_size`` characters.
"""

from __future__ import annotations

import re

from lantern.db.models import Chunk
from lantern.ingest.base import BaseChunker

# Sentence end: terminal punctuation, optional closing quote/bracket, then whitespace.
_SENTENCE_END_RE = re.compile(r"[.!?][\"'\)\]]?(?=\s)")
_PARAGRAPH_BREAK = "\n\n"


class TextChunker(BaseChunker):
    """Split plain text on natural boundaries with a character overlap.

    Default: 500 characters / 50 overlap / 50 minimum length.
    """

    def _split(self, text: str) -> list[str]:
        segments: list[str] = []
        length = len(text)
        start = 0
        while start < length:
            if length - start <= self.max_chunk_size:
                segments.append(text[start:].strip())
                break
            cut = self._find_cut(text, start)
            segments.append(text[start:cut].strip())
            start = self._next_start(text, start, cut)
        return segments

    def _find_cut(self, text: str, start: int) -> int:
        """Return the absolute end offset of the chunk starting at *start*."""
        size = self.max_chunk_size
        window_end = start + size
        # A cut must leave room past the overlap so the next window advances.
        min_soft = start + max(size // 2, self.overlap_size + 1)

        para = text.rfind(_PARAGRAPH_BREAK, start, window_end + len(_PARAGRAPH_BREAK))
        if para != -1 and min_soft <= para <= window_end:
            return para

        sentence_cut = -1
        for match in _SENTENCE_END_RE.finditer(text, start, min(window_end + 1, len(text))):
            if match.end() > window_end:
                break
            if match.end() >= min_soft:
                sentence_cut = match.end()
        if sentence_cut != -1:
            return sentence_cut

        for pos in range(window_end, start + self.overlap_size, -1):
            if text[pos].isspace():
                return pos

        return window_end

    def _next_start(self, text: str, start: int, cut: int) -> int:
        """Start of the next window: overlap back from *cut*, aligned to a word."""
        nxt = cut - self.overlap_size
        if self.overlap_size and not text[nxt - 1].isspace() and not text[nxt].isspace():
            for pos in range(nxt, cut):
                if text[pos].isspace():
                    nxt = pos + 1
                    break
            else:
                nxt = cut
        while nxt < len(text) and text[nxt].isspace():
            nxt += 1
        return max(nxt, start + 1)


def chunk_text(
    text: str,
    max_chunk_size: int = 500,
    overlap_size: int = 50,
    min_chunk_length: int = 50,
) -> list[Chunk]:
    """Chunk *text* with a one-off ``TextChunker``.

    Raises:
        InvalidInput: If ``max_chunk_size <= 0`` or ``overlap_size`` is not in
            ``[0, max_chunk_size)``.
    """
    chunker = TextChunker(
        max_chunk_size=max_chunk_size,
        overlap_size=overlap_size,
        min_chunk_length=min_chunk_length,
    )
    return chunker.chunk(text)
