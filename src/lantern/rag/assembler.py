"""Context assembler: relevance filtering, fallback, size bound.

Pipeline:
  1. Retrieve the ``top_k`` nearest chunks for the question.
  2. Keep chunks scoring strictly above ``relevance_threshold``, in the
     store's order, capped at ``max_context_chunks``.
  3. No chunk clears the threshold → fall back to the single best match so
     the assistant always has something to ground on.
  4. Store returned nothing at all → the ``NO_RELEVANT_CONTEXT`` marker.

The result is never empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lantern.db.models import RelevanceMatch
from lantern.db.store import VectorStore
from lantern.errors import InvalidInput
from lantern.rag.retriever import RetrieverConfig, search

logger = logging.getLogger(__name__)

NO_RELEVANT_CONTEXT = "No relevant context was found in the knowledge base."

_SYSTEM_PROMPT = """\
You are a helpful assistant that answers questions using the knowledge base \
excerpts below. Base your answer on the excerpts; if they do not contain the \
answer, say so plainly instead of guessing. Keep answers concise.

Knowledge base excerpts:
{context}"""


@dataclass
class AssembledContext:
    """Context fragments handed to the completion provider.

    Attributes:
        fragments: Chunk texts, best-first. Never empty.
        matches: The matches the fragments came from (empty for the marker).
        fallback_used: True when no match cleared the threshold and the best
            match was used instead.
    """

    fragments: list[str] = field(default_factory=list)
    matches: list[RelevanceMatch] = field(default_factory=list)
    fallback_used: bool = False


def select_context(
    matches: list[RelevanceMatch],
    relevance_threshold: float = 0.7,
    max_context_chunks: int = 5,
) -> tuple[list[RelevanceMatch], bool]:
    """Pick the matches that become context. Returns (selected, fallback_used).

    *matches* must already be best-first. Order is preserved.
    """
    _check_limits(relevance_threshold, max_context_chunks)
    if not matches:
        return [], False

    high_quality = [m for m in matches if m.score > relevance_threshold]
    if high_quality:
        return high_quality[:max_context_chunks], False
    return [matches[0]], True


def assemble(
    question: str,
    store: VectorStore,
    config: RetrieverConfig,
    relevance_threshold: float = 0.7,
    max_context_chunks: int = 5,
) -> AssembledContext:
    """Retrieve and select context for *question*.

    Raises:
        InvalidInput: Blank question, ``top_k < 1``, ``max_context_chunks < 1``
            or a threshold outside [0, 1]. Checked before any provider call.
        EmbeddingFailure: If the question cannot be embedded.
    """
    _check_limits(relevance_threshold, max_context_chunks)
    matches = search(question, store, config)
    if not matches:
        logger.info("retrieve: store returned no matches; using empty-context marker")
        return AssembledContext(fragments=[NO_RELEVANT_CONTEXT])

    selected, fallback = select_context(matches, relevance_threshold, max_context_chunks)
    if fallback:
        logger.info(
            "retrieve: no match above %.2f (best %.3f); using best match",
            relevance_threshold,
            matches[0].score,
        )
    return AssembledContext(
        fragments=[m.chunk.text for m in selected],
        matches=selected,
        fallback_used=fallback,
    )


def retrieve(
    question: str,
    store: VectorStore,
    config: RetrieverConfig,
    top_k: int | None = None,
    relevance_threshold: float = 0.7,
    max_context_chunks: int = 5,
) -> list[str]:
    """Return the context fragments for *question* (never empty)."""
    if top_k is not None:
        config = RetrieverConfig(
            embedding_model=config.embedding_model,
            top_k=top_k,
            timeout=config.timeout,
            num_retries=config.num_retries,
        )
    return assemble(question, store, config, relevance_threshold, max_context_chunks).fragments


def build_system_prompt(context: AssembledContext) -> str:
    """Embed the context fragments, labelled by source title, in the system prompt."""
    if not context.matches:
        body = "\n\n".join(context.fragments)
    else:
        body = "\n\n---\n\n".join(
            f"[{m.title or m.source_key}]\n{m.chunk.text}" for m in context.matches
        )
    return _SYSTEM_PROMPT.format(context=body)


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def _check_limits(relevance_threshold: float, max_context_chunks: int) -> None:
    if not 0.0 <= relevance_threshold <= 1.0:
        raise InvalidInput(
            f"relevance_threshold must be within [0, 1], got {relevance_threshold}"
        )
    if max_context_chunks < 1:
        raise InvalidInput(f"max_context_chunks must be >= 1, got {max_context_chunks}")
