"""Dense retriever: embed the question, query the vector store.

The question is embedded with the same ``embedding.model`` used at ingest
time, then the store returns the ``top_k`` nearest records best-first.
Scores are cosine similarities in [0, 1] as produced by the store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from lantern.db.models import RelevanceMatch
from lantern.db.store import VectorStore
from lantern.errors import InvalidInput
from lantern.rag.llm_client import embed

logger = logging.getLogger(__name__)


@dataclass
class RetrieverConfig:
    """Configuration for the retriever.

    Attributes:
        embedding_model: LiteLLM embedding model string (provider/model format).
        top_k: Number of nearest records to request from the store.
        timeout: Embedding call timeout in seconds.
        num_retries: LiteLLM retries on transient embedding errors.
    """

    embedding_model: str = "openai/text-embedding-3-small"
    top_k: int = 10
    timeout: float = 30.0
    num_retries: int = 2


def search(
    question: str,
    store: VectorStore,
    config: RetrieverConfig,
    filter: Mapping[str, str] | None = None,
) -> list[RelevanceMatch]:
    """Return the ``top_k`` nearest records for *question*, best-first.

    Ties keep the store's native order.

    Raises:
        InvalidInput: If *question* is blank or ``top_k < 1``.
        EmbeddingFailure: If the question cannot be embedded.
    """
    if not question or not question.strip():
        raise InvalidInput("question is required")
    if config.top_k < 1:
        raise InvalidInput(f"top_k must be >= 1, got {config.top_k}")

    vector = embed(
        config.embedding_model,
        question,
        timeout=config.timeout,
        num_retries=config.num_retries,
    )
    matches = store.query(vector, top_k=config.top_k, filter=filter)
    logger.debug("retrieve: %d match(es) for question (%d chars)", len(matches), len(question))
    return [RelevanceMatch.from_query_match(m) for m in matches]
