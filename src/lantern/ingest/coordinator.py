"""Ingestion coordinator: chunk → embed → replace records for one source.

For each call to ``ingest()``:
1. Validate the source key and text (no side effects on failure).
2. Chunk the text with the chunking profile for the source type.
3. Embed every chunk via ``llm_client.embed()``, ``embedding.concurrency``
   calls at a time. Any failure aborts before the store is touched, so the
   previous version of the source stays intact.
4. Under a per-source-key lock: delete every record of the source, then
   upsert the new records in one transaction.

Re-ingesting a source leaves exactly the chunks of the latest run.
"""

from __future__ import annotations

import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from lantern.config import LanternConfig
from lantern.db.models import Chunk, RecordMetadata, VectorRecord, record_id, utc_timestamp
from lantern.db.store import VectorStore
from lantern.errors import EmbeddingFailure, InvalidInput, LanternError
from lantern.ingest.chunker import TextChunker
from lantern.rag.llm_client import embed

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of one ingestion.

    Attributes:
        source_key: URL or document key the records are scoped to.
        title: Title stored on every record.
        chunks_processed: Number of records written.
        deleted_vectors: Number of stale records removed first.
        chunks: The chunks written, in order.
    """

    source_key: str
    title: str
    chunks_processed: int
    deleted_vectors: int
    chunks: list[Chunk] = field(default_factory=list)


class IngestionCoordinator:
    """Write sources into the vector store, replacing any previous version.

    Args:
        store:  Open VectorStore for the configured index.
        config: Loaded configuration (embedding model, chunking profiles).
    """

    def __init__(self, store: VectorStore, config: LanternConfig | None = None) -> None:
        self._store = store
        self._config = config or LanternConfig()
        # Entries live only while a caller holds the lock.
        self._key_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._key_locks_guard = threading.Lock()

    def ingest(
        self,
        source_key: str,
        title: str,
        raw_text: str,
        source_type: str = "default",
    ) -> IngestResult:
        """Chunk, embed and store *raw_text* under *source_key*.

        Raises:
            InvalidInput: Blank source key or text without content.
            EmbeddingFailure: Provider failure or wrong vector dimension.
        """
        if not source_key or not source_key.strip():
            raise InvalidInput("source key is required")
        if not raw_text or not raw_text.strip():
            raise InvalidInput(f"no content to ingest for '{source_key}'")
        title = (title or "").strip() or "Untitled"

        profile = self._config.chunking.for_type(source_type)
        chunker = TextChunker(
            max_chunk_size=profile.max_chunk_size,
            overlap_size=profile.overlap,
            min_chunk_length=profile.min_chunk_length,
        )
        chunks = chunker.chunk(raw_text)
        if not chunks:
            raise InvalidInput(f"no content to ingest for '{source_key}'")
        logger.info("chunk: %s → %d chunk(s)", source_key, len(chunks))

        try:
            embeddings = self._embed_all(chunks)
        except LanternError:
            logger.error("embed: aborted ingestion of %s; store unchanged", source_key)
            raise

        timestamp = utc_timestamp()
        records = [
            VectorRecord(
                id=record_id(source_key, chunk.index),
                embedding=vector,
                metadata=RecordMetadata(
                    source_key=source_key,
                    title=title,
                    content=chunk.text,
                    chunk_index=chunk.index,
                    total_chunks=chunk.total_chunks,
                    timestamp=timestamp,
                ),
            )
            for chunk, vector in zip(chunks, embeddings)
        ]

        with self._lock_for(source_key):
            deleted = self._delete_source(source_key)
            try:
                self._store.upsert(records)
            except Exception:
                logger.error("upsert: failed for %s after deleting %d record(s)", source_key, deleted)
                raise
        logger.info(
            "upsert: %s stored %d record(s), replaced %d", source_key, len(records), deleted
        )

        return IngestResult(
            source_key=source_key,
            title=title,
            chunks_processed=len(records),
            deleted_vectors=deleted,
            chunks=chunks,
        )

    def remove(self, source_key: str) -> int:
        """Delete every record of *source_key*. Returns the number removed."""
        if not source_key or not source_key.strip():
            raise InvalidInput("source key is required")
        with self._lock_for(source_key):
            deleted = self._delete_source(source_key)
        logger.info("delete: removed %d record(s) for %s", deleted, source_key)
        return deleted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _embed_all(self, chunks: list[Chunk]) -> list[list[float]]:
        """Embed chunk texts concurrently; results keep chunk order."""
        cfg = self._config.embedding
        dimension = self._store.handle.dimension

        def _one(chunk: Chunk) -> list[float]:
            vector = embed(
                cfg.model, chunk.text, timeout=cfg.timeout, num_retries=cfg.num_retries
            )
            if len(vector) != dimension:
                raise EmbeddingFailure(
                    f"model '{cfg.model}' returned dimension {len(vector)}, "
                    f"index expects {dimension}"
                )
            return vector

        workers = max(1, min(cfg.concurrency, len(chunks)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lantern-embed") as pool:
            return list(pool.map(_one, chunks))

    def _delete_source(self, source_key: str) -> int:
        ids = self._store.list_ids({"source_key": source_key})
        if not ids:
            return 0
        return self._store.delete_many(ids)

    def _lock_for(self, source_key: str) -> threading.Lock:
        with self._key_locks_guard:
            lock = self._key_locks.get(source_key)
            if lock is None:
                lock = self._key_locks[source_key] = threading.Lock()
            return lock
