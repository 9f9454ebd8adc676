"""Vector store adapter over SQLite + sqlite-vec.

Implements the store contract the ingestion and retrieval pipelines depend
on: upsert, query, delete_many, fetch (plus list_ids / count / list_sources
for the filter-then-delete protocol and operator tooling).

One ``VectorStore`` wraps one provisioned index. Every call is serialised by
a re-entrant lock so a single connection can be shared by the API thread
pool; ``upsert`` is a single transaction.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from lantern.db.connection import Database
from lantern.db.migrations import initialize
from lantern.db.models import QueryMatch, RecordMetadata, SourceSummary, VectorRecord
from lantern.db.vectors import IndexHandle, ensure_index
from lantern.errors import InvalidInput

_FILTER_COLUMNS: frozenset[str] = frozenset(["source_key", "title"])

# Keep IN (...) lists under SQLite's bound-parameter limit.
_ID_BATCH = 500

_RECORD_COLUMNS = "r.rowid, r.id, r.source_key, r.title, r.content, r.chunk_index, r.total_chunks, r.timestamp"


class VectorStore:
    """Data access layer for one vector index.

    The connection is owned by the store once handed in; call ``close()``
    when done.
    """

    def __init__(self, conn: sqlite3.Connection, handle: IndexHandle) -> None:
        """Wrap an open connection and a provisioned index.

        Args:
            conn: Connection with sqlite-vec loaded and migrations applied.
            handle: Result of ``ensure_index()`` on the same connection.
        """
        self._conn = conn
        self.handle = handle
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        db_path: Path | str,
        index_name: str,
        dimension: int,
        metric: str = "cosine",
    ) -> VectorStore:
        """Open (or create) *db_path*, run migrations and provision the index."""
        conn = Database(db_path).connect()
        initialize(conn)
        handle = ensure_index(conn, index_name, dimension, metric)
        return cls(conn, handle)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, records: Sequence[VectorRecord]) -> int:
        """Insert or replace *records* by id in one transaction. Returns the count."""
        if not records:
            return 0
        for record in records:
            self._check_dimension(record.embedding, record.id)

        table = self.handle.table
        with self._lock, self._conn:
            for record in records:
                m = record.metadata
                existing = self._conn.execute(
                    "SELECT rowid FROM records WHERE index_name = ? AND id = ?",
                    (self.handle.name, record.id),
                ).fetchone()
                if existing is not None:
                    rowid = existing[0]
                    self._conn.execute(
                        """
                        UPDATE records
                        SET source_key = ?, title = ?, content = ?,
                            chunk_index = ?, total_chunks = ?, timestamp = ?
                        WHERE rowid = ?
                        """,
                        (m.source_key, m.title, m.content, m.chunk_index,
                         m.total_chunks, m.timestamp, rowid),
                    )
                    self._conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (rowid,))
                else:
                    cur = self._conn.execute(
                        """
                        INSERT INTO records
                            (index_name, id, source_key, title, content,
                             chunk_index, total_chunks, timestamp)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (self.handle.name, record.id, m.source_key, m.title, m.content,
                         m.chunk_index, m.total_chunks, m.timestamp),
                    )
                    rowid = cur.lastrowid
                self._conn.execute(
                    f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                    (rowid, json.dumps(record.embedding)),
                )
        return len(records)

    def delete_many(self, ids: Iterable[str]) -> int:
        """Delete records (and their vectors) by id. Returns the number deleted.

        Unknown ids are ignored, so the call is safe to retry.
        """
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return 0

        table = self.handle.table
        deleted = 0
        with self._lock, self._conn:
            for batch in _batched(id_list, _ID_BATCH):
                placeholders = ",".join("?" * len(batch))
                rowids = [
                    r[0]
                    for r in self._conn.execute(
                        f"SELECT rowid FROM records WHERE index_name = ? AND id IN ({placeholders})",
                        (self.handle.name, *batch),
                    ).fetchall()
                ]
                if not rowids:
                    continue
                rowid_marks = ",".join("?" * len(rowids))
                self._conn.execute(f"DELETE FROM {table} WHERE rowid IN ({rowid_marks})", rowids)
                cur = self._conn.execute(
                    f"DELETE FROM records WHERE rowid IN ({rowid_marks})", rowids
                )
                deleted += cur.rowcount
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(
        self,
        vector: Sequence[float],
        top_k: int = 10,
        filter: Mapping[str, str] | None = None,
    ) -> list[QueryMatch]:
        """Nearest-neighbour search. Returns matches best-first.

        Scores are similarities in [0, 1]: ``1 - cosine distance`` (clamped)
        for cosine indexes, ``1 / (1 + distance)`` for l2. Ties keep the
        store's native order.
        """
        if top_k < 1:
            raise InvalidInput(f"top_k must be >= 1, got {top_k}")
        self._check_dimension(vector, "query")

        payload = json.dumps(list(vector))
        with self._lock:
            if filter:
                hits = self._scan_filtered(payload, top_k, filter)
            else:
                hits = [
                    (r["rowid"], r["distance"])
                    for r in self._conn.execute(
                        f"SELECT rowid, distance FROM {self.handle.table} "
                        "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
                        (payload, top_k),
                    ).fetchall()
                ]
            rows = self._records_by_rowid([rowid for rowid, _ in hits])

        matches: list[QueryMatch] = []
        for rowid, distance in hits:
            row = rows.get(rowid)
            if row is None:
                continue
            matches.append(
                QueryMatch(
                    id=row["id"],
                    score=self._to_score(distance),
                    metadata=_row_to_metadata(row),
                )
            )
        return matches

    def fetch(self, ids: Iterable[str]) -> dict[str, VectorRecord]:
        """Return stored records (with embeddings) by id. Missing ids are absent."""
        id_list = list(dict.fromkeys(ids))
        result: dict[str, VectorRecord] = {}
        with self._lock:
            for batch in _batched(id_list, _ID_BATCH):
                placeholders = ",".join("?" * len(batch))
                rows = self._conn.execute(
                    f"""
                    SELECT {_RECORD_COLUMNS}, vec_to_json(v.embedding) AS embedding
                    FROM records r JOIN {self.handle.table} v ON v.rowid = r.rowid
                    WHERE r.index_name = ? AND r.id IN ({placeholders})
                    """,
                    (self.handle.name, *batch),
                ).fetchall()
                for row in rows:
                    result[row["id"]] = VectorRecord(
                        id=row["id"],
                        embedding=[float(x) for x in json.loads(row["embedding"])],
                        metadata=_row_to_metadata(row),
                    )
        return result

    def list_ids(self, filter: Mapping[str, str]) -> list[str]:
        """Return ids of every record matching *filter*, in chunk order."""
        clause, params = _filter_clause(filter)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT r.id FROM records r WHERE r.index_name = ?{clause} "
                "ORDER BY r.chunk_index, r.rowid",
                (self.handle.name, *params),
            ).fetchall()
        return [r[0] for r in rows]

    def count(self, filter: Mapping[str, str] | None = None) -> int:
        clause, params = _filter_clause(filter or {})
        with self._lock:
            return self._conn.execute(
                f"SELECT COUNT(*) FROM records r WHERE r.index_name = ?{clause}",
                (self.handle.name, *params),
            ).fetchone()[0]

    def list_sources(self) -> list[SourceSummary]:
        """One summary per source key, most recently ingested first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT source_key, MAX(title) AS title, COUNT(*) AS n, MAX(timestamp) AS ts
                FROM records WHERE index_name = ?
                GROUP BY source_key ORDER BY ts DESC, source_key
                """,
                (self.handle.name,),
            ).fetchall()
        return [
            SourceSummary(
                source_key=r["source_key"],
                title=r["title"] or "",
                record_count=r["n"],
                last_ingested=r["ts"] or "",
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _scan_filtered(
        self, payload: str, top_k: int, filter: Mapping[str, str]
    ) -> list[tuple[int, float]]:
        """Exact scan over the filtered subset using the scalar distance function."""
        clause, params = _filter_clause(filter)
        fn = "vec_distance_cosine" if self.handle.metric == "cosine" else "vec_distance_l2"
        rows = self._conn.execute(
            f"""
            SELECT r.rowid AS rowid, {fn}(v.embedding, ?) AS distance
            FROM records r JOIN {self.handle.table} v ON v.rowid = r.rowid
            WHERE r.index_name = ?{clause}
            ORDER BY distance, r.rowid
            LIMIT ?
            """,
            (payload, self.handle.name, *params, top_k),
        ).fetchall()
        return [(r["rowid"], r["distance"]) for r in rows]

    def _records_by_rowid(self, rowids: list[int]) -> dict[int, sqlite3.Row]:
        if not rowids:
            return {}
        placeholders = ",".join("?" * len(rowids))
        rows = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM records r WHERE r.rowid IN ({placeholders})",
            rowids,
        ).fetchall()
        return {r["rowid"]: r for r in rows}

    def _to_score(self, distance: float) -> float:
        if self.handle.metric == "cosine":
            return min(1.0, max(0.0, 1.0 - float(distance)))
        return 1.0 / (1.0 + float(distance))

    def _check_dimension(self, vector: Sequence[float], label: str) -> None:
        if len(vector) != self.handle.dimension:
            raise InvalidInput(
                f"Vector '{label}' has dimension {len(vector)}; "
                f"index '{self.handle.name}' expects {self.handle.dimension}."
            )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _filter_clause(filter: Mapping[str, str]) -> tuple[str, list[Any]]:
    """Translate an equality filter into a SQL fragment on alias ``r``."""
    unknown = set(filter) - _FILTER_COLUMNS
    if unknown:
        raise InvalidInput(
            f"Unsupported filter key(s): {', '.join(sorted(unknown))}. "
            f"Supported: {', '.join(sorted(_FILTER_COLUMNS))}."
        )
    clause = "".join(f" AND r.{key} = ?" for key in sorted(filter))
    return clause, [filter[key] for key in sorted(filter)]


def _row_to_metadata(row: sqlite3.Row) -> RecordMetadata:
    return RecordMetadata.from_mapping({key: row[key] for key in row.keys()})


def _batched(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]
