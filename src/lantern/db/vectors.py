"""Per-index sqlite-vec virtual table provisioning."""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass

from lantern.errors import ConfigurationError

METRICS: dict[str, str] = {
    "cosine": "cosine",
    "l2": "L2",
}


@dataclass(frozen=True)
class IndexHandle:
    """A provisioned vector index.

    Attributes:
        name: Logical index name (e.g. "knowledge-base").
        table: Backing vec0 virtual table.
        dimension: Embedding dimension every vector must have.
        metric: Distance metric, ``cosine`` or ``l2``.
    """

    name: str
    table: str
    dimension: int
    metric: str


def index_to_slug(name: str) -> str:
    """Convert an index name to a valid table name suffix.

    Examples:
        "knowledge-base" -> "knowledge_base"
        "Docs v2"        -> "docs_v2"
    """
    return re.sub(r"[^a-z0-9]", "_", name.lower())


def vec_table_name(index_slug: str) -> str:
    """Return the full vec table name for an index slug."""
    return f"vec_{index_slug}"


def ensure_index(
    conn: sqlite3.Connection, name: str, dimension: int, metric: str = "cosine"
) -> IndexHandle:
    """Provision index *name* if it doesn't already exist and return its handle.

    Idempotent: a second call with the same parameters returns the existing
    handle without touching the table.

    Raises:
        ConfigurationError: If *name* is blank, *metric* is unsupported, or the
            index already exists with a different dimension or metric.
        ValueError: If *dimension* < 1.
    """
    if not name.strip():
        raise ConfigurationError("Index name must not be empty.")
    if metric not in METRICS:
        raise ConfigurationError(
            f"Unsupported metric '{metric}'. Use one of: {', '.join(sorted(METRICS))}."
        )
    if dimension < 1:
        raise ValueError(f"dimension must be >= 1, got {dimension}")

    row = conn.execute(
        "SELECT name, vec_table, dimension, metric FROM indexes WHERE name = ?", (name,)
    ).fetchone()
    if row is not None:
        if row["dimension"] != dimension or row["metric"] != metric:
            raise ConfigurationError(
                f"Index '{name}' already exists with dimension={row['dimension']}, "
                f"metric={row['metric']}; requested dimension={dimension}, metric={metric}."
            )
        return IndexHandle(name=name, table=row["vec_table"], dimension=dimension, metric=metric)

    table = vec_table_name(index_to_slug(name))
    clash = conn.execute("SELECT name FROM indexes WHERE vec_table = ?", (table,)).fetchone()
    if clash is not None:
        raise ConfigurationError(
            f"Index name '{name}' collides with existing index '{clash['name']}' "
            f"(both map to table '{table}')."
        )
    conn.execute(
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {table} "
        f"USING vec0(embedding float[{dimension}] distance_metric={METRICS[metric]})"
    )
    conn.execute(
        "INSERT INTO indexes (name, vec_table, dimension, metric) VALUES (?, ?, ?, ?)",
        (name, table, dimension, metric),
    )
    conn.commit()
    return IndexHandle(name=name, table=table, dimension=dimension, metric=metric)
