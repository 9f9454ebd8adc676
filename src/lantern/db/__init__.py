"""Lantern database layer."""

from lantern.db.connection import Database
from lantern.db.migrations import MIGRATIONS, initialize, run_migrations
from lantern.db.store import VectorStore
from lantern.db.vectors import IndexHandle, ensure_index, index_to_slug, vec_table_name

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "IndexHandle",
    "VectorStore",
    "ensure_index",
    "index_to_slug",
    "vec_table_name",
]
