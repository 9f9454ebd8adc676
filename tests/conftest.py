"""Shared pytest fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lantern.api.app import create_app
from lantern.config import LanternConfig
from lantern.db.connection import Database
from lantern.db.migrations import initialize
from lantern.db.models import RecordMetadata, VectorRecord, record_id
from lantern.db.store import VectorStore
from lantern.db.vectors import ensure_index
from lantern.ratelimit import init_rate_limit_store


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".lantern.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_db):
    """VectorStore over a 3-dimension cosine index."""
    handle = ensure_index(tmp_db, "test-index", 3, "cosine")
    return VectorStore(tmp_db, handle)


def _make_record(
    source_key: str,
    index: int,
    embedding: list[float],
    total: int = 1,
    title: str = "Doc",
    content: str | None = None,
) -> VectorRecord:
    """Build a VectorRecord for chunk *index* of *source_key*."""
    return VectorRecord(
        id=record_id(source_key, index),
        embedding=embedding,
        metadata=RecordMetadata(
            source_key=source_key,
            title=title,
            content=content or f"{source_key} chunk {index}",
            chunk_index=index,
            total_chunks=total,
            timestamp="2024-01-01T00:00:00+00:00",
        ),
    )


@pytest.fixture
def make_record():
    """Factory for VectorRecords: make_record(source_key, index, embedding, ...)."""
    return _make_record



@pytest.fixture
def api_config(tmp_path):
    """Development config pointing at the tmp_db index (3 dims, cosine)."""
    cfg = LanternConfig()
    cfg.server.environment = "development"
    cfg.store.path = str(tmp_path / ".lantern.db")
    cfg.store.index_name = "test-index"
    cfg.store.dimension = 3
    return cfg


@pytest.fixture
def make_client(store):
    """Factory for a TestClient over an app wired to the shared test store."""

    def _make(config, clock=None):
        app = create_app(config, store=store, rate_store=init_rate_limit_store(), clock=clock)
        return TestClient(app)

    return _make


@pytest.fixture
def cli_project(tmp_path, monkeypatch):
    """Run CLI commands in tmp_path with a 3-dimension index and an API key set.

    The database lives at ``tmp_path / ".lantern.db"``.
    """
    for name in ("LANTERN_ENV", "LANTERN_DB_PATH", "LANTERN_INDEX_NAME",
                 "LANTERN_EMBEDDING_MODEL", "LANTERN_GENERATION_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("lantern.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    (tmp_path / "lantern.yaml").write_text(
        "store:\n  index_name: test-index\n  dimension: 3\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cli_store(cli_project):
    """VectorStore on the CLI project's database; closed after the test."""
    store = VectorStore.open(cli_project / ".lantern.db", "test-index", 3)
    yield store
    store.close()
