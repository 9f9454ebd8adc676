"""Tests for the VectorStore adapter."""

from __future__ import annotations

import pytest

from lantern.db.models import record_id
from lantern.db.store import VectorStore
from lantern.db.vectors import ensure_index
from lantern.errors import InvalidInput, InvalidRecord


@pytest.fixture
def seeded(store, make_record):
    store.upsert(
        [
            make_record("a", 0, [1.0, 0.0, 0.0], total=2, title="Alpha"),
            make_record("a", 1, [0.0, 1.0, 0.0], total=2, title="Alpha"),
            make_record("b", 0, [0.9, 0.1, 0.0], title="Beta"),
        ]
    )
    return store


# ---------------------------------------------------------------------------
# upsert
# ---------------------------------------------------------------------------


def test_upsert_returns_count(store, make_record):
    n = store.upsert([make_record("a", 0, [1.0, 0.0, 0.0])])
    assert n == 1
    assert store.count() == 1


def test_upsert_empty_is_noop(store):
    assert store.upsert([]) == 0


def test_upsert_same_id_replaces(store, make_record):
    store.upsert([make_record("a", 0, [1.0, 0.0, 0.0], content="first version")])
    store.upsert([make_record("a", 0, [0.0, 1.0, 0.0], content="second version")])
    assert store.count() == 1
    fetched = store.fetch([record_id("a", 0)])[record_id("a", 0)]
    assert fetched.metadata.content == "second version"
    assert fetched.embedding == pytest.approx([0.0, 1.0, 0.0])


def test_upsert_wrong_dimension_writes_nothing(store, make_record):
    with pytest.raises(InvalidInput, match="dimension"):
        store.upsert(
            [make_record("a", 0, [1.0, 0.0, 0.0]), make_record("a", 1, [1.0, 0.0])]
        )
    assert store.count() == 0


# ---------------------------------------------------------------------------
# query
# ---------------------------------------------------------------------------


def test_query_returns_nearest_first(seeded):
    matches = seeded.query([1.0, 0.0, 0.0], top_k=2)
    assert [m.id for m in matches] == [record_id("a", 0), record_id("b", 0)]
    assert matches[0].score == pytest.approx(1.0, abs=1e-5)
    assert matches[0].score >= matches[1].score
    assert matches[1].metadata.title == "Beta"


def test_query_scores_within_unit_interval(seeded):
    for match in seeded.query([0.0, 0.0, 1.0], top_k=3):
        assert 0.0 <= match.score <= 1.0


def test_query_with_filter(seeded):
    matches = seeded.query([1.0, 0.0, 0.0], top_k=5, filter={"source_key": "a"})
    assert [m.id for m in matches] == [record_id("a", 0), record_id("a", 1)]
    assert all(m.metadata.source_key == "a" for m in matches)


def test_query_with_title_filter(seeded):
    matches = seeded.query([1.0, 0.0, 0.0], top_k=5, filter={"title": "Beta"})
    assert [m.metadata.source_key for m in matches] == ["b"]


def test_query_unknown_filter_key(seeded):
    with pytest.raises(InvalidInput, match="filter"):
        seeded.query([1.0, 0.0, 0.0], filter={"url": "a"})


def test_query_rejects_bad_top_k(seeded):
    with pytest.raises(InvalidInput):
        seeded.query([1.0, 0.0, 0.0], top_k=0)


def test_query_rejects_wrong_dimension(seeded):
    with pytest.raises(InvalidInput):
        seeded.query([1.0, 0.0])


def test_query_empty_store(store):
    assert store.query([1.0, 0.0, 0.0], top_k=5) == []


def test_query_l2_index(tmp_db, make_record):
    l2 = VectorStore(tmp_db, ensure_index(tmp_db, "l2-index", 3, "l2"))
    l2.upsert([make_record("a", 0, [1.0, 0.0, 0.0]), make_record("b", 0, [0.0, 3.0, 0.0])])
    matches = l2.query([1.0, 0.0, 0.0], top_k=2)
    assert matches[0].metadata.source_key == "a"
    assert matches[0].score == pytest.approx(1.0, abs=1e-5)
    assert matches[1].score < matches[0].score


def test_indexes_are_isolated(tmp_db, store, make_record):
    other = VectorStore(tmp_db, ensure_index(tmp_db, "other", 3))
    store.upsert([make_record("a", 0, [1.0, 0.0, 0.0])])
    other.upsert([make_record("a", 0, [1.0, 0.0, 0.0]), make_record("z", 0, [0.0, 1.0, 0.0])])
    assert store.count() == 1
    assert other.count() == 2
    assert [m.metadata.source_key for m in store.query([0.0, 1.0, 0.0], top_k=5)] == ["a"]


# ---------------------------------------------------------------------------
# delete / fetch / list
# ---------------------------------------------------------------------------


def test_delete_many(seeded):
    deleted = seeded.delete_many([record_id("a", 0), record_id("a", 1)])
    assert deleted == 2
    assert seeded.count() == 1
    assert [m.metadata.source_key for m in seeded.query([1.0, 0.0, 0.0], top_k=3)] == ["b"]


def test_delete_many_unknown_ids_ignored(seeded):
    assert seeded.delete_many(["nope"]) == 0
    assert seeded.delete_many([]) == 0
    assert seeded.count() == 3


def test_fetch_returns_embeddings(seeded):
    rid = record_id("b", 0)
    result = seeded.fetch([rid, "missing"])
    assert set(result) == {rid}
    assert result[rid].embedding == pytest.approx([0.9, 0.1, 0.0], rel=1e-5)
    assert result[rid].metadata.chunk_index == 0


def test_list_ids_in_chunk_order(seeded):
    assert seeded.list_ids({"source_key": "a"}) == [record_id("a", 0), record_id("a", 1)]
    assert seeded.list_ids({"source_key": "missing"}) == []


def test_count_with_filter(seeded):
    assert seeded.count({"source_key": "a"}) == 2
    assert seeded.count({"title": "Beta"}) == 1


def test_list_sources(seeded):
    summaries = {s.source_key: s for s in seeded.list_sources()}
    assert summaries["a"].record_count == 2
    assert summaries["a"].title == "Alpha"
    assert summaries["b"].record_count == 1


def test_invalid_stored_metadata_raises(store, make_record):
    store.upsert([make_record("a", 0, [1.0, 0.0, 0.0], content="   ")])
    with pytest.raises(InvalidRecord):
        store.fetch([record_id("a", 0)])


def test_open_provisions_index(tmp_path):
    s = VectorStore.open(tmp_path / "kb.db", "knowledge-base", 3)
    try:
        assert s.handle.table == "vec_knowledge_base"
        assert s.count() == 0
    finally:
        s.close()
