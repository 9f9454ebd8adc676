"""Tests for the context assembler."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from lantern.db.models import Chunk, RelevanceMatch
from lantern.errors import InvalidInput
from lantern.rag.assembler import (
    NO_RELEVANT_CONTEXT,
    AssembledContext,
    assemble,
    build_system_prompt,
    retrieve,
    select_context,
)
from lantern.rag.retriever import RetrieverConfig


def _match(score: float, text: str = "", title: str = "Doc", key: str = "doc") -> RelevanceMatch:
    return RelevanceMatch(
        chunk=Chunk(text=text or f"chunk scored {score}", index=0, total_chunks=1),
        score=score,
        source_key=key,
        title=title,
    )


def _patch_search(matches):
    return patch("lantern.rag.assembler.search", return_value=matches)


# ------------------------------------------------------------------
# select_context
# ------------------------------------------------------------------


def test_select_keeps_matches_above_threshold_in_order():
    matches = [_match(0.95), _match(0.8), _match(0.7), _match(0.4)]
    selected, fallback = select_context(matches, relevance_threshold=0.7)
    assert [m.score for m in selected] == [0.95, 0.8]
    assert fallback is False


def test_select_threshold_is_strict():
    selected, fallback = select_context([_match(0.7), _match(0.6)], relevance_threshold=0.7)
    assert [m.score for m in selected] == [0.7]
    assert fallback is True


def test_select_caps_at_max_context_chunks():
    matches = [_match(0.99 - i * 0.01) for i in range(6)]
    selected, _ = select_context(matches, max_context_chunks=5)
    assert selected == matches[:5]


def test_select_falls_back_to_best_match():
    matches = [_match(0.5), _match(0.3), _match(0.1)]
    selected, fallback = select_context(matches)
    assert selected == [matches[0]]
    assert fallback is True


def test_select_empty():
    assert select_context([]) == ([], False)


@pytest.mark.parametrize("threshold,max_chunks", [(-0.1, 5), (1.5, 5), (0.7, 0)])
def test_select_invalid_limits(threshold, max_chunks):
    with pytest.raises(InvalidInput):
        select_context([_match(0.9)], threshold, max_chunks)


# ------------------------------------------------------------------
# assemble / retrieve
# ------------------------------------------------------------------


def test_assemble_low_scores_uses_single_fallback(store):
    with _patch_search([_match(0.5, "best"), _match(0.4, "worse"), _match(0.2, "worst")]):
        context = assemble("q", store, RetrieverConfig())
    assert context.fragments == ["best"]
    assert context.fallback_used is True


def test_assemble_six_relevant_matches_gives_five_in_order(store):
    matches = [_match(0.9 - i * 0.02, f"text {i}") for i in range(6)]
    with _patch_search(matches):
        context = assemble("q", store, RetrieverConfig())
    assert context.fragments == [f"text {i}" for i in range(5)]
    assert context.fallback_used is False


def test_assemble_empty_store_returns_marker(store):
    with patch("lantern.rag.retriever.embed", return_value=[1.0, 0.0, 0.0]):
        context = assemble("anything?", store, RetrieverConfig())
    assert context.fragments == [NO_RELEVANT_CONTEXT]
    assert context.matches == []


def test_assemble_never_empty(store, make_record):
    store.upsert([make_record("a", 0, [0.0, 0.0, 1.0])])
    with patch("lantern.rag.retriever.embed", return_value=[1.0, 0.0, 0.0]):
        fragments = retrieve("q", store, RetrieverConfig())
    assert fragments == ["a chunk 0"]


def test_assemble_checks_limits_before_retrieving(store):
    with _patch_search([]) as mock_search:
        with pytest.raises(InvalidInput):
            assemble("q", store, RetrieverConfig(), max_context_chunks=0)
    mock_search.assert_not_called()


def test_retrieve_top_k_override(store):
    with _patch_search([_match(0.9)]) as mock_search:
        retrieve("q", store, RetrieverConfig(top_k=10), top_k=3)
    assert mock_search.call_args[0][2].top_k == 3


# ------------------------------------------------------------------
# build_system_prompt
# ------------------------------------------------------------------


def test_system_prompt_labels_fragments_by_title():
    context = AssembledContext(
        fragments=["one", "two"],
        matches=[_match(0.9, "one", title="Guide"), _match(0.8, "two", title="", key="k2")],
    )
    prompt = build_system_prompt(context)
    assert "[Guide]\none" in prompt
    assert "[k2]\ntwo" in prompt
    assert "\n\n---\n\n" in prompt


def test_system_prompt_with_marker():
    prompt = build_system_prompt(AssembledContext(fragments=[NO_RELEVANT_CONTEXT]))
    assert prompt.endswith(NO_RELEVANT_CONTEXT)
