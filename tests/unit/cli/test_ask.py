"""Tests for lantern ask."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from lantern.cli.main import app
from lantern.errors import EmbeddingFailure
from lantern.rag.assembler import NO_RELEVANT_CONTEXT

runner = CliRunner()


@pytest.fixture
def seeded(cli_store, make_record):
    cli_store.upsert(
        [
            make_record("guide", 0, [1.0, 0.0, 0.0], title="Guide", content="Lit at dusk."),
            make_record("faq", 0, [0.0, 1.0, 0.0], title="FAQ", content="Unrelated."),
        ]
    )
    return cli_store


def _patch_embed(**kwargs):
    if not kwargs:
        kwargs = {"return_value": [1.0, 0.0, 0.0]}
    return patch("lantern.rag.retriever.embed", **kwargs)


def test_ask_streams_answer(seeded) -> None:
    with _patch_embed(), patch(
        "lantern.cli.ask.stream_complete", return_value=iter(["At ", "dusk."])
    ) as mock_stream:
        result = runner.invoke(app, ["ask", "When are lanterns lit?"])

    assert result.exit_code == 0, result.output
    assert "At dusk." in result.output
    messages = mock_stream.call_args[0][1]
    assert "Lit at dusk." in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "When are lanterns lit?"}


def test_ask_context_only_skips_completion(seeded) -> None:
    with _patch_embed(), patch("lantern.cli.ask.count_tokens", return_value=4), patch(
        "lantern.cli.ask.stream_complete"
    ) as mock_stream:
        result = runner.invoke(app, ["ask", "When?", "--context-only"])

    assert result.exit_code == 0, result.output
    assert "Guide" in result.output
    assert "FAQ" not in result.output
    assert "1 fragment(s)" in result.output
    mock_stream.assert_not_called()


def test_ask_context_only_empty_store(cli_store) -> None:
    with _patch_embed():
        result = runner.invoke(app, ["ask", "Anything?", "--context-only"])
    assert result.exit_code == 0
    assert NO_RELEVANT_CONTEXT in result.output


def test_ask_blank_question_exits_1(seeded) -> None:
    with _patch_embed() as mock_embed:
        result = runner.invoke(app, ["ask", "   ", "--context-only"])
    assert result.exit_code == 1
    assert "question is required" in result.output
    mock_embed.assert_not_called()


def test_ask_embedding_failure_exits_1(seeded) -> None:
    with _patch_embed(side_effect=EmbeddingFailure("provider error")):
        result = runner.invoke(app, ["ask", "When?"])
    assert result.exit_code == 1
    assert "Embedding failed" in result.output
