"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import litellm
import pytest

from lantern.errors import CompletionFailure, ConfigurationError, EmbeddingFailure
from lantern.rag.llm_client import (
    count_tokens,
    embed,
    stream_complete,
    validate_api_key,
)


def _timeout_error() -> litellm.Timeout:
    return litellm.Timeout(message="timed out", model="openai/x", llm_provider="openai")


def _stream_chunk(content: str | None) -> MagicMock:
    chunk = MagicMock()
    chunk.choices[0].delta.content = content
    return chunk


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o-mini")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/nomic-embed-text")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        validate_api_key("text-embedding-3-small")


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_vector():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]

    with patch("lantern.rag.llm_client.litellm.embedding", return_value=mock_response) as mock_e:
        result = embed("openai/text-embedding-3-small", "hello", timeout=5.0, num_retries=1)

    assert result == [0.1, 0.2, 0.3]
    kwargs = mock_e.call_args.kwargs
    assert kwargs["input"] == ["hello"]
    assert kwargs["timeout"] == 5.0
    assert kwargs["num_retries"] == 1


def test_embed_timeout_is_retryable():
    with patch("lantern.rag.llm_client.litellm.embedding", side_effect=_timeout_error()):
        with pytest.raises(EmbeddingFailure, match="timed out") as exc_info:
            embed("openai/text-embedding-3-small", "hello", timeout=30.0)
    assert exc_info.value.retryable is True
    assert isinstance(exc_info.value.__cause__, litellm.Timeout)


def test_embed_other_error_not_retryable():
    with patch("lantern.rag.llm_client.litellm.embedding", side_effect=RuntimeError("bad key")):
        with pytest.raises(EmbeddingFailure) as exc_info:
            embed("openai/text-embedding-3-small", "hello")
    assert exc_info.value.retryable is False
    assert "bad key" not in exc_info.value.public_message


def test_embed_empty_response_raises():
    mock_response = MagicMock()
    mock_response.data = []
    with patch("lantern.rag.llm_client.litellm.embedding", return_value=mock_response):
        with pytest.raises(EmbeddingFailure, match="no embedding"):
            embed("openai/text-embedding-3-small", "hello")


# ------------------------------------------------------------------
# stream_complete()
# ------------------------------------------------------------------


def test_stream_complete_yields_deltas():
    chunks = [_stream_chunk("Hel"), _stream_chunk(None), _stream_chunk("lo")]
    with patch("lantern.rag.llm_client.litellm.completion", return_value=iter(chunks)) as mock_c:
        deltas = list(
            stream_complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}], max_tokens=64)
        )

    assert deltas == ["Hel", "lo"]
    kwargs = mock_c.call_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["max_tokens"] == 64


def test_stream_complete_provider_error_raised_before_streaming():
    with patch("lantern.rag.llm_client.litellm.completion", side_effect=RuntimeError("401")):
        with pytest.raises(CompletionFailure):
            stream_complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}])


def test_stream_complete_mid_stream_error_ends_stream():
    def _broken():
        yield _stream_chunk("partial")
        raise RuntimeError("connection reset")

    with patch("lantern.rag.llm_client.litellm.completion", return_value=_broken()):
        deltas = list(stream_complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}]))

    assert deltas == ["partial"]


# ------------------------------------------------------------------
# count_tokens()
# ------------------------------------------------------------------


def test_count_tokens_uses_litellm():
    with patch("lantern.rag.llm_client.litellm.token_counter", return_value=42):
        assert count_tokens("openai/gpt-4o-mini", "some text") == 42


def test_count_tokens_fallback_on_error():
    with patch(
        "lantern.rag.llm_client.litellm.token_counter", side_effect=Exception("unsupported")
    ):
        assert count_tokens("unknown/model", "a" * 100) == 25
