"""LiteLLM client wrapper with retry, timeouts, and API key validation.

All embedding and completion calls route through this module so the rest of
Lantern never sees a provider exception: failures are re-raised as
``EmbeddingFailure`` / ``CompletionFailure`` with the provider error chained.
LiteLLM's built-in retry is used (``num_retries``) and every call carries a
``timeout``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import litellm

from lantern.errors import CompletionFailure, ConfigurationError, EmbeddingFailure

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

# Provider errors worth retrying at a higher level.
_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ConfigurationError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise ConfigurationError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Embeddings
# ------------------------------------------------------------------


def embed(model: str, text: str, timeout: float = 30.0, num_retries: int = 2) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        text: Text to embed.
        timeout: Per-attempt timeout in seconds.
        num_retries: Number of retries on transient errors.

    Raises:
        EmbeddingFailure: On provider failure after retries. ``retryable`` is
            set for timeouts, connection errors and rate limiting.
    """
    try:
        response = litellm.embedding(
            model=model,
            input=[text],
            timeout=timeout,
            num_retries=num_retries,
        )
    except litellm.Timeout as exc:
        raise EmbeddingFailure(
            f"provider timed out after {timeout:g}s", retryable=True
        ) from exc
    except _TRANSIENT_ERRORS as exc:
        raise EmbeddingFailure(
            "provider temporarily unavailable", retryable=True, details=type(exc).__name__
        ) from exc
    except Exception as exc:
        raise EmbeddingFailure("provider error", details=type(exc).__name__) from exc

    try:
        return [float(x) for x in response.data[0]["embedding"]]
    except (IndexError, KeyError, TypeError) as exc:
        raise EmbeddingFailure("provider returned no embedding") from exc


# ------------------------------------------------------------------
# Completions
# ------------------------------------------------------------------


def stream_complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.2,
    timeout: float = 60.0,
    num_retries: int = 2,
) -> Iterator[str]:
    """Start a streamed completion and return an iterator of text deltas.

    The provider call is made before this function returns, so connection and
    authentication failures raise ``CompletionFailure`` while the caller can
    still send an error response. Failures after the first delta end the
    stream and are logged.
    """
    try:
        stream = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            num_retries=num_retries,
            stream=True,
        )
    except _TRANSIENT_ERRORS as exc:
        raise CompletionFailure(
            "provider temporarily unavailable", retryable=True, details=type(exc).__name__
        ) from exc
    except Exception as exc:
        raise CompletionFailure("provider error", details=type(exc).__name__) from exc

    return _iter_deltas(stream, model)


def _iter_deltas(stream, model: str) -> Iterator[str]:
    try:
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
    except Exception as exc:
        logger.error("complete: stream from %s aborted (%s)", model, type(exc).__name__)


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to character-based approximation (4 chars ≈ 1 token) if the model
    is not supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, len(text) // 4)
