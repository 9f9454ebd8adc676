"""Lantern error taxonomy.

Library code raises these; the API layer and the CLI catch them at the edge.
Each class carries the HTTP status it maps to and a public message that is
safe to show to a caller. Provider exceptions are chained with
``raise ... from exc`` and never rendered directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lantern.ratelimit import RateLimitResult


class LanternError(Exception):
    """Base class for every error Lantern raises on purpose."""

    status_code: int = 500
    prefix: str = ""

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def public_message(self) -> str:
        return f"{self.prefix}{self.message}"


class ConfigurationError(LanternError):
    """Missing store settings, credentials, or a mismatched index."""

    prefix = "Configuration error: "


class InvalidInput(LanternError, ValueError):
    """Caller supplied a missing or malformed value. No side effects occurred."""

    status_code = 400


class AccessDenied(LanternError):
    """Operation is disabled in the current environment."""

    status_code = 403


class ExtractionFailure(LanternError):
    """A source could not be fetched or parsed."""

    prefix = "Extraction failed: "


class EmbeddingFailure(LanternError):
    """The embedding provider failed or timed out.

    Attributes:
        retryable: True for timeouts and transient provider errors.
    """

    prefix = "Embedding failed: "

    def __init__(
        self, message: str, *, retryable: bool = False, details: str | None = None
    ) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable


class CompletionFailure(LanternError):
    """The completion provider failed before any output was streamed."""

    prefix = "Completion failed: "

    def __init__(
        self, message: str, *, retryable: bool = False, details: str | None = None
    ) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable


class RateLimitExceeded(LanternError):
    """Client exhausted its request window."""

    status_code = 429

    def __init__(self, result: RateLimitResult) -> None:
        super().__init__(result.error or "Rate limit exceeded.")
        self.result = result


class InvalidRecord(LanternError):
    """A stored record failed metadata validation on read."""

    prefix = "Invalid record: "
