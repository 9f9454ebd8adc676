"""Fixed-window request rate governor.

Each client identifier gets a counter that resets when its window expires.
An optional daily cap adds a second, 24-hour window for the same
identifier; a request passes only when both windows have room, and neither
counter moves on rejection.

State lives in a ``RateLimitStore`` created once per process
(``init_rate_limit_store()``) and injected into ``RateGovernor``. It is not
persisted; a restart clears every window.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from lantern.config import LanternConfig
from lantern.errors import InvalidInput

DAY_MS = 24 * 60 * 60 * 1000

_DAILY_PREFIX = "daily:"


@dataclass(frozen=True)
class RateLimitConfig:
    """Window length (milliseconds) and request caps."""

    window_ms: int
    max_requests: int
    max_daily_requests: int | None = None


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window after this one.
        reset_at: Epoch milliseconds when the limiting window resets.
        retry_after: Whole seconds until ``reset_at`` (0 when allowed).
        error: Human-readable reason when rejected.
    """

    allowed: bool
    remaining: int
    reset_at: int
    retry_after: int = 0
    error: str | None = None


@dataclass
class RateLimitEntry:
    identifier: str
    count: int
    window_reset_at: int


RATE_LIMITS: dict[str, RateLimitConfig] = {
    "production": RateLimitConfig(window_ms=60_000, max_requests=2, max_daily_requests=10),
    "development": RateLimitConfig(window_ms=60_000, max_requests=20),
}


class RateLimitStore:
    """Process-wide table of rate-limit entries guarded by one lock."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    def start_window(self, key: str, now_ms: int, window_ms: int) -> RateLimitEntry:
        entry = RateLimitEntry(identifier=key, count=0, window_reset_at=now_ms + window_ms)
        self._entries[key] = entry
        return entry

    def sweep(self, now_ms: int) -> int:
        """Drop every expired entry. Returns the number removed. Caller holds the lock."""
        expired = [k for k, e in self._entries.items() if now_ms >= e.window_reset_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()


def init_rate_limit_store() -> RateLimitStore:
    """Create the store once at process start."""
    return RateLimitStore()


class RateGovernor:
    """Decide whether a client may make another request.

    Args:
        store: Shared rate-limit table.
        clock: Returns the current time in seconds (``time.time`` by default).
    """

    def __init__(
        self, store: RateLimitStore, clock: Callable[[], float] = time.time
    ) -> None:
        self._store = store
        self._clock = clock

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for *identifier* against *config*.

        Check-and-increment is atomic: two concurrent requests can never both
        take the last free slot.

        Raises:
            InvalidInput: If the window or either cap is < 1.
        """
        _validate(config)
        identifier = identifier or "unknown"
        now = int(self._clock() * 1000)

        with self._store.lock:
            self._store.sweep(now)

            window = self._active(identifier, now, config.window_ms)
            daily = None
            if config.max_daily_requests is not None:
                daily = self._active(_DAILY_PREFIX + identifier, now, DAY_MS)
                if daily.count >= config.max_daily_requests:
                    return _rejected(now, daily.window_reset_at, "Daily request limit reached.")

            if window.count >= config.max_requests:
                return _rejected(now, window.window_reset_at, "Rate limit exceeded.")

            window.count += 1
            remaining = config.max_requests - window.count
            if daily is not None:
                daily.count += 1
                remaining = min(remaining, config.max_daily_requests - daily.count)

            return RateLimitResult(
                allowed=True,
                remaining=remaining,
                reset_at=window.window_reset_at,
            )

    def _active(self, key: str, now: int, window_ms: int) -> RateLimitEntry:
        entry = self._store.get(key)
        if entry is None or now >= entry.window_reset_at:
            entry = self._store.start_window(key, now, window_ms)
        return entry


def config_for(cfg: LanternConfig) -> RateLimitConfig:
    """Chat rate limit for *cfg*: the environment preset, overridden by ``rate_limit:``."""
    preset = RATE_LIMITS["development" if cfg.is_development else "production"]
    rl = cfg.rate_limit
    return RateLimitConfig(
        window_ms=rl.window_ms if rl.window_ms is not None else preset.window_ms,
        max_requests=rl.max_requests if rl.max_requests is not None else preset.max_requests,
        max_daily_requests=(
            rl.max_daily_requests
            if rl.max_daily_requests is not None
            else preset.max_daily_requests
        ),
    )


def client_identifier(headers: Mapping[str, str], fallback: str | None = None) -> str:
    """Identify the client behind a request.

    First hop of ``X-Forwarded-For``, then ``X-Real-IP``, then *fallback*
    (the socket peer), then ``"unknown"``.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded = lowered.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = lowered.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return fallback or "unknown"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _rejected(now: int, reset_at: int, reason: str) -> RateLimitResult:
    retry_after = max(1, math.ceil((reset_at - now) / 1000))
    return RateLimitResult(
        allowed=False,
        remaining=0,
        reset_at=reset_at,
        retry_after=retry_after,
        error=f"{reason} Try again in {retry_after} seconds.",
    )


def _validate(config: RateLimitConfig) -> None:
    if config.window_ms < 1:
        raise InvalidInput(f"window_ms must be >= 1, got {config.window_ms}")
    if config.max_requests < 1:
        raise InvalidInput(f"max_requests must be >= 1, got {config.max_requests}")
    if config.max_daily_requests is not None and config.max_daily_requests < 1:
        raise InvalidInput(
            f"max_daily_requests must be >= 1, got {config.max_daily_requests}"
        )
