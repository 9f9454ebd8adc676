"""Lantern configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (LANTERN_ENV, LANTERN_DB_PATH, LANTERN_INDEX_NAME,
                             LANTERN_EMBEDDING_MODEL, LANTERN_GENERATION_MODEL)
  3. Per-project lantern.yaml
  4. Global ~/.lantern/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lantern.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".lantern"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "lantern.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["server", "store", "embedding", "generation", "retrieval", "chunking", "rate_limit"]
)

_DEVELOPMENT_ENVS: frozenset[str] = frozenset(["development", "dev", "local", "test"])

_METRICS: frozenset[str] = frozenset(["cosine", "l2"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ConfigurationError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ServerCfg:
    """HTTP server settings (lantern.yaml: server:)."""

    environment: str = "production"
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class StoreCfg:
    """Vector store settings (lantern.yaml: store:).

    Attributes:
        path: SQLite database file holding records and vectors.
        index_name: Logical index; one vec table per index.
        dimension: Embedding dimension the index is provisioned with.
        metric: Distance metric, ``cosine`` or ``l2``.
    """

    path: str = ".lantern.db"
    index_name: str = "knowledge-base"
    dimension: int = 1536
    metric: str = "cosine"


@dataclass
class EmbeddingCfg:
    """Embedding provider settings (lantern.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    timeout: float = 30.0
    num_retries: int = 2
    concurrency: int = 4


@dataclass
class GenerationCfg:
    """Completion provider settings (lantern.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 1024
    temperature: float = 0.2
    timeout: float = 60.0


@dataclass
class RetrievalCfg:
    """Retrieval assembler settings (lantern.yaml: retrieval:)."""

    top_k: int = 10
    relevance_threshold: float = 0.7
    max_context_chunks: int = 5


@dataclass
class ChunkProfile:
    """Chunk size, overlap and minimum length for one source type (characters)."""

    max_chunk_size: int = 500
    overlap: int = 50
    min_chunk_length: int = 50


@dataclass
class ChunkingCfg:
    """Per-source-type chunking profiles (lantern.yaml: chunking:)."""

    default: ChunkProfile = field(default_factory=ChunkProfile)
    pdf: ChunkProfile = field(
        default_factory=lambda: ChunkProfile(max_chunk_size=500, overlap=100)
    )

    def for_type(self, source_type: str) -> ChunkProfile:
        return self.pdf if source_type == "pdf" else self.default


@dataclass
class RateLimitCfg:
    """Chat rate limit (lantern.yaml: rate_limit:). ``None`` → environment preset."""

    window_ms: int | None = None
    max_requests: int | None = None
    max_daily_requests: int | None = None


@dataclass
class LanternConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    server: ServerCfg = field(default_factory=ServerCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    rate_limit: RateLimitCfg = field(default_factory=RateLimitCfg)

    @property
    def is_development(self) -> bool:
        return self.server.environment.lower() in _DEVELOPMENT_ENVS


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: LanternConfig) -> None:
    if cfg.store.metric not in _METRICS:
        raise ConfigError(
            f"store.metric must be one of {sorted(_METRICS)}, got '{cfg.store.metric}'."
        )
    if cfg.store.dimension < 1:
        raise ConfigError(f"store.dimension must be >= 1, got {cfg.store.dimension}.")
    if not 0.0 <= cfg.retrieval.relevance_threshold <= 1.0:
        raise ConfigError(
            "retrieval.relevance_threshold must be within [0, 1], "
            f"got {cfg.retrieval.relevance_threshold}."
        )
    for name in ("default", "pdf"):
        profile: ChunkProfile = getattr(cfg.chunking, name)
        if profile.max_chunk_size < 1 or not 0 <= profile.overlap < profile.max_chunk_size:
            raise ConfigError(
                f"chunking.{name}: overlap must be in [0, max_chunk_size) "
                f"(got max_chunk_size={profile.max_chunk_size}, overlap={profile.overlap})."
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _parse_profile(raw: dict[str, Any], defaults: ChunkProfile) -> ChunkProfile:
    return ChunkProfile(
        max_chunk_size=int(raw.get("max_chunk_size", defaults.max_chunk_size)),
        overlap=int(raw.get("overlap", defaults.overlap)),
        min_chunk_length=int(raw.get("min_chunk_length", defaults.min_chunk_length)),
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _cfg_from_dict(data: dict[str, Any]) -> LanternConfig:
    """Build a *LanternConfig* from a merged raw YAML dict."""
    cfg = LanternConfig()

    if "server" in data:
        s = data["server"]
        cfg.server = ServerCfg(
            environment=str(s.get("environment", cfg.server.environment)),
            host=str(s.get("host", cfg.server.host)),
            port=int(s.get("port", cfg.server.port)),
        )

    if "store" in data:
        st = data["store"]
        cfg.store = StoreCfg(
            path=str(st.get("path", cfg.store.path)),
            index_name=str(st.get("index_name", cfg.store.index_name)),
            dimension=int(st.get("dimension", cfg.store.dimension)),
            metric=str(st.get("metric", cfg.store.metric)).lower(),
        )

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            concurrency=max(1, int(e.get("concurrency", cfg.embedding.concurrency))),
        )

    if "generation" in data:
        g = data["generation"]
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            relevance_threshold=float(
                r.get("relevance_threshold", cfg.retrieval.relevance_threshold)
            ),
            max_context_chunks=int(
                r.get("max_context_chunks", cfg.retrieval.max_context_chunks)
            ),
        )

    if "chunking" in data:
        ch = data["chunking"]
        cfg.chunking = ChunkingCfg(
            default=_parse_profile(ch.get("default", {}), cfg.chunking.default),
            pdf=_parse_profile(ch.get("pdf", {}), cfg.chunking.pdf),
        )

    if "rate_limit" in data:
        rl = data["rate_limit"]
        cfg.rate_limit = RateLimitCfg(
            window_ms=_optional_int(rl.get("window_ms")),
            max_requests=_optional_int(rl.get("max_requests")),
            max_daily_requests=_optional_int(rl.get("max_daily_requests")),
        )

    return cfg


def _apply_env_overrides(cfg: LanternConfig) -> LanternConfig:
    """Apply LANTERN_* environment variable overrides."""
    if env := os.environ.get("LANTERN_ENV"):
        cfg.server.environment = env
    if path := os.environ.get("LANTERN_DB_PATH"):
        cfg.store.path = path
    if index := os.environ.get("LANTERN_INDEX_NAME"):
        cfg.store.index_name = index
    if model := os.environ.get("LANTERN_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("LANTERN_GENERATION_MODEL"):
        cfg.generation.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> LanternConfig:
    """Load and return a merged *LanternConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *lantern.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def require_store_config(cfg: LanternConfig) -> None:
    """Raise ConfigurationError unless the store is fully configured.

    Called before any ingestion or retrieval work begins.
    """
    if not cfg.store.index_name.strip():
        raise ConfigurationError("store.index_name is not configured (set LANTERN_INDEX_NAME).")
    if not cfg.store.path.strip():
        raise ConfigurationError("store.path is not configured (set LANTERN_DB_PATH).")
