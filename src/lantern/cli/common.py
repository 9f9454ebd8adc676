"""Helpers shared by CLI commands: config loading and store access."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from lantern.cli.errors import err_config, err_index_mismatch, err_no_api_key
from lantern.config import LanternConfig, load_config, require_store_config
from lantern.db.store import VectorStore
from lantern.errors import ConfigurationError
from lantern.rag.llm_client import validate_api_key


def load_cli_config(console: Console, db: Path | None = None) -> LanternConfig:
    """Load config and apply the ``--db`` override, exiting 1 on bad config."""
    try:
        cfg = load_config()
        if db is not None:
            cfg.store.path = str(db)
        require_store_config(cfg)
    except ConfigurationError as exc:
        console.print(err_config(exc.message))
        raise typer.Exit(1)
    return cfg


def require_api_key(console: Console, model: str) -> None:
    try:
        validate_api_key(model)
    except ConfigurationError:
        provider = model.split("/")[0] if "/" in model else "openai"
        console.print(err_no_api_key(provider))
        raise typer.Exit(1)


def open_store(console: Console, cfg: LanternConfig) -> VectorStore:
    """Open the configured index, exiting 1 if it clashes with an existing one."""
    try:
        return VectorStore.open(
            cfg.store.path, cfg.store.index_name, cfg.store.dimension, cfg.store.metric
        )
    except ConfigurationError as exc:
        console.print(err_index_mismatch(exc.message))
        raise typer.Exit(1)
