"""lantern serve — run the HTTP API with uvicorn."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from lantern.api.app import create_app
from lantern.cli.common import load_cli_config

console = Console()


def serve_cmd(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: server.host)."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="Bind port (default: server.port)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the Lantern database."),
    ] = None,
) -> None:
    """Serve /chat, /scrape, /upload-pdf and /health."""
    lantern_logger = logging.getLogger("lantern")
    lantern_logger.setLevel(min(lantern_logger.level or logging.INFO, logging.INFO))

    cfg = load_cli_config(console, db)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port

    console.print(
        f"[bold]Lantern[/] serving index [bold]{cfg.store.index_name}[/] "
        f"on http://{bind_host}:{bind_port} [dim]({cfg.server.environment})[/]"
    )
    uvicorn.run(create_app(cfg), host=bind_host, port=bind_port, log_level="info")
