"""lantern remove — source lifecycle management.

Removes every record (metadata + vector) stored under one source key.

Usage:
  lantern remove --source https://example.com/docs
  lantern remove --source "pdf:Annual Report" --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from lantern.cli.common import load_cli_config, open_store
from lantern.cli.errors import err_no_db, err_source_not_found
from lantern.ingest.coordinator import IngestionCoordinator

console = Console()


def remove_cmd(
    source: Annotated[
        str,
        typer.Option("--source", "-s", help="Source key (URL, pdf:<title> or file path) to remove."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the Lantern database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source and all its records from the knowledge base."""
    cfg = load_cli_config(console, db)
    if not Path(cfg.store.path).exists():
        console.print(err_no_db(cfg.store.path))
        raise typer.Exit(1)

    store = open_store(console, cfg)
    try:
        record_count = store.count({"source_key": source})
        if record_count == 0:
            console.print(err_source_not_found(source))
            raise typer.Exit(0)

        console.print(f"\nRemove source: [bold]{escape(source)}[/]")
        console.print(f"  Records: {record_count}  |  Index: {escape(store.handle.name)}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        deleted = IngestionCoordinator(store, cfg).remove(source)
        console.print(f"\n[green]✓[/] Removed: {escape(source)}")
        console.print(f"  {deleted} records deleted")
    finally:
        store.close()
