"""lantern status command.

Shows a project overview: configuration, database, and the ingested
sources of the configured index.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from lantern.cli.common import load_cli_config, open_store
from lantern.config import LanternConfig
from lantern.db.models import SourceSummary
from lantern.ratelimit import config_for

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the Lantern database."),
    ] = None,
) -> None:
    """Show configuration and knowledge base status."""
    cfg = load_cli_config(console, db)
    db_path = Path(cfg.store.path)

    # ---- Panel 1: Configuration ----
    _show_config_panel(db_path, cfg)

    # ---- Panel 2: Knowledge Base ----
    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  lantern ingest --source <URL or file>",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    store = open_store(console, cfg)
    try:
        sources = store.list_sources()
        total = store.count()
    finally:
        store.close()
    _show_knowledge_panel(cfg, sources, total)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(db_path: Path, cfg: LanternConfig) -> None:
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    limit = config_for(cfg)
    daily = f", {limit.max_daily_requests}/day" if limit.max_daily_requests else ""
    lines = [
        f"Environment: [bold]{escape(cfg.server.environment)}[/]",
        f"Database:    {escape(db_info)}",
        f"Index:       {escape(cfg.store.index_name)} "
        f"[dim]({cfg.store.dimension} dims, {cfg.store.metric})[/]",
        f"Embedding:   {escape(cfg.embedding.model)}",
        f"Generation:  {escape(cfg.generation.model)}",
        f"Rate limit:  {limit.max_requests} per {limit.window_ms // 1000}s{daily}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))


def _show_knowledge_panel(cfg: LanternConfig, sources: list[SourceSummary], total: int) -> None:
    if not sources:
        console.print(
            Panel(
                "[dim]No sources ingested yet.[/]",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Source")
    table.add_column("Title")
    table.add_column("Records", justify="right")
    table.add_column("Last ingest", style="dim")
    for s in sources:
        table.add_row(
            escape(s.source_key),
            escape(s.title),
            str(s.record_count),
            s.last_ingested[:16],  # trim to "YYYY-MM-DDTHH:MM"
        )

    console.print(
        Panel(
            table,
            title=f"[bold]Knowledge Base[/] [dim]({len(sources)} sources, {total:,} records)[/]",
            expand=False,
        )
    )
