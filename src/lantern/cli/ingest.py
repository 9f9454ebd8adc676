"""lantern ingest — ingest sources into the knowledge base.

Source dispatch by URL scheme / extension:
  https:// / http://              → web extractor (--extractor generic | structured-catalog)
  .pdf                            → PdfExtractor, keyed "pdf:<title>"
  .txt .md .markdown .rst .text .log → read directly, keyed by absolute path

Re-ingesting a source replaces all of its previous records.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import SpinnerColumn, Progress, TextColumn

from lantern.cli.common import load_cli_config, open_store, require_api_key
from lantern.cli.errors import err_embedding, err_ssrf_blocked, err_unsupported_source
from lantern.errors import EmbeddingFailure, LanternError
from lantern.ingest.base import ExtractedContent
from lantern.ingest.coordinator import IngestionCoordinator
from lantern.ingest.pdf import PdfExtractor
from lantern.ingest.web import SsrfError, get_extractor

console = Console()

_PDF_EXTS = {".pdf"}
_TEXT_EXTS = {".txt", ".md", ".markdown", ".rst", ".text", ".log"}


def ingest_cmd(
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Source path or URL (repeatable)."),
    ] = None,
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Title stored with the records."),
    ] = None,
    extractor: Annotated[
        str,
        typer.Option("--extractor", "-e", help="Web extractor: generic | structured-catalog."),
    ] = "generic",
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the Lantern database (created if missing)."),
    ] = None,
) -> None:
    """Ingest one or more sources into the Lantern knowledge base."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH_OR_URL.")
        raise typer.Exit(1)

    cfg = load_cli_config(console, db)
    require_api_key(console, cfg.embedding.model)
    store = open_store(console, cfg)
    coordinator = IngestionCoordinator(store, cfg)

    failures = 0
    try:
        for src in sources:
            if not _process_source(src, coordinator, title=title, extractor=extractor):
                failures += 1
    finally:
        store.close()

    if failures:
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Per-source pipeline
# ------------------------------------------------------------------


def _process_source(
    source: str,
    coordinator: IngestionCoordinator,
    title: str | None,
    extractor: str,
) -> bool:
    """Extract, chunk, embed and store a single source. Returns False on failure."""
    console.print(f"\n[bold]→ {escape(source)}[/]")

    source_type = _detect_type(source)
    if source_type == "unknown":
        console.print(err_unsupported_source(source))
        return False

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task(f"Extracting ({source_type})…", total=None)
            content = _extract(source_type, source, title, extractor)
            source_key = _source_key(source_type, source, content)

            prog.update(task, description="Chunking and embedding…")
            result = coordinator.ingest(
                source_key,
                content.title,
                content.content,
                source_type="pdf" if source_type == "pdf" else "default",
            )
    except SsrfError:
        console.print(err_ssrf_blocked(source))
        return False
    except EmbeddingFailure as exc:
        console.print(err_embedding(exc.public_message, exc.retryable))
        return False
    except LanternError as exc:
        console.print(f"  [red]✗ Error:[/] {escape(exc.public_message)}")
        return False
    except OSError as exc:
        console.print(f"  [red]✗ Error:[/] cannot read '{escape(source)}': {exc.strerror}")
        return False

    console.print(f"  [green]✓[/] {result.chunks_processed} chunks stored as [bold]{escape(result.title)}[/]")
    if result.deleted_vectors:
        console.print(f"  [dim]↻ Replaced {result.deleted_vectors} previous records[/]")
    console.print(f"  [dim]key: {escape(source_key)}[/]")
    return True


def _extract(source_type: str, source: str, title: str | None, extractor: str) -> ExtractedContent:
    if source_type == "web":
        content = get_extractor(extractor).extract(source)
        return ExtractedContent(title=title or content.title, content=content.content)
    path = Path(source)
    if source_type == "pdf":
        return PdfExtractor().extract_file(path, title=title)
    text = path.read_text(encoding="utf-8", errors="replace")
    return ExtractedContent(title=title or path.stem, content=text)


def _source_key(source_type: str, source: str, content: ExtractedContent) -> str:
    if source_type == "web":
        return source
    if source_type == "pdf":
        return f"pdf:{content.title}"
    return str(Path(source).resolve())


def _detect_type(source: str) -> str:
    """Infer source type from URL scheme or file extension."""
    if source.startswith(("https://", "http://")):
        return "web"
    ext = Path(source).suffix.lower()
    if ext in _PDF_EXTS:
        return "pdf"
    if ext in _TEXT_EXTS:
        return "text"
    return "unknown"
