"""lantern ask — answer a question from the knowledge base.

Runs the same retrieval pipeline as POST /chat and streams the answer to
stdout. ``--context-only`` prints the selected context instead, without a
completion call.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lantern.cli.common import load_cli_config, open_store, require_api_key
from lantern.cli.errors import err_embedding
from lantern.errors import EmbeddingFailure, LanternError
from lantern.rag.assembler import AssembledContext, assemble, build_system_prompt
from lantern.rag.llm_client import count_tokens, stream_complete
from lantern.rag.retriever import RetrieverConfig

console = Console()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question to answer.")],
    context_only: Annotated[
        bool,
        typer.Option("--context-only", help="Show the retrieved context; skip the completion."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the Lantern database."),
    ] = None,
) -> None:
    """Ask a question against the knowledge base."""
    cfg = load_cli_config(console, db)
    require_api_key(console, cfg.embedding.model)
    if not context_only:
        require_api_key(console, cfg.generation.model)

    store = open_store(console, cfg)
    retriever_cfg = RetrieverConfig(
        embedding_model=cfg.embedding.model,
        top_k=cfg.retrieval.top_k,
        timeout=cfg.embedding.timeout,
        num_retries=cfg.embedding.num_retries,
    )
    try:
        context = assemble(
            question,
            store,
            retriever_cfg,
            relevance_threshold=cfg.retrieval.relevance_threshold,
            max_context_chunks=cfg.retrieval.max_context_chunks,
        )
    except EmbeddingFailure as exc:
        console.print(err_embedding(exc.public_message, exc.retryable))
        raise typer.Exit(1)
    except LanternError as exc:
        console.print(f"[red]Error:[/] {escape(exc.public_message)}")
        raise typer.Exit(1)
    finally:
        store.close()

    if context_only:
        _show_context(context, cfg.generation.model)
        return

    messages = [
        {"role": "system", "content": build_system_prompt(context)},
        {"role": "user", "content": question},
    ]
    try:
        for delta in stream_complete(
            cfg.generation.model,
            messages,
            max_tokens=cfg.generation.max_tokens,
            temperature=cfg.generation.temperature,
            timeout=cfg.generation.timeout,
        ):
            typer.echo(delta, nl=False)
    except LanternError as exc:
        console.print(f"[red]Error:[/] {escape(exc.public_message)}")
        raise typer.Exit(1)
    typer.echo("")


def _show_context(context: AssembledContext, model: str) -> None:
    if not context.matches:
        console.print(f"[yellow]{escape(context.fragments[0])}[/]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Score", justify="right")
    table.add_column("Source")
    table.add_column("Preview")
    for i, match in enumerate(context.matches, start=1):
        table.add_row(
            str(i),
            f"{match.score:.3f}",
            escape(match.title or match.source_key),
            escape(match.chunk.preview(80)),
        )
    console.print(table)

    tokens = sum(count_tokens(model, f) for f in context.fragments)
    note = "  [yellow](below threshold — best match used)[/]" if context.fallback_used else ""
    console.print(f"[dim]{len(context.fragments)} fragment(s) · ~{tokens:,} tokens[/]{note}")
