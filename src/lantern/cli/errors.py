"""Lantern rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from lantern.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".lantern.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  lantern ingest --source <URL or file>"
    )


def err_config(message: str) -> str:
    """Config file or environment holds an invalid value."""
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Fix lantern.yaml (or ~/.lantern/config.yaml) and retry."
    )


def err_index_mismatch(message: str) -> str:
    """Existing index was provisioned with another dimension or metric."""
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Use a new store.index_name, or set store.dimension / store.metric to match\n"
        "  the existing index."
    )


def err_ssrf_blocked(url: str) -> str:
    """URL resolves to a private/reserved address."""
    return (
        f"[red]Error:[/] URL resolves to private address (SSRF protection): '{escape(url)}'\n"
        "  Use a publicly reachable URL."
    )


def err_unsupported_source(source: str) -> str:
    """Source is neither a URL nor a supported file type."""
    return (
        f"[red]Error:[/] Unsupported source: '{escape(source)}'\n"
        "  Supported: https:// or http:// URLs, .pdf, .txt, .md, .rst, .text, .log"
    )


def err_embedding(message: str, retryable: bool) -> str:
    """Embedding provider failed; nothing was written."""
    hint = (
        "  The provider timed out or is busy. Retry in a moment."
        if retryable
        else "  Check the embedding.model setting and your provider account."
    )
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  The knowledge base was not changed.\n"
        f"{hint}"
    )


def err_source_not_found(source: str) -> str:
    """Source not found in the index."""
    return (
        f"[yellow]Source not found:[/] '{escape(source)}' is not in the knowledge base.\n"
        "  Run:  lantern status  to see all ingested sources."
    )
