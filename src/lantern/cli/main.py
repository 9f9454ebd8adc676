"""Lantern CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from lantern.cli.ask import ask_cmd
from lantern.cli.ingest import ingest_cmd
from lantern.cli.remove import remove_cmd
from lantern.cli.serve import serve_cmd
from lantern.cli.status import status_cmd
from lantern.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("lantern")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lantern {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="lantern",
    help=(
        "Lantern — retrieval-augmented knowledge base.\n\n"
        "  lantern ingest  Add web pages, PDFs and text files to the knowledge base.\n"
        "  lantern serve   Run the chat / ingestion HTTP API."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline stages to stderr."),
    ] = False,
) -> None:
    """Lantern — retrieval-augmented knowledge base."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("remove")(remove_cmd)
app.command("status")(status_cmd)
app.command("serve")(serve_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Lantern version."""
    typer.echo(f"lantern {_installed_version()}")


if __name__ == "__main__":
    app()
