"""Logging setup for the CLI and the API server.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed once by the process entry point via ``configure_logging()``.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("httpx", "httpcore", "LiteLLM", "litellm", "urllib3")


def configure_logging(level: int | str = logging.INFO, console: Console | None = None) -> None:
    """Attach a RichHandler to the ``lantern`` logger (idempotent).

    Args:
        level: Log level for Lantern's own loggers.
        console: Console to render to. Defaults to stderr.
    """
    root = logging.getLogger("lantern")
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
