"""FastAPI application factory.

``create_app()`` wires the routers, the error handlers and the shared
services. The vector store and the rate-limit store are opened by the
lifespan hook unless the caller injects them (tests, embedding in another
process).
"""

from __future__ import annotations

import importlib.metadata
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lantern.api.deps import Services
from lantern.api.routes import chat_router, health_router, sources_router
from lantern.config import LanternConfig, load_config, require_store_config
from lantern.db.store import VectorStore
from lantern.errors import LanternError, RateLimitExceeded
from lantern.ingest.coordinator import IngestionCoordinator
from lantern.ratelimit import RateGovernor, RateLimitStore, config_for, init_rate_limit_store

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return importlib.metadata.version("lantern")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _build_services(
    config: LanternConfig,
    store: VectorStore,
    rate_store: RateLimitStore | None,
    clock: Callable[[], float] | None,
) -> Services:
    return Services(
        config=config,
        store=store,
        coordinator=IngestionCoordinator(store, config),
        governor=RateGovernor(rate_store or init_rate_limit_store(), clock or time.time),
        rate_limit=config_for(config),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the vector store on startup unless one was injected; close it on shutdown."""
    opened: VectorStore | None = None
    if getattr(app.state, "services", None) is None:
        cfg: LanternConfig = app.state.config
        require_store_config(cfg)
        opened = VectorStore.open(
            cfg.store.path, cfg.store.index_name, cfg.store.dimension, cfg.store.metric
        )
        app.state.services = _build_services(cfg, opened, app.state.rate_store, app.state.clock)
        logger.info(
            "Opened index '%s' at %s (%d records)",
            cfg.store.index_name,
            cfg.store.path,
            opened.count(),
        )

    yield

    if opened is not None:
        opened.close()
        app.state.services = None


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


def _error_body(message: str, details: str | None = None) -> dict[str, str]:
    body = {"error": message}
    if details:
        body["details"] = details
    return body


async def _lantern_error_handler(request: Request, exc: LanternError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.public_message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.public_message, exc.details),
    )


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    result = exc.result
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.public_message),
        headers={
            "Retry-After": str(result.retry_after),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_at),
        },
    )


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    detail = f"{location}: {first.get('msg', 'invalid value')}" if location else None
    return JSONResponse(status_code=400, content=_error_body("Invalid request body", detail))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(
    config: LanternConfig | None = None,
    *,
    store: VectorStore | None = None,
    rate_store: RateLimitStore | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """Create and configure the Lantern API application.

    Args:
        config: Loaded configuration. Defaults to ``load_config()``.
        store: Pre-opened vector store. Opened from ``config.store`` when omitted.
        rate_store: Shared rate-limit store. A fresh one is created when omitted.
        clock: Time source for the rate governor, in seconds.
    """
    cfg = config or load_config()

    app = FastAPI(
        title="Lantern",
        description="Retrieval-augmented knowledge base API",
        version=_package_version(),
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.rate_store = rate_store
    app.state.clock = clock
    app.state.services = (
        _build_services(cfg, store, rate_store, clock) if store is not None else None
    )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_exception_handler(LanternError, _lantern_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)

    app.include_router(chat_router)
    app.include_router(sources_router)
    app.include_router(health_router)

    return app
