"""API routers."""

from lantern.api.routes.chat import router as chat_router
from lantern.api.routes.health import router as health_router
from lantern.api.routes.sources import router as sources_router

__all__ = ["chat_router", "health_router", "sources_router"]
