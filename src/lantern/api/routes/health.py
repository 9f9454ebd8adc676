"""Health check endpoint.

Routes: GET /health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lantern.api.deps import Services, get_services
from lantern.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Liveness plus the number of records in the configured index."""
    return HealthResponse(status="ok", records=services.store.count())
