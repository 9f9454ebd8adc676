"""Shared services for request handlers.

``create_app()`` builds one ``Services`` container per application and
stores it on ``app.state``; handlers receive it through ``get_services``.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from lantern.config import LanternConfig
from lantern.db.store import VectorStore
from lantern.ingest.coordinator import IngestionCoordinator
from lantern.rag.retriever import RetrieverConfig
from lantern.ratelimit import RateGovernor, RateLimitConfig


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""

    config: LanternConfig
    store: VectorStore
    coordinator: IngestionCoordinator
    governor: RateGovernor
    rate_limit: RateLimitConfig

    @property
    def retriever_config(self) -> RetrieverConfig:
        return RetrieverConfig(
            embedding_model=self.config.embedding.model,
            top_k=self.config.retrieval.top_k,
            timeout=self.config.embedding.timeout,
            num_retries=self.config.embedding.num_retries,
        )


def get_services(request: Request) -> Services:
    return request.app.state.services
