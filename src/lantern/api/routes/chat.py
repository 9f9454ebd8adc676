"""Chat endpoint.

Routes: POST /chat

Flow:
1. Rate-limit the caller (429 with Retry-After when exhausted).
2. Take the last user message as the question.
3. Assemble context from the knowledge base.
4. Stream the completion back as plain text.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from lantern.api.deps import Services, get_services
from lantern.api.schemas import ChatRequest
from lantern.errors import InvalidInput, LanternError, RateLimitExceeded
from lantern.rag.assembler import assemble, build_system_prompt
from lantern.rag.llm_client import stream_complete
from lantern.ratelimit import RateLimitResult, client_identifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

_CONVERSATION_ROLES = ("user", "assistant")


def _rate_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


@router.post("/chat")
def chat(
    body: ChatRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> StreamingResponse:
    """Answer the latest user message, grounded on the knowledge base.

    Raises:
        RateLimitExceeded: Caller exhausted its window.
        InvalidInput: No non-blank user message.
        EmbeddingFailure / CompletionFailure: Provider errors before streaming.
    """
    peer = request.client.host if request.client else None
    identifier = client_identifier(request.headers, peer)
    result = services.governor.check(identifier, services.rate_limit)
    if not result.allowed:
        logger.warning("Rate limit hit for %s (retry in %ds)", identifier, result.retry_after)
        raise RateLimitExceeded(result)

    question = body.last_user_text()
    if not question:
        raise InvalidInput("a user message is required")

    cfg = services.config
    try:
        context = assemble(
            question,
            services.store,
            services.retriever_config,
            relevance_threshold=cfg.retrieval.relevance_threshold,
            max_context_chunks=cfg.retrieval.max_context_chunks,
        )
    except LanternError as exc:
        logger.error("retrieve: failed for chat request (%s)", type(exc).__name__)
        raise

    messages = [{"role": "system", "content": build_system_prompt(context)}]
    messages.extend(
        {"role": m.role, "content": m.text()}
        for m in body.messages
        if m.role in _CONVERSATION_ROLES and m.text().strip()
    )

    deltas = stream_complete(
        cfg.generation.model,
        messages,
        max_tokens=cfg.generation.max_tokens,
        temperature=cfg.generation.temperature,
        timeout=cfg.generation.timeout,
    )
    return StreamingResponse(
        deltas,
        media_type="text/plain; charset=utf-8",
        headers=_rate_headers(result),
    )
