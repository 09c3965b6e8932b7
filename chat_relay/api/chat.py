"""
Chat endpoint: relays the conversation to the language model and streams the
reply back as server-sent events.
"""

from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..llm.models import format_sse
from ..llm.relay import StreamRelay
from .dependencies import get_relay

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable proxy buffering
}


@router.post("/chat")
async def chat(
    request: Request,
    relay: StreamRelay = Depends(get_relay),
) -> StreamingResponse:
    """
    Stream the assistant reply for ``{"messages": [...]}``.

    Errors, including an unreadable body, arrive as a final ``{"error": ...}``
    event on an otherwise successful response.
    """
    body: Any
    try:
        body = await request.json()
    except ValueError:
        # Not JSON; the relay reports it as a validation error event
        logger.info("Chat request body is not valid JSON")
        body = None

    async def event_generator() -> AsyncGenerator[str, None]:
        async with aclosing(relay.relay(body)) as events:
            async for event in events:
                yield format_sse(event)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
