"""
Streaming relay to a local language-model server.

This package provides:
- Validated chat request and relay event models
- An httpx client for the upstream chat endpoint
- Incremental line-delimited JSON decoding for both payload shapes
- The relay that turns upstream output into server-sent events
"""

from __future__ import annotations

from .client import UpstreamClient
from .exceptions import (
    ContextTooLongError,
    ModelNotFoundError,
    RelayError,
    UpstreamInterruptedError,
    UpstreamProtocolError,
    UpstreamUnavailableError,
    ValidationError,
)
from .models import (
    ChatRequest,
    ChatTurn,
    DeltaEvent,
    ErrorEvent,
    MessageRole,
    RelayEvent,
    UpstreamConfig,
    UpstreamShape,
    format_sse,
)
from .relay import StreamRelay

__all__ = [
    "ChatRequest",
    "ChatTurn",
    "ContextTooLongError",
    "DeltaEvent",
    "ErrorEvent",
    "MessageRole",
    "ModelNotFoundError",
    "RelayError",
    "RelayEvent",
    "StreamRelay",
    "UpstreamClient",
    "UpstreamConfig",
    "UpstreamInterruptedError",
    "UpstreamProtocolError",
    "UpstreamShape",
    "UpstreamUnavailableError",
    "ValidationError",
    "format_sse",
]
