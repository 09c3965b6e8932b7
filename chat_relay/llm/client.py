"""
HTTP client for the local completion service.

Opens one streaming chat call per relay and turns connection failures and
non-success responses into relay errors before any content is read.
"""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
import structlog

from .exceptions import (
    ContextTooLongError,
    ModelNotFoundError,
    RelayError,
    UpstreamProtocolError,
    UpstreamUnavailableError,
)
from .models import ChatTurn, UpstreamConfig

logger = structlog.get_logger(__name__)

# Longest upstream error detail passed on to the client
MAX_DETAIL_LENGTH = 500

CONTEXT_LIMIT_MARKERS = (
    "context_length_exceeded",
    "context length",
    "context window",
    "maximum context",
    "prompt is too long",
    "input is too long",
)
HTTP_PAYLOAD_TOO_LARGE = 413


def error_detail(payload: Any) -> tuple[str, str | None]:
    """
    Pull ``(message, code)`` out of an upstream error payload.

    Ollama sends ``{"error": "..."}``; OpenAI-compatible servers send
    ``{"error": {"message": "...", "code": "..."}}``.
    """
    if isinstance(payload, dict):
        error = payload.get("error", payload)
        if isinstance(error, str):
            return error, None
        if isinstance(error, dict):
            message = error.get("message") or json.dumps(error)
            code = error.get("code") or error.get("type")
            return str(message), str(code) if code else None
    return str(payload), None


def classify_upstream_error(
    payload: Any, *, model: str, status_code: int | None = None
) -> RelayError:
    """Map an upstream error payload to the most specific relay error."""
    message, code = error_detail(payload)
    text = f"{code or ''} {message}".lower()
    context = {
        "status_code": status_code,
        "response_data": payload if isinstance(payload, dict) else {},
    }

    if code == "model_not_found" or ("model" in text and "not found" in text):
        return ModelNotFoundError(model, **context)
    if status_code == HTTP_PAYLOAD_TOO_LARGE or any(
        marker in text for marker in CONTEXT_LIMIT_MARKERS
    ):
        return ContextTooLongError(model=model, **context)
    return UpstreamProtocolError(message[:MAX_DETAIL_LENGTH], model=model, **context)


def _decode_error_body(body: bytes) -> Any:
    text = body.decode("utf-8", errors="replace").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text or "empty response body"


class UpstreamClient:
    """Streaming chat client bound to one upstream endpoint and model."""

    def __init__(
        self,
        config: UpstreamConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.read_timeout, connect=config.connect_timeout),
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.config.model

    def build_payload(self, turns: Sequence[ChatTurn]) -> dict[str, Any]:
        """Request body: turns passed as-is, streaming requested."""
        return {
            **self.config.extra_body,
            "model": self.config.model,
            "messages": [turn.to_payload() for turn in turns],
            "stream": True,
        }

    @contextlib.asynccontextmanager
    async def open_stream(
        self, turns: Sequence[ChatTurn]
    ) -> AsyncIterator[httpx.Response]:
        """
        Open the upstream stream and yield the successful response.

        Raises:
            UpstreamUnavailableError: Connection could not be established.
            ModelNotFoundError, ContextTooLongError, UpstreamProtocolError:
                Upstream answered with a non-success status.
        """
        request = self.client.build_request(
            "POST", self.config.chat_path, json=self.build_payload(turns)
        )
        base_url = self.config.base_url

        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(
                base_url, "timed out waiting for a response", model=self.model
            ) from e
        except httpx.ConnectError as e:
            raise UpstreamUnavailableError(
                base_url, f"connection failed: {e}", model=self.model
            ) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                base_url, f"network error: {e}", model=self.model
            ) from e

        try:
            if not response.is_success:
                try:
                    body = await response.aread()
                except httpx.HTTPError:
                    body = b""
                logger.warning(
                    "Upstream returned error status",
                    status_code=response.status_code,
                    body=body[:MAX_DETAIL_LENGTH].decode("utf-8", errors="replace"),
                )
                raise classify_upstream_error(
                    _decode_error_body(body),
                    model=self.model,
                    status_code=response.status_code,
                )
            yield response
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
