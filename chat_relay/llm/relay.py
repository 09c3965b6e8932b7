"""
Streaming relay from the completion service to the client.

One inbound request maps to one upstream call. Deltas are forwarded in the
order they were read, and every failure ends the stream with exactly one
ErrorEvent. Malformed upstream lines are logged and dropped; they never end
the stream.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

import httpx
import structlog

from .client import UpstreamClient, classify_upstream_error
from .exceptions import RelayError, UpstreamInterruptedError, ValidationError
from .models import ChatRequest, DeltaEvent, ErrorEvent, RelayEvent
from .streaming.models import LineEventType
from .streaming.parser import LineStreamParser, is_final_unit

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = (
    "An unexpected error occurred while talking to the language model. "
    "Please try again later."
)
# Longest raw line echoed into the debug log
MAX_LOGGED_LINE = 200


class StreamRelay:
    """Relay a chat request to the upstream and re-emit its deltas as events."""

    def __init__(
        self,
        client: UpstreamClient,
        *,
        max_duration: float | None = None,
    ) -> None:
        self.client = client
        self.max_duration = (
            max_duration if max_duration is not None else client.config.max_duration
        )

    async def relay(self, body: ChatRequest | Any) -> AsyncGenerator[RelayEvent]:
        """
        Stream events for one request.

        ``body`` is either a validated ChatRequest or the decoded JSON body;
        the latter is validated here and rejected before any upstream call.
        """
        relay_logger = logger.bind(
            request_id=uuid.uuid4().hex[:8], model=self.client.model
        )

        try:
            request = (
                body if isinstance(body, ChatRequest) else ChatRequest.from_body(body)
            )
        except ValidationError as e:
            relay_logger.warning("Rejected chat request", reason=e.reason)
            yield ErrorEvent(str(e), e.category)
            return

        relay_logger.info("Relay started", turns=len(request.messages))
        parser = LineStreamParser(self.client.config.shape)
        start_time = time.perf_counter()
        deltas = 0

        try:
            async with aclosing(self._stream_deltas(request, parser)) as contents:
                async for content in contents:
                    deltas += 1
                    yield DeltaEvent(content)
        except RelayError as e:
            relay_logger.warning(
                "Relay failed",
                error_category=e.category,
                error_message=str(e),
                status_code=e.status_code,
                deltas=deltas,
                **parser.get_stats(),
            )
            yield ErrorEvent(str(e), e.category)
        except (GeneratorExit, asyncio.CancelledError):
            relay_logger.info("Downstream closed, upstream released", deltas=deltas)
            raise
        except Exception:
            relay_logger.exception("Unexpected relay failure", deltas=deltas)
            yield ErrorEvent(GENERIC_ERROR_MESSAGE)
        else:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            relay_logger.info(
                "Relay completed",
                deltas=deltas,
                duration_ms=duration,
                **parser.get_stats(),
            )

    async def _stream_deltas(
        self, request: ChatRequest, parser: LineStreamParser
    ) -> AsyncGenerator[str]:
        """Yield non-empty content deltas until the upstream completes."""
        deadline = (
            asyncio.get_running_loop().time() + self.max_duration
            if self.max_duration is not None
            else None
        )

        async with self.client.open_stream(request.messages) as response:
            try:
                async with (
                    aclosing(self._read_chunks(response, deadline)) as chunks,
                    aclosing(parser.parse_stream(chunks)) as lines,
                ):
                    async for line in lines:
                        if line.event_type is LineEventType.COMPLETION:
                            return
                        if line.event_type is LineEventType.MALFORMED:
                            logger.debug(
                                "Dropped malformed upstream line",
                                error=line.error,
                                line=line.raw_data[:MAX_LOGGED_LINE],
                            )
                            continue
                        if line.data is None:
                            continue

                        unit = line.data
                        if unit.get("error"):
                            raise classify_upstream_error(unit, model=self.client.model)

                        content = parser.extract_delta(unit)
                        if content:
                            yield content
                        if is_final_unit(unit):
                            return

            except TimeoutError as e:
                raise UpstreamInterruptedError(
                    f"exceeded the maximum relay duration of {self.max_duration}s",
                    model=self.client.model,
                ) from e
            except httpx.TimeoutException as e:
                raise UpstreamInterruptedError(
                    "timed out waiting for more data", model=self.client.model
                ) from e
            except (httpx.RequestError, httpx.StreamError) as e:
                raise UpstreamInterruptedError(
                    f"stream error: {e}", model=self.client.model
                ) from e
            except UnicodeDecodeError as e:
                raise UpstreamInterruptedError(
                    "response data could not be decoded", model=self.client.model
                ) from e

    @staticmethod
    async def _read_chunks(
        response: httpx.Response, deadline: float | None
    ) -> AsyncGenerator[bytes]:
        """Read raw body chunks, bounded by the relay deadline if one is set."""
        chunks = response.aiter_bytes()
        while True:
            try:
                if deadline is None:
                    chunk = await anext(chunks)
                else:
                    async with asyncio.timeout_at(deadline):
                        chunk = await anext(chunks)
            except StopAsyncIteration:
                return
            yield chunk
