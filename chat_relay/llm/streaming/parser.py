"""
Incremental line-delimited JSON parser with tolerant chunk handling.

Upstream bodies arrive as arbitrary byte chunks. A line is only decoded once
its terminating newline (or the end of the stream) has been seen, so the
sequence of parsed lines does not depend on how the transport split the
bytes. Lines that are not JSON objects are reported as MALFORMED and the
caller drops them.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncGenerator, AsyncIterable, Callable
from typing import Any

from ..models import UpstreamShape
from .models import LineEventType, ParserStats, RawLine

# OpenAI-compatible servers frame chunks as SSE
SSE_DATA_PREFIX = "data:"
COMPLETION_MARKER = "[DONE]"
HEARTBEAT_PAYLOADS = frozenset({"ping", "heartbeat"})

DeltaExtractor = Callable[[dict[str, Any]], str | None]


def extract_ollama_delta(unit: dict[str, Any]) -> str | None:
    """Read ``message.content``."""
    message = unit.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def extract_openai_delta(unit: dict[str, Any]) -> str | None:
    """Read ``choices[0].delta.content``."""
    choices = unit.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


EXTRACTORS: dict[UpstreamShape, DeltaExtractor] = {
    UpstreamShape.OLLAMA: extract_ollama_delta,
    UpstreamShape.OPENAI: extract_openai_delta,
}


def probe_shape(unit: dict[str, Any]) -> UpstreamShape | None:
    """Pick the payload shape by which field path the unit carries."""
    if "message" in unit:
        return UpstreamShape.OLLAMA
    if "choices" in unit:
        return UpstreamShape.OPENAI
    return None


def is_final_unit(unit: dict[str, Any]) -> bool:
    """True for the Ollama ``{"done": true}`` unit."""
    return unit.get("done") is True


class LineStreamParser:
    """Newline framing, per-line JSON decoding and delta extraction."""

    def __init__(self, shape: UpstreamShape = UpstreamShape.AUTO):
        self.shape = shape
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self.stats = ParserStats()

    def feed(self, data: bytes) -> list[RawLine]:
        """
        Consume one read and return the lines it completed, in order.

        Raises:
            UnicodeDecodeError: If the bytes are not valid UTF-8.
        """
        self._buffer += self._decoder.decode(data)
        *complete, self._buffer = self._buffer.split("\n")
        return [line for line in map(self._parse_line, complete) if line]

    def finish(self) -> list[RawLine]:
        """Flush the unterminated tail at end of stream."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        line = self._parse_line(tail)
        return [line] if line else []

    async def parse_stream(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[RawLine]:
        """Parse an async byte stream into complete lines."""
        async for chunk in chunks:
            for line in self.feed(chunk):
                yield line
        for line in self.finish():
            yield line

    def extract_delta(self, unit: dict[str, Any]) -> str | None:
        """Return the content delta of a parsed unit, or None if it has none."""
        shape = self.shape
        if shape is UpstreamShape.AUTO:
            shape = probe_shape(unit)
            if shape is None:
                return None

        content = EXTRACTORS[shape](unit)
        if content:
            self.stats.content_lines += 1
        return content

    def _parse_line(self, raw_line: str) -> RawLine | None:
        line = raw_line.strip()
        if not line:
            return None

        self.stats.total_lines += 1

        if line.startswith(SSE_DATA_PREFIX):
            line = line[len(SSE_DATA_PREFIX):].strip()

        if line == COMPLETION_MARKER:
            return RawLine(
                event_type=LineEventType.COMPLETION, data=None, raw_data=line
            )

        if not line or line in HEARTBEAT_PAYLOADS:
            self.stats.heartbeat_lines += 1
            return RawLine(
                event_type=LineEventType.HEARTBEAT, data=None, raw_data=line
            )

        try:
            parsed = json.loads(line)
        except json.JSONDecodeError as e:
            self.stats.malformed_lines += 1
            return RawLine(
                event_type=LineEventType.MALFORMED,
                data=None,
                raw_data=line,
                error=f"JSON decode error: {e}",
            )

        if not isinstance(parsed, dict):
            self.stats.malformed_lines += 1
            return RawLine(
                event_type=LineEventType.MALFORMED,
                data=None,
                raw_data=line,
                error=f"Expected a JSON object, got {type(parsed).__name__}",
            )

        return RawLine(event_type=LineEventType.CHUNK, data=parsed, raw_data=line)

    def get_stats(self) -> dict[str, int]:
        """Get parser counters for logging."""
        return self.stats.as_dict()

    def reset_stats(self) -> None:
        self.stats = ParserStats()
