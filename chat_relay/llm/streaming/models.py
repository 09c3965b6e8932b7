"""
Dataclasses for line-delimited stream decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class LineEventType(Enum):
    """Kinds of complete lines read from the upstream stream."""
    CHUNK = "chunk"
    COMPLETION = "completion"
    HEARTBEAT = "heartbeat"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class RawLine:
    """One complete upstream line after framing and JSON decoding."""
    event_type: LineEventType
    data: dict[str, Any] | None
    raw_data: str
    error: str | None = None


@dataclass
class ParserStats:
    """Counters for one relay, logged when the stream ends."""
    total_lines: int = 0
    content_lines: int = 0
    malformed_lines: int = 0
    heartbeat_lines: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "total_lines": self.total_lines,
            "content_lines": self.content_lines,
            "malformed_lines": self.malformed_lines,
            "heartbeat_lines": self.heartbeat_lines,
        }
