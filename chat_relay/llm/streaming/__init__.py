"""
Line-delimited stream decoding for the relay.
"""

from .models import LineEventType, ParserStats, RawLine
from .parser import (
    LineStreamParser,
    extract_ollama_delta,
    extract_openai_delta,
    probe_shape,
)

__all__ = [
    "LineEventType",
    "LineStreamParser",
    "ParserStats",
    "RawLine",
    "extract_ollama_delta",
    "extract_openai_delta",
    "probe_shape",
]
