"""Streaming chat relay with conversation persistence."""

__version__ = "0.1.0"
