"""HTTP surface: the SSE chat endpoint plus user and conversation routes."""

from .app import create_app

__all__ = ["create_app"]
