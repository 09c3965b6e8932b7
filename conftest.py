"""Shared fixtures: a throwaway config file, upstream fakes and app factory."""

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest
import yaml

from chat_relay.api.app import create_app
from chat_relay.config import Configuration
from chat_relay.history.repositories.sql_repo import AsyncSqlRepo
from chat_relay.llm.client import UpstreamClient
from chat_relay.llm.models import UpstreamConfig

ACCESS_SECRET = "test-access-secret"
ACCESS_HEADERS = {"X-Access-Password": ACCESS_SECRET}


def ndjson(*units: dict) -> bytes:
    """Encode units as newline-delimited JSON."""
    return b"".join(json.dumps(unit).encode("utf-8") + b"\n" for unit in units)


def ollama_unit(content: str, done: bool = False) -> dict:
    return {"model": "llama3", "message": {"role": "assistant", "content": content}, "done": done}


class ChunkStream(httpx.AsyncByteStream):
    """Response body yielding fixed chunks, optionally failing or stalling."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        fail_with: Exception | None = None,
        stall: float | None = None,
    ):
        self.chunks = chunks
        self.fail_with = fail_with
        self.stall = stall
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.stall is not None:
            await asyncio.sleep(self.stall)
        if self.fail_with is not None:
            raise self.fail_with

    async def aclose(self) -> None:
        self.closed = True


def make_upstream(
    handler: Callable[[httpx.Request], httpx.Response],
    **overrides,
) -> UpstreamClient:
    config = UpstreamConfig(**{
        "base_url": "http://upstream.test",
        "chat_path": "/api/chat",
        "model": "llama3",
        **overrides,
    })
    return UpstreamClient(config, transport=httpx.MockTransport(handler))


@pytest.fixture
def config_file(tmp_path):
    """Write a complete config.yaml into a temporary directory."""
    config = {
        "upstream": {
            "base_url": "http://upstream.test",
            "chat_path": "/api/chat",
            "model": "llama3",
            "shape": "auto",
            "connect_timeout": 5.0,
            "read_timeout": 30.0,
            "max_duration": None,
            "extra_body": {},
        },
        "server": {"host": "127.0.0.1", "port": 3001, "cors_origins": ["*"]},
        "repository": {"path": str(tmp_path / "chat.db"), "clear_on_startup": False},
        "access": {
            "header": "X-Access-Password",
            "secret_env": "CHAT_RELAY_ACCESS_SECRET",
        },
        "logging": {"level": "DEBUG"},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def configuration(config_file, monkeypatch):
    monkeypatch.setenv("CHAT_RELAY_ACCESS_SECRET", ACCESS_SECRET)
    return Configuration(str(config_file))


@pytest.fixture
def build_app(configuration, tmp_path):
    """Factory for an app backed by a temporary database and a fake upstream."""

    def _build(handler: Callable[[httpx.Request], httpx.Response] | None = None):
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(200, content=ndjson({"done": True}))

        return create_app(
            configuration,
            repo=AsyncSqlRepo(str(tmp_path / "api.db")),
            upstream=make_upstream(handler),
        )

    return _build
