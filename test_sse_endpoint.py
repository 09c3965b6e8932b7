#!/usr/bin/env python3
"""
Tests for the /chat endpoint wire format.
"""

import httpx
from fastapi.testclient import TestClient

from chat_relay.llm.models import DeltaEvent, ErrorEvent, format_sse
from conftest import ndjson, ollama_unit


def scenario_handler(request: httpx.Request) -> httpx.Response:
    body = ndjson(ollama_unit("Hel"), ollama_unit("lo"), {"done": True})
    return httpx.Response(200, content=body)


class TestFormatSse:
    def test_delta_frame(self):
        assert format_sse(DeltaEvent("Hel")) == 'data: {"content":"Hel"}\n\n'

    def test_error_frame(self):
        assert format_sse(ErrorEvent("boom")) == 'data: {"error":"boom"}\n\n'

    def test_non_ascii_and_newlines(self):
        assert format_sse(DeltaEvent("héllo\nworld")) == (
            'data: {"content":"héllo\\nworld"}\n\n'
        )


class TestChatEndpoint:
    def test_scenario(self, build_app):
        with TestClient(build_app(scenario_handler)) as client:
            response = client.post(
                "/chat", json={"messages": [{"role": "user", "content": "hi"}]}
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == (
            'data: {"content":"Hel"}\n\n'
            'data: {"content":"lo"}\n\n'
        )

    def test_invalid_json_body_is_error_event(self, build_app):
        with TestClient(build_app(scenario_handler)) as client:
            response = client.post(
                "/chat",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 200
        assert response.text.startswith(
            'data: {"error":"Invalid messages array provided'
        )
        assert response.text.count("data: ") == 1

    def test_missing_messages_is_error_event(self, build_app):
        with TestClient(build_app(scenario_handler)) as client:
            response = client.post("/chat", json={"messages": []})

        assert response.text.count("data: ") == 1
        assert '"error"' in response.text

    def test_upstream_down_is_error_event(self, build_app):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        with TestClient(build_app(handler)) as client:
            response = client.post(
                "/chat", json={"messages": [{"role": "user", "content": "hi"}]}
            )

        assert response.status_code == 200
        assert response.text.startswith('data: {"error":"Could not connect')

    def test_chat_is_not_gated(self, build_app):
        with TestClient(build_app(scenario_handler)) as client:
            response = client.post(
                "/chat", json={"messages": [{"role": "user", "content": "hi"}]}
            )
        assert response.status_code == 200


class TestHealth:
    def test_root(self, build_app):
        with TestClient(build_app()) as client:
            response = client.get("/")
        assert response.status_code == 200
        assert response.text == "Backend is running!"
