"""
Integration tests for streaming chat completions.

Tests POST /v1/chat/completions with ``stream: true`` (SSE responses).
"""

import json

import pytest
from fastapi.testclient import TestClient

from conduit.api.main import create_app


class TestStreamingChatAPI:
    """Test the SSE variant of /v1/chat/completions."""

    @pytest.fixture
    def sample_request(self):
        return {
            "model": "gpt-3.5-turbo",
            "messages": [{"role": "user", "content": "What is in my notes?"}],
            "stream": True,
        }

    def _events(self, client, payload):
        with client.stream("POST", "/v1/chat/completions", json=payload) as response:
            assert response.status_code == 200
            return [line for line in response.iter_lines() if line]

    def test_stream_returns_event_stream(self, client, sample_request):
        with client.stream("POST", "/v1/chat/completions", json=sample_request) as response:
            assert response.status_code == 200
            assert "text/event-stream" in response.headers.get("content-type", "")

    def test_stream_yields_sse_events(self, client, sample_request):
        lines = self._events(client, sample_request)

        assert all(line.startswith("data: ") for line in lines)
        assert lines[-1] == "data: [DONE]"
        chunks = [json.loads(line[6:]) for line in lines[:-1]]
        assert len({c["id"] for c in chunks}) == 1
        assert all(c["model"] == "gpt-3.5-turbo" for c in chunks)
        assert chunks[0]["choices"][0]["delta"]["role"] == "assistant"
        assert chunks[-1]["choices"][0]["finish_reason"] == "stop"

    def test_stream_matches_non_streaming_reply(self, client, sample_request):
        client.post("/api/memories", json={"title": "Rust", "content": "ownership"})

        lines = self._events(client, sample_request)
        streamed = "".join(
            json.loads(line[6:])["choices"][0]["delta"].get("content", "")
            for line in lines[:-1]
        )
        plain = client.post(
            "/v1/chat/completions", json={**sample_request, "stream": False}
        ).json()

        assert streamed == plain["choices"][0]["message"]["content"]

    def test_stream_unavailable_backend_is_json_error(self, settings, sample_request):
        settings.inference_backend = "none"
        with TestClient(create_app(settings)) as client:
            response = client.post("/v1/chat/completions", json=sample_request)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "inference_unavailable"
