"""Unit tests for status handling and the SDK-backed transports (fake SDK clients)."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from llm_react_toolkit.exceptions import ConfigurationError, TransportError
from llm_react_toolkit.transport import (
    AnthropicSDKTransport,
    OpenAISDKTransport,
    raise_for_status,
)

pytestmark = pytest.mark.asyncio


class _SDKObject:
    """Mimics a pydantic SDK response object."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self._data = data

    def model_dump(self) -> Dict[str, Any]:
        return dict(self._data)


class _FakeSDKStream:
    def __init__(self, events: List[Dict[str, Any]], fail_after: int | None = None) -> None:
        self._events = events
        self._fail_after = fail_after

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for position, event in enumerate(self._events):
            if self._fail_after is not None and position >= self._fail_after:
                raise ConnectionResetError("connection reset by peer")
            yield _SDKObject(event)


class _FakeEndpoint:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class _StatusError(Exception):
    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"status {status_code}")
        self.status_code = status_code
        self.body = body


def _openai_client(endpoint: _FakeEndpoint) -> Any:
    return SimpleNamespace(
        chat=SimpleNamespace(completions=endpoint), responses=endpoint
    )


class TestRaiseForStatus:
    async def test_success_statuses(self) -> None:
        raise_for_status(200)
        raise_for_status(204, "")

    async def test_error_status(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            raise_for_status(503, {"error": "unavailable"})
        assert exc_info.value.status_code == 503
        assert str(exc_info.value).startswith("API request failed with status 503")

    async def test_missing_status(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            raise_for_status(None)
        assert exc_info.value.status_code is None

    async def test_body_snippet_is_truncated(self) -> None:
        error = TransportError(status_code=400, body="x" * 2000)
        assert len(str(error)) < 600


class TestOpenAISDKTransport:
    async def test_send_strips_stream_options(self) -> None:
        endpoint = _FakeEndpoint(response=_SDKObject({"id": "chatcmpl-1", "choices": []}))
        transport = OpenAISDKTransport(client=_openai_client(endpoint))
        response = await transport.send(
            {"model": "m", "messages": [], "stream": True, "stream_options": {}}
        )
        assert response.status_code == 200
        assert response.body == {"id": "chatcmpl-1", "choices": []}
        assert endpoint.calls == [{"model": "m", "messages": []}]

    async def test_stream_yields_typed_events(self) -> None:
        endpoint = _FakeEndpoint(
            response=_FakeSDKStream(
                [
                    {"type": "response.output_text.delta", "delta": "Hi"},
                    {"type": "response.completed", "response": {}},
                ]
            )
        )
        transport = OpenAISDKTransport(endpoint="responses", client=_openai_client(endpoint))
        stream = await transport.stream({"model": "m", "input": []})
        events = [event async for event in stream.events]
        assert [event_type for event_type, _ in events] == [
            "response.output_text.delta",
            "response.completed",
        ]
        assert endpoint.calls[0]["stream"] is True

    async def test_sdk_status_error_is_mapped(self) -> None:
        endpoint = _FakeEndpoint(error=_StatusError(401, {"error": "bad key"}))
        transport = OpenAISDKTransport(client=_openai_client(endpoint))
        with pytest.raises(TransportError) as exc_info:
            await transport.send({"model": "m"})
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == {"error": "bad key"}

    async def test_connection_error_is_mapped(self) -> None:
        endpoint = _FakeEndpoint(error=TimeoutError("timed out"))
        transport = OpenAISDKTransport(client=_openai_client(endpoint))
        with pytest.raises(TransportError) as exc_info:
            await transport.send({"model": "m"})
        assert exc_info.value.status_code is None
        assert "timed out" in str(exc_info.value)

    async def test_interrupted_stream_is_mapped(self) -> None:
        endpoint = _FakeEndpoint(
            response=_FakeSDKStream([{"type": "a"}, {"type": "b"}], fail_after=1)
        )
        transport = OpenAISDKTransport(client=_openai_client(endpoint))
        stream = await transport.stream({"model": "m"})
        with pytest.raises(TransportError):
            async for _ in stream.events:
                pass

    async def test_unknown_endpoint(self) -> None:
        with pytest.raises(ConfigurationError):
            OpenAISDKTransport(endpoint="embeddings")

    async def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_REACT_TEST_MISSING_KEY", raising=False)
        transport = OpenAISDKTransport(api_key_env="LLM_REACT_TEST_MISSING_KEY")
        with pytest.raises(ConfigurationError):
            await transport.send({"model": "m"})


class TestAnthropicSDKTransport:
    async def test_send_uses_messages_endpoint(self) -> None:
        endpoint = _FakeEndpoint(response={"id": "msg_1", "content": []})
        transport = AnthropicSDKTransport(client=SimpleNamespace(messages=endpoint))
        response = await transport.send({"model": "claude", "messages": []})
        assert response.body == {"id": "msg_1", "content": []}
        assert endpoint.calls == [{"model": "claude", "messages": []}]

    async def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            await AnthropicSDKTransport().send({"model": "claude"})
