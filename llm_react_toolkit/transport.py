"""Transport capability consumed by the providers, plus SDK-backed implementations.

A transport sends one request dict and returns either a complete body
(:meth:`Transport.send`) or an ordered stream of ``(event_type, payload)``
pairs (:meth:`Transport.stream`). Framing, authentication and base URLs are
the transport's business; the providers and decoders only see payloads.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from .exceptions import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

Event = Tuple[Optional[str], Any]


@dataclass(frozen=True)
class TransportResponse:
    """A complete (non-streaming) response."""

    status_code: int
    body: Any = None


@dataclass
class EventStream:
    """An open streaming response. ``body`` is only read when the status is an error."""

    status_code: int
    events: AsyncIterator[Event]
    body: Any = None


@runtime_checkable
class Transport(Protocol):
    async def send(self, request: Dict[str, Any]) -> TransportResponse: ...

    async def stream(self, request: Dict[str, Any]) -> EventStream: ...


def raise_for_status(status_code: Optional[int], body: Any = None) -> None:
    """Raise :class:`TransportError` unless *status_code* is 2xx."""
    if status_code is None or not 200 <= status_code < 300:
        raise TransportError(status_code=status_code, body=body)


# ---------------------------------------------------------------------------
# SDK-backed transports
# ---------------------------------------------------------------------------


def _to_payload(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return {"_raw_response": obj}


def _to_transport_error(error: Exception) -> TransportError:
    """Map an SDK exception onto :class:`TransportError`."""
    if isinstance(error, TransportError):
        return error
    status_code = getattr(error, "status_code", None)
    body = getattr(error, "body", None)
    if body is None:
        response = getattr(error, "response", None)
        body = getattr(response, "text", None) or str(error)
    if status_code is None:
        return TransportError(f"API connection failed: {error}", body=None)
    return TransportError(status_code=status_code, body=body)


class _SDKTransport:
    """Shared plumbing for transports that wrap a vendor's async SDK client."""

    API_ENV_VAR = ""
    PACKAGE = ""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 180.0,
        api_key_env: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.api_key_env = api_key_env or self.API_ENV_VAR
        self._async_client: Any = client  # Lazy-created when None

    def _resolve_api_key(self) -> str:
        key = self.api_key or os.environ.get(self.api_key_env)
        if not key:
            raise ConfigurationError(
                f"API key not found. Provide via api_key argument or "
                f"set the {self.api_key_env} environment variable."
            )
        return key

    def _get_client(self) -> Any:
        raise NotImplementedError

    def _endpoint(self, client: Any) -> Any:
        raise NotImplementedError

    async def send(self, request: Dict[str, Any]) -> TransportResponse:
        client = self._get_client()
        kwargs = {k: v for k, v in request.items() if k not in ("stream", "stream_options")}
        try:
            response = await self._endpoint(client).create(**kwargs)
        except Exception as e:
            logger.error("%s request failed: %s", type(self).__name__, e)
            raise _to_transport_error(e) from e
        return TransportResponse(status_code=200, body=_to_payload(response))

    async def stream(self, request: Dict[str, Any]) -> EventStream:
        client = self._get_client()
        try:
            sdk_stream = await self._endpoint(client).create(**{**request, "stream": True})
        except Exception as e:
            logger.error("%s stream failed to open: %s", type(self).__name__, e)
            raise _to_transport_error(e) from e
        return EventStream(status_code=200, events=self._iterate(sdk_stream))

    async def _iterate(self, sdk_stream: Any) -> AsyncIterator[Event]:
        try:
            async for event in sdk_stream:
                payload = _to_payload(event)
                yield payload.get("type"), payload
        except Exception as e:
            logger.error("%s stream interrupted: %s", type(self).__name__, e)
            raise _to_transport_error(e) from e


class OpenAISDKTransport(_SDKTransport):
    """Transport over ``openai.AsyncOpenAI``.

    ``endpoint`` selects ``"chat.completions"`` (delta-choice events) or
    ``"responses"`` (output-item events). ``base_url`` also serves
    OpenAI-compatible gateways.
    """

    API_ENV_VAR = "OPENAI_API_KEY"
    ENDPOINTS = ("chat.completions", "responses")

    def __init__(self, *, endpoint: str = "chat.completions", **kwargs: Any) -> None:
        if endpoint not in self.ENDPOINTS:
            raise ConfigurationError(
                f"Unknown OpenAI endpoint '{endpoint}'. Expected one of {self.ENDPOINTS}."
            )
        super().__init__(**kwargs)
        self.endpoint = endpoint

    def _get_client(self) -> Any:
        """Lazily import and create an ``AsyncOpenAI`` client."""
        if self._async_client is not None:
            return self._async_client

        try:
            import openai
        except ImportError:
            raise ConfigurationError(
                "OpenAI models require the 'openai' package. "
                "Install it with: pip install llm_react_toolkit[openai]"
            )

        self._async_client = openai.AsyncOpenAI(
            api_key=self._resolve_api_key(),
            base_url=self.base_url or os.environ.get("OPENAI_BASE_URL"),
            timeout=self.timeout,
        )
        return self._async_client

    def _endpoint(self, client: Any) -> Any:
        if self.endpoint == "responses":
            return client.responses
        return client.chat.completions


class AnthropicSDKTransport(_SDKTransport):
    """Transport over ``anthropic.AsyncAnthropic`` (block-indexed events)."""

    API_ENV_VAR = "ANTHROPIC_API_KEY"

    def _get_client(self) -> Any:
        """Lazily import and create an ``AsyncAnthropic`` client."""
        if self._async_client is not None:
            return self._async_client

        try:
            import anthropic
        except ImportError:
            raise ConfigurationError(
                "Anthropic models require the 'anthropic' package. "
                "Install it with: pip install llm_react_toolkit[anthropic]"
            )

        kwargs: Dict[str, Any] = {
            "api_key": self._resolve_api_key(),
            "timeout": self.timeout,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        self._async_client = anthropic.AsyncAnthropic(**kwargs)
        return self._async_client

    def _endpoint(self, client: Any) -> Any:
        return client.messages
