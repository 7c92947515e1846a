"""LanguageModel interface and the BaseProvider ABC shared by the built-in providers."""

from __future__ import annotations

import abc
import logging
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Type,
    Union,
    runtime_checkable,
)

from ..streaming.decoders import AutoDecoder, StreamDecoder, decode_events
from ..tools.models import GenerationResult, StreamChunk, Tool
from ..transport import Transport, raise_for_status
from .history import get_history_formatter

logger = logging.getLogger(__name__)

ToolSpec = Union[Tool, Dict[str, Any]]


# ---------------------------------------------------------------------------
# Interface consumed by the ReAct loop
# ---------------------------------------------------------------------------


@runtime_checkable
class LanguageModel(Protocol):
    """What the ReAct loop needs from a model. Any object with these members works."""

    provider: str
    model_id: str
    history_format: str  # "openai" | "anthropic" | "openai_responses"

    async def do_generate(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[Sequence[ToolSpec]] = None,
        **params: Any,
    ) -> GenerationResult: ...

    def do_stream(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[Sequence[ToolSpec]] = None,
        **params: Any,
    ) -> AsyncIterator[Union[StreamChunk, GenerationResult]]: ...

    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]: ...


# ---------------------------------------------------------------------------
# BaseProvider ABC
# ---------------------------------------------------------------------------


class BaseProvider(abc.ABC):
    """Request building on top of a :class:`~llm_react_toolkit.transport.Transport`.

    Subclasses convert messages and tool definitions into the vendor request
    shape and name their decoder; this class owns the send/stream calls, the
    status check and decoding.
    """

    provider: str = ""
    history_format: str = "openai"
    decoder_class: Type[StreamDecoder] = AutoDecoder

    # Extra kwargs each provider knows how to forward in its request.
    # Subclasses override to whitelist provider-specific params.
    _EXTRA_PARAMS: frozenset[str] = frozenset()

    def __init__(
        self,
        model_id: str,
        *,
        transport: Optional[Transport] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 180.0,
        **kwargs: Any,
    ) -> None:
        self.model_id = model_id
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        if kwargs:
            logger.debug(
                "Ignoring unknown constructor arguments for %s: %s",
                type(self).__name__,
                sorted(kwargs),
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_id={self.model_id!r})"

    # ------------------------------------------------------------------
    # Abstract methods
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def _create_transport(self) -> Transport:
        """Default transport when none was injected."""
        ...

    @abc.abstractmethod
    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]],
        stream: bool,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """Vendor request body for one call."""
        ...

    @abc.abstractmethod
    def _build_tool_definitions(
        self, definitions: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Convert Chat Completions style tool definitions to the vendor shape."""
        ...

    # ------------------------------------------------------------------
    # LanguageModel implementation
    # ------------------------------------------------------------------

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = self._create_transport()
        return self._transport

    def new_decoder(self) -> StreamDecoder:
        return self.decoder_class()

    async def do_generate(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[Sequence[ToolSpec]] = None,
        **params: Any,
    ) -> GenerationResult:
        request = self._prepare_request(messages, tools, stream=False, params=params)
        response = await self.transport.send(request)
        raise_for_status(response.status_code, response.body)
        return self.new_decoder().decode_response(response.body)

    async def do_stream(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[Sequence[ToolSpec]] = None,
        **params: Any,
    ) -> AsyncGenerator[Union[StreamChunk, GenerationResult], None]:
        """Yield text chunks as they arrive, then one :class:`GenerationResult`."""
        request = self._prepare_request(messages, tools, stream=True, params=params)
        stream = await self.transport.stream(request)
        raise_for_status(stream.status_code, stream.body)
        async for item in decode_events(stream.events, self.new_decoder()):
            yield item

    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]:
        return get_history_formatter(self.history_format).format_tool_result(
            tool_call_id, tool_name, content
        )

    def format_assistant_message(self, result: GenerationResult) -> Dict[str, Any]:
        return get_history_formatter(self.history_format).format_assistant_message(
            result
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prepare_request(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[Sequence[ToolSpec]],
        *,
        stream: bool,
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        temperature = params.pop("temperature", None)
        max_output_tokens = params.pop("max_output_tokens", None)
        definitions = [
            tool.to_definition() if isinstance(tool, Tool) else tool
            for tool in tools or []
        ]
        return self._build_request(
            messages,
            tools=self._build_tool_definitions(definitions) if definitions else None,
            stream=stream,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            **self._filter_kwargs(params),
        )

    def _filter_kwargs(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Remove kwargs not in this provider's ``_EXTRA_PARAMS`` whitelist.

        Unknown params are logged at debug level and silently dropped.
        """
        if not kwargs:
            return kwargs
        unknown = set(kwargs) - self._EXTRA_PARAMS
        if unknown:
            logger.debug(
                "Dropping unsupported params for %s: %s",
                type(self).__name__,
                unknown,
            )
        return {k: v for k, v in kwargs.items() if k in self._EXTRA_PARAMS}

    @staticmethod
    def _extract_system(
        messages: List[Dict[str, Any]],
    ) -> tuple[Optional[str], List[Dict[str, Any]]]:
        """Split leading system message(s) from the conversation."""
        system_parts: List[str] = []
        index = 0
        while index < len(messages) and messages[index].get("role") == "system":
            content = messages[index].get("content")
            if content:
                system_parts.append(str(content))
            index += 1
        return ("\n\n".join(system_parts) or None), list(messages[index:])
