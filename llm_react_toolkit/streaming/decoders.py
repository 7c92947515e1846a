"""Stream decoders: one per provider event dialect.

A decoder is fed ``(event_type, payload)`` pairs in arrival order, turns
each into canonical deltas, and applies them to its
:class:`~llm_react_toolkit.streaming.accumulator.DeltaAccumulator`. The same
decoder also handles a complete non-streaming response body via
:meth:`StreamDecoder.decode_response`.

Dialects
--------
``block_indexed``
    ``message_start`` / ``content_block_start|delta|stop`` /
    ``message_delta`` / ``message_stop`` (Anthropic Messages).
``delta_choice``
    ``choices[0].delta`` chunks (Chat Completions and compatible proxies).
``output_item``
    ``response.*`` events addressed by ``output_index`` (Responses API).
"""

from __future__ import annotations

import abc
import json
import logging
from collections.abc import Mapping
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterable,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from ..exceptions import DecodeError, TransportError
from ..json_repair import fix
from ..tools.arguments import parse_arguments
from ..tools.models import GenerationResult, StreamChunk
from .accumulator import DeltaAccumulator
from .deltas import (
    CanonicalDelta,
    FinishDelta,
    ReasoningDelta,
    ReasoningEnd,
    TextDelta,
    ToolCallFragment,
    UsageDelta,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

_BLOCK_EVENTS = frozenset(
    {
        "message_start",
        "content_block_start",
        "content_block_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
        "ping",
    }
)

_MALFORMED_EVENT_ERRORS = (AttributeError, IndexError, KeyError, TypeError, ValueError)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def parse_event_payload(payload: Any) -> Union[Dict[str, Any], str, None]:
    """Decode one event payload into a dict.

    Returns ``None`` for an empty payload and :data:`DONE_SENTINEL` for the
    end-of-stream marker. Truncated JSON is repaired with
    :func:`~llm_react_toolkit.json_repair.fix`; anything still unreadable
    raises :class:`DecodeError`.
    """
    if payload is None:
        return None
    if isinstance(payload, Mapping):
        return dict(payload)
    if hasattr(payload, "model_dump"):
        return payload.model_dump()
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if not isinstance(payload, str):
        raise DecodeError(f"Unsupported payload type: {type(payload).__name__}")

    text = payload.strip()
    if not text:
        return None
    if text == DONE_SENTINEL:
        return DONE_SENTINEL
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = json.loads(fix(text))
        except json.JSONDecodeError as e:
            raise DecodeError(f"Malformed event payload: {text[:200]}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"Event payload is not an object: {text[:200]}")
    return data


def parse_response_body(body: Any) -> Dict[str, Any]:
    """Decode a complete response body. Never raises.

    An empty body decodes to ``{}``; an unreadable one is kept as
    ``{"_raw_response": text}``.
    """
    if body is None:
        return {}
    if isinstance(body, Mapping):
        return dict(body)
    if hasattr(body, "model_dump"):
        return body.model_dump()
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    text = str(body).strip()
    if not text:
        return {}
    for candidate in (text, fix(text)):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return {"_raw_response": text}


def _event_kind(event_type: Optional[str], data: Dict[str, Any]) -> str:
    kind = data.get("type")
    if isinstance(kind, str) and kind:
        return kind
    return event_type or ""


def _delta_text(delta: Any, keys: Tuple[str, ...] = ("text",)) -> str:
    if isinstance(delta, str):
        return delta
    if isinstance(delta, dict):
        for key in keys:
            value = delta.get(key)
            if isinstance(value, str):
                return value
    return ""


def _int_or_none(value: Any) -> Optional[int]:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


# ---------------------------------------------------------------------------
# Base decoder
# ---------------------------------------------------------------------------


class StreamDecoder(abc.ABC):
    """Sequential decoder for one streaming call. Not reusable across calls."""

    dialect: str = ""

    def __init__(self, accumulator: Optional[DeltaAccumulator] = None) -> None:
        self.accumulator = accumulator if accumulator is not None else DeltaAccumulator()
        self.last_event: Optional[Dict[str, Any]] = None
        self._done = False

    @property
    def done(self) -> bool:
        """True once a terminal event has been seen."""
        return self._done

    def feed(self, event_type: Optional[str], payload: Any) -> List[str]:
        """Apply one event and return the text it emits (possibly empty).

        Malformed payloads are logged and skipped. A provider error event
        raises :class:`TransportError`.
        """
        try:
            data = parse_event_payload(payload)
        except DecodeError as e:
            logger.warning("%s decoder skipped an event: %s", self.dialect, e)
            return []
        if data is None:
            return []
        if data == DONE_SENTINEL:
            self._done = True
            return []

        if event_type == "error" or data.get("type") == "error":
            raise TransportError(
                "Provider reported an error mid-stream", body=data.get("error", data)
            )

        self.last_event = data
        emitted: List[str] = []
        try:
            for delta in self.translate(event_type, data):
                emitted.extend(self.accumulator.apply(delta))
        except _MALFORMED_EVENT_ERRORS as e:
            logger.warning(
                "%s decoder skipped malformed '%s' event: %s",
                self.dialect,
                _event_kind(event_type, data),
                e,
            )
        return emitted

    def finish(self) -> List[str]:
        """Close any open reasoning section at end of stream."""
        return self.accumulator.close()

    def finalize(self) -> GenerationResult:
        return self.accumulator.finalize(self.raw_response())

    def raw_response(self) -> Any:
        return self.last_event

    def decode_response(self, body: Any) -> GenerationResult:
        """Decode one complete (non-streaming) response body."""
        data = parse_response_body(body)
        for delta in self.translate_response(data):
            self.accumulator.apply(delta)
        self.accumulator.close()
        return self.accumulator.finalize(data)

    @abc.abstractmethod
    def translate(
        self, event_type: Optional[str], data: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        """Canonical deltas for one streaming event."""
        ...

    @abc.abstractmethod
    def translate_response(self, body: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        """Canonical deltas for one complete response body."""
        ...


# ---------------------------------------------------------------------------
# Delta-choice dialect
# ---------------------------------------------------------------------------


class DeltaChoiceDecoder(StreamDecoder):
    """``choices[0].delta`` chunks: content, reasoning_content and indexed tool_calls."""

    dialect = "delta_choice"

    def translate(
        self, event_type: Optional[str], data: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        usage = data.get("usage")
        if isinstance(usage, dict):
            yield self._usage(usage)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return
        choice = choices[0] or {}
        delta = choice.get("delta") or choice.get("message") or {}

        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            yield ReasoningDelta(reasoning)

        content = delta.get("content")
        if isinstance(content, str) and content:
            yield TextDelta(content)

        yield from self._tool_call_fragments(delta.get("tool_calls"))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            yield FinishDelta(str(finish_reason))

    def translate_response(self, body: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        choices = body.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0] or {}
            message = choice.get("message") or {}

            reasoning = message.get("reasoning_content") or message.get("reasoning")
            if isinstance(reasoning, str) and reasoning:
                yield ReasoningDelta(reasoning)
                yield ReasoningEnd()

            content = message.get("content")
            if isinstance(content, list):
                content = "".join(_delta_text(part) for part in content)
            if isinstance(content, str) and content:
                yield TextDelta(content)

            yield from self._tool_call_fragments(message.get("tool_calls"))

            if choice.get("finish_reason"):
                yield FinishDelta(str(choice["finish_reason"]))

        usage = body.get("usage")
        if isinstance(usage, dict):
            yield self._usage(usage)

    def _tool_call_fragments(self, tool_calls: Any) -> Iterator[ToolCallFragment]:
        if not isinstance(tool_calls, list):
            return
        # Calls without an index are appended after the existing slots.
        next_index = len(self.accumulator.slots)
        for tool_call in tool_calls:
            if not isinstance(tool_call, dict):
                continue
            index = _int_or_none(tool_call.get("index"))
            if index is None:
                index = next_index
            next_index = max(next_index, index + 1)

            function = tool_call.get("function") or {}
            name = function.get("name") or tool_call.get("name") or tool_call.get("tool_name")
            if "arguments" in function:
                arguments = function.get("arguments")
            else:
                arguments = tool_call.get("arguments")
            if not isinstance(arguments, (str, dict)) or arguments == "":
                arguments = None

            yield ToolCallFragment(
                index=index,
                id=tool_call.get("id") or None,
                name=name or None,
                arguments=arguments,
            )

    @staticmethod
    def _usage(usage: Dict[str, Any]) -> UsageDelta:
        details = usage.get("completion_tokens_details") or {}
        return UsageDelta(
            prompt_tokens=_int_or_none(usage.get("prompt_tokens")),
            completion_tokens=_int_or_none(usage.get("completion_tokens")),
            total_tokens=_int_or_none(usage.get("total_tokens")),
            reasoning_tokens=_int_or_none(details.get("reasoning_tokens")),
        )


# ---------------------------------------------------------------------------
# Block-indexed dialect
# ---------------------------------------------------------------------------


class BlockIndexedDecoder(StreamDecoder):
    """Anthropic-style content blocks addressed by ``index``.

    Events carrying ``choices`` (an OpenAI-compatible proxy in front of the
    model) are routed through the delta-choice rules on the same accumulator.
    """

    dialect = "block_indexed"

    def __init__(self, accumulator: Optional[DeltaAccumulator] = None) -> None:
        super().__init__(accumulator)
        self._message: Dict[str, Any] = {}
        self._blocks: Dict[int, Dict[str, Any]] = {}
        self._proxy = DeltaChoiceDecoder(self.accumulator)
        self._proxied = False

    def translate(
        self, event_type: Optional[str], data: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        if "choices" in data:
            self._proxied = True
            yield from self._proxy.translate(event_type, data)
            return

        kind = _event_kind(event_type, data)

        if kind == "message_start":
            message = data.get("message") or {}
            self._message = {k: v for k, v in message.items() if k != "content"}
            usage = message.get("usage") or {}
            yield UsageDelta(
                prompt_tokens=_int_or_none(usage.get("input_tokens")),
                completion_tokens=_int_or_none(usage.get("output_tokens")),
            )

        elif kind == "content_block_start":
            index = _int_or_none(data.get("index")) or 0
            block = data.get("content_block") or {}
            yield from self._open_block(index, block)

        elif kind == "content_block_delta":
            index = _int_or_none(data.get("index")) or 0
            yield from self._block_delta(index, data.get("delta") or {})

        elif kind == "content_block_stop":
            yield ReasoningEnd()

        elif kind == "message_delta":
            delta = data.get("delta") or {}
            if delta.get("stop_reason"):
                yield FinishDelta(str(delta["stop_reason"]))
            usage = data.get("usage") or {}
            if usage:
                yield UsageDelta(
                    prompt_tokens=_int_or_none(usage.get("input_tokens")),
                    completion_tokens=_int_or_none(usage.get("output_tokens")),
                )

        elif kind == "message_stop":
            self._done = True

    def _open_block(
        self, index: int, block: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        block_type = block.get("type")
        if block_type == "tool_use":
            tool_input = block.get("input")
            self._blocks[index] = {
                "type": "tool_use",
                "id": block.get("id", ""),
                "name": block.get("name", ""),
                "input": tool_input if isinstance(tool_input, dict) else {},
            }
            yield ToolCallFragment(
                index=index,
                id=block.get("id") or None,
                name=block.get("name") or None,
                # An empty placeholder input is filled by input_json_delta events.
                arguments=tool_input if isinstance(tool_input, dict) and tool_input else None,
            )
        elif block_type == "thinking":
            thinking = block.get("thinking") or ""
            self._blocks[index] = {"type": "thinking", "thinking": thinking}
            if block.get("signature"):
                self._blocks[index]["signature"] = block["signature"]
            yield ReasoningDelta(thinking)
        elif block_type == "text":
            text = block.get("text") or ""
            self._blocks[index] = {"type": "text", "text": text}
            if text:
                yield TextDelta(text)
        else:
            self._blocks[index] = dict(block)

    def _block_delta(
        self, index: int, delta: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        delta_type = delta.get("type")
        block = self._blocks.setdefault(index, {})
        if delta_type == "text_delta":
            text = delta.get("text") or ""
            block.setdefault("type", "text")
            block["text"] = block.get("text", "") + text
            yield TextDelta(text)
        elif delta_type == "thinking_delta":
            thinking = delta.get("thinking") or ""
            block.setdefault("type", "thinking")
            block["thinking"] = block.get("thinking", "") + thinking
            yield ReasoningDelta(thinking)
        elif delta_type == "input_json_delta":
            partial = delta.get("partial_json")
            if isinstance(partial, str) and partial:
                yield ToolCallFragment(index=index, arguments=partial)
        elif delta_type == "signature_delta":
            block["signature"] = block.get("signature", "") + (delta.get("signature") or "")

    def translate_response(self, body: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        if "choices" in body:
            yield from self._proxy.translate_response(body)
            return

        content = body.get("content")
        if isinstance(content, list):
            for index, block in enumerate(content):
                if not isinstance(block, dict):
                    continue
                block_type = block.get("type")
                if block_type == "text" and block.get("text"):
                    yield TextDelta(block["text"])
                elif block_type == "thinking" and block.get("thinking"):
                    yield ReasoningDelta(block["thinking"])
                    yield ReasoningEnd()
                elif block_type == "tool_use":
                    tool_input = block.get("input")
                    yield ToolCallFragment(
                        index=index,
                        id=block.get("id") or None,
                        name=block.get("name") or None,
                        arguments=tool_input if isinstance(tool_input, (dict, str)) else {},
                    )
        elif isinstance(content, str) and content:
            yield TextDelta(content)

        if body.get("stop_reason"):
            yield FinishDelta(str(body["stop_reason"]))
        usage = body.get("usage") or {}
        if usage:
            yield UsageDelta(
                prompt_tokens=_int_or_none(usage.get("input_tokens")),
                completion_tokens=_int_or_none(usage.get("output_tokens")),
            )

    def raw_response(self) -> Any:
        """The streamed message rebuilt as a complete Messages API body."""
        if self._proxied:
            return self.last_event

        content: List[Dict[str, Any]] = []
        for index in sorted(self._blocks):
            block = dict(self._blocks[index])
            if block.get("type") == "tool_use" and index < len(self.accumulator.slots):
                slot = self.accumulator.slots[index]
                if slot.arguments_is_structured:
                    block["input"] = dict(slot.structured_arguments or {})
                elif slot.raw_arguments:
                    block["input"] = parse_arguments(slot.raw_arguments, block.get("name"))
            content.append(block)

        raw = dict(self._message)
        raw.setdefault("type", "message")
        raw.setdefault("role", "assistant")
        raw["content"] = content
        raw["stop_reason"] = self.accumulator.finish_reason
        return raw


# ---------------------------------------------------------------------------
# Output-item dialect
# ---------------------------------------------------------------------------


def _reasoning_item_text(item: Dict[str, Any]) -> str:
    """Summary text first, then content text, of a reasoning output item."""
    for key in ("summary", "content"):
        parts = item.get(key)
        if isinstance(parts, list):
            text = "".join(_delta_text(part, ("text",)) for part in parts)
            if text:
                return text
        elif isinstance(parts, str) and parts:
            return parts
    return ""


def _message_item_text(item: Dict[str, Any]) -> str:
    content = item.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(_delta_text(part, ("text",)) for part in content)
    return ""


class OutputItemDecoder(StreamDecoder):
    """``response.*`` events from the Responses API, addressed by ``output_index``.

    ``done`` events and the terminal ``response.completed`` repeat content
    that may already have streamed as deltas; they are applied so that the
    end state is the same whether or not the deltas were sent.
    """

    dialect = "output_item"

    def __init__(self, accumulator: Optional[DeltaAccumulator] = None) -> None:
        super().__init__(accumulator)
        self.response_id: Optional[str] = None
        self._response: Dict[str, Any] = {}
        # call_id / item id -> slot, for events that omit output_index.
        self._item_slots: Dict[str, int] = {}
        self._last_call_index = 0

    def translate(
        self, event_type: Optional[str], data: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        kind = _event_kind(event_type, data)

        if kind == "response.created":
            response = data.get("response") or {}
            self.response_id = response.get("id") or self.response_id

        elif kind == "response.output_item.added":
            item = data.get("item") or {}
            yield from self._item_added(
                self._output_index(data, item, fallback=len(self.accumulator.slots)), item
            )

        elif kind in ("response.output_text.delta", "response.content_part.delta"):
            text = _delta_text(data.get("delta"))
            if text:
                yield TextDelta(text)

        elif kind.startswith("response.reasoning") and kind.endswith(".delta"):
            text = _delta_text(data.get("delta"), ("text", "summary_text"))
            if text:
                yield ReasoningDelta(text)

        elif kind == "response.function_call_arguments.delta":
            delta = data.get("delta")
            if isinstance(delta, str) and delta:
                yield ToolCallFragment(index=self._output_index(data), arguments=delta)

        elif kind == "response.function_call_arguments.done":
            arguments = data.get("arguments")
            if isinstance(arguments, str):
                yield ToolCallFragment(
                    index=self._output_index(data), arguments=arguments, replace=True
                )

        elif kind == "response.output_item.done":
            item = data.get("item") or {}
            yield from self._item_done(self._output_index(data, item), item)

        elif kind in ("response.completed", "response.done", "response.incomplete"):
            response = data.get("response") or {}
            self._response = response
            self.response_id = response.get("id") or self.response_id
            yield from self._terminal_deltas(response)
            self._done = True

        elif kind == "response.failed":
            response = data.get("response") or {}
            raise TransportError(
                "Response failed", body=response.get("error") or response
            )

    def _output_index(
        self,
        data: Dict[str, Any],
        item: Optional[Dict[str, Any]] = None,
        fallback: Optional[int] = None,
    ) -> int:
        """Slot for an event: its ``output_index``, else the slot already bound to
        the item's ids, else *fallback*, else the last function-call slot."""
        item = item or {}
        index = _int_or_none(data.get("output_index"))
        if index is None:
            for key in (item.get("call_id"), item.get("id"), data.get("item_id")):
                if key and key in self._item_slots:
                    index = self._item_slots[key]
                    break
        if index is None:
            index = fallback if fallback is not None else self._last_call_index
        if item.get("type") == "function_call":
            for key in (item.get("call_id"), item.get("id")):
                if key:
                    self._item_slots[key] = index
            self._last_call_index = index
        return index

    def _item_added(
        self, index: int, item: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        item_type = item.get("type")
        if item_type == "reasoning":
            yield ReasoningDelta(_reasoning_item_text(item))
        elif item_type == "function_call":
            arguments = item.get("arguments")
            yield ToolCallFragment(
                index=index,
                id=item.get("call_id") or item.get("id") or None,
                name=item.get("name") or None,
                arguments=arguments if isinstance(arguments, dict) or arguments else None,
                replace=True,
            )

    def _item_done(
        self, index: int, item: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        item_type = item.get("type")
        if item_type == "function_call":
            arguments = item.get("arguments")
            yield ToolCallFragment(
                index=index,
                id=item.get("call_id") or item.get("id") or None,
                name=item.get("name") or None,
                arguments=arguments if isinstance(arguments, dict) or arguments else None,
                replace=True,
            )
        elif item_type == "reasoning":
            # Deltas and the done item are treated as alternatives.
            if not self.accumulator.reasoning:
                text = _reasoning_item_text(item)
                if text:
                    yield ReasoningDelta(text)
            yield ReasoningEnd()

    def _terminal_deltas(self, response: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        text_parts: List[str] = []
        reasoning_parts: List[str] = []
        output = response.get("output")
        for index, item in enumerate(output if isinstance(output, list) else []):
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            if item_type == "message":
                text_parts.append(_message_item_text(item))
            elif item_type == "reasoning":
                reasoning_parts.append(_reasoning_item_text(item))
            elif item_type == "function_call":
                yield from self._item_done(self._output_index({}, item, fallback=index), item)

        text = "".join(text_parts)
        reasoning = "".join(reasoning_parts)
        need_text = bool(text) and not self.accumulator.text
        need_reasoning = bool(reasoning) and not self.accumulator.reasoning
        if need_reasoning and not self.accumulator.text:
            yield ReasoningDelta(reasoning)
            yield ReasoningEnd()
        elif need_reasoning:
            # The answer already streamed; record reasoning without emitting it.
            self.accumulator.backfill_reasoning(reasoning)
        if need_text:
            yield TextDelta(text)

        status = response.get("status")
        if status:
            yield FinishDelta(str(status))

        usage = response.get("usage")
        if isinstance(usage, dict):
            details = usage.get("output_tokens_details") or {}
            yield UsageDelta(
                prompt_tokens=_int_or_none(usage.get("input_tokens")),
                completion_tokens=_int_or_none(usage.get("output_tokens")),
                total_tokens=_int_or_none(usage.get("total_tokens")),
                reasoning_tokens=_int_or_none(details.get("reasoning_tokens")),
            )

    def translate_response(self, body: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        self.response_id = body.get("id") or self.response_id
        yield from self._terminal_deltas(body)

    def raw_response(self) -> Any:
        raw = dict(self._response or self.last_event or {})
        if self.response_id:
            raw.setdefault("id", self.response_id)
        return raw


# ---------------------------------------------------------------------------
# Dialect detection
# ---------------------------------------------------------------------------

DECODERS: Dict[str, Type[StreamDecoder]] = {
    DeltaChoiceDecoder.dialect: DeltaChoiceDecoder,
    BlockIndexedDecoder.dialect: BlockIndexedDecoder,
    OutputItemDecoder.dialect: OutputItemDecoder,
}


def detect_dialect(event_type: Optional[str], data: Dict[str, Any]) -> Optional[str]:
    """Guess the dialect of an event (or a complete body) from its shape."""
    if "choices" in data:
        return DeltaChoiceDecoder.dialect
    kind = _event_kind(event_type, data)
    if kind.startswith("response."):
        return OutputItemDecoder.dialect
    if kind in _BLOCK_EVENTS:
        return BlockIndexedDecoder.dialect
    if data.get("object") == "response" or isinstance(data.get("output"), list):
        return OutputItemDecoder.dialect
    if kind == "message" and "content" in data:
        return BlockIndexedDecoder.dialect
    return None


class AutoDecoder(StreamDecoder):
    """Picks a dialect from the first recognisable event and sticks with it."""

    dialect = "auto"

    def __init__(self, accumulator: Optional[DeltaAccumulator] = None) -> None:
        super().__init__(accumulator)
        self.delegate: Optional[StreamDecoder] = None

    @property
    def done(self) -> bool:
        return self._done or (self.delegate is not None and self.delegate.done)

    def _select(self, event_type: Optional[str], data: Dict[str, Any]) -> Optional[StreamDecoder]:
        if self.delegate is None:
            dialect = detect_dialect(event_type, data)
            if dialect is None:
                return None
            logger.debug("Detected stream dialect '%s'", dialect)
            self.delegate = DECODERS[dialect](self.accumulator)
        return self.delegate

    def translate(
        self, event_type: Optional[str], data: Dict[str, Any]
    ) -> Iterator[CanonicalDelta]:
        delegate = self._select(event_type, data)
        if delegate is None:
            logger.debug("Skipping event of unknown dialect: %r", event_type)
            return
        delegate.last_event = data
        yield from delegate.translate(event_type, data)

    def translate_response(self, body: Dict[str, Any]) -> Iterator[CanonicalDelta]:
        delegate = self._select(None, body)
        if delegate is None:
            return
        yield from delegate.translate_response(body)

    def raw_response(self) -> Any:
        if self.delegate is None:
            return self.last_event
        return self.delegate.raw_response()


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


async def decode_events(
    events: AsyncIterable[Tuple[Optional[str], Any]],
    decoder: StreamDecoder,
) -> AsyncGenerator[Union[StreamChunk, GenerationResult], None]:
    """Pull events in order, yield text as :class:`StreamChunk` and finally the result.

    The last item yielded is always a :class:`GenerationResult`.
    """
    async for event_type, payload in events:
        text = "".join(decoder.feed(event_type, payload))
        if text:
            yield StreamChunk(content=text)
        if decoder.done:
            break

    closing = "".join(decoder.finish())
    if closing:
        yield StreamChunk(content=closing)
    yield decoder.finalize()
