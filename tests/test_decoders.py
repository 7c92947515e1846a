"""Unit tests for the three stream dialects, dialect detection and body decoding."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, List, Optional, Tuple

import pytest

from llm_react_toolkit.exceptions import TransportError
from llm_react_toolkit.streaming.accumulator import THINK_CLOSE, THINK_OPEN
from llm_react_toolkit.streaming.decoders import (
    AutoDecoder,
    BlockIndexedDecoder,
    DeltaChoiceDecoder,
    OutputItemDecoder,
    StreamDecoder,
    decode_events,
    detect_dialect,
    parse_event_payload,
    parse_response_body,
)
from llm_react_toolkit.tools.models import GenerationResult, StreamChunk

Event = Tuple[Optional[str], Any]


async def _events(items: List[Event]) -> AsyncIterator[Event]:
    for item in items:
        yield item


async def _drain(
    decoder: StreamDecoder, items: List[Event]
) -> Tuple[str, GenerationResult]:
    text: List[str] = []
    result: Optional[GenerationResult] = None
    async for item in decode_events(_events(items), decoder):
        if isinstance(item, StreamChunk):
            text.append(item.content or "")
        else:
            result = item
    assert result is not None
    return "".join(text), result


def _chunk(delta: dict, finish_reason: Optional[str] = None, **extra: Any) -> Event:
    return None, {"choices": [{"delta": delta, "finish_reason": finish_reason}], **extra}


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


class TestPayloadParsing:
    def test_done_sentinel(self) -> None:
        assert parse_event_payload(" [DONE] ") == "[DONE]"

    def test_empty_payload(self) -> None:
        assert parse_event_payload("") is None
        assert parse_event_payload(None) is None

    def test_truncated_payload_is_repaired(self) -> None:
        assert parse_event_payload('{"a": {"b": 1') == {"a": {"b": 1}}

    def test_bytes_payload(self) -> None:
        assert parse_event_payload(b'{"a": 1}') == {"a": 1}

    def test_body_never_raises(self) -> None:
        assert parse_response_body(None) == {}
        assert parse_response_body("  ") == {}
        assert parse_response_body("garbage") == {"_raw_response": "garbage"}
        assert parse_response_body('{"id": "x"}') == {"id": "x"}


# ---------------------------------------------------------------------------
# Delta-choice dialect
# ---------------------------------------------------------------------------


class TestDeltaChoiceDecoder:
    @pytest.mark.asyncio
    async def test_tool_call_split_across_chunks(self) -> None:
        _, result = await _drain(
            DeltaChoiceDecoder(),
            [
                _chunk({"tool_calls": [{"index": 0, "function": {"name": "foo"}}]}),
                _chunk(
                    {"tool_calls": [{"index": 0, "function": {"arguments": '{"a":1}'}}]}
                ),
                _chunk({}, "tool_calls"),
                (None, "[DONE]"),
            ],
        )
        assert result.tool_calls is not None
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].name == "foo"
        assert result.tool_calls[0].arguments == {"a": 1}
        assert result.finish_reason == "tool_calls"

    def test_huge_tool_call_index_is_skipped(self) -> None:
        decoder = DeltaChoiceDecoder()
        decoder.feed(
            None,
            {"choices": [{"delta": {"tool_calls": [{"index": 5_000_000, "function": {"name": "x"}}]}}]},
        )
        assert decoder.accumulator.slots == []
        assert decoder.finalize().tool_calls is None

    @pytest.mark.asyncio
    async def test_reasoning_then_content_markers(self) -> None:
        text, result = await _drain(
            DeltaChoiceDecoder(),
            [
                _chunk({"reasoning_content": "Thinking "}),
                _chunk({"reasoning_content": "hard."}),
                _chunk({"content": "The answer"}),
                _chunk({"content": " is 4."}, "stop"),
            ],
        )
        assert text == f"{THINK_OPEN}Thinking hard.{THINK_CLOSE}The answer is 4."
        assert text.count("<think>") == 1
        assert text.count("</think>") == 1
        assert text.index("<think>") < text.index("</think>")
        assert result.text == "The answer is 4."
        assert result.reasoning == "Thinking hard."
        assert result.tool_calls is None

    @pytest.mark.asyncio
    async def test_usage_on_final_chunk(self) -> None:
        _, result = await _drain(
            DeltaChoiceDecoder(),
            [
                _chunk({"content": "hi"}, "stop"),
                (
                    None,
                    {
                        "choices": [],
                        "usage": {
                            "prompt_tokens": 3,
                            "completion_tokens": 1,
                            "total_tokens": 4,
                        },
                    },
                ),
                (None, "[DONE]"),
            ],
        )
        assert result.usage == {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4}

    @pytest.mark.asyncio
    async def test_malformed_payloads_are_skipped(self) -> None:
        text, result = await _drain(
            DeltaChoiceDecoder(),
            [
                (None, "{not json"),
                (None, '{"choices": [{"delta": {"content": "Hi"}}]'),
                (None, {"choices": "not-a-list"}),
                _chunk({"content": "!"}),
            ],
        )
        assert text == "Hi!"
        assert result.text == "Hi!"

    @pytest.mark.asyncio
    async def test_stops_at_done(self) -> None:
        text, _ = await _drain(
            DeltaChoiceDecoder(),
            [_chunk({"content": "a"}), (None, "[DONE]"), _chunk({"content": "b"})],
        )
        assert text == "a"

    @pytest.mark.asyncio
    async def test_error_event_raises(self) -> None:
        with pytest.raises(TransportError):
            await _drain(
                DeltaChoiceDecoder(),
                [_chunk({"content": "a"}), ("error", {"error": {"message": "overloaded"}})],
            )

    def test_decode_response(self) -> None:
        body = {
            "id": "chatcmpl-1",
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": "Checking.",
                        "reasoning_content": "Need weather.",
                        "tool_calls": [
                            {
                                "id": "call_1",
                                "type": "function",
                                "function": {
                                    "name": "get_weather",
                                    "arguments": '{"city": "Paris"}',
                                },
                            }
                        ],
                    },
                    "finish_reason": "tool_calls",
                }
            ],
            "usage": {"prompt_tokens": 5, "completion_tokens": 7},
        }
        result = DeltaChoiceDecoder().decode_response(json.dumps(body))
        assert result.text == "Checking."
        assert result.reasoning == "Need weather."
        assert result.tool_calls is not None
        assert result.tool_calls[0].id == "call_1"
        assert result.tool_calls[0].arguments == {"city": "Paris"}
        assert result.usage == {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12}
        assert result.raw_response["id"] == "chatcmpl-1"

    def test_decode_empty_body(self) -> None:
        result = DeltaChoiceDecoder().decode_response("")
        assert result.text == ""
        assert result.tool_calls is None


# ---------------------------------------------------------------------------
# Block-indexed dialect
# ---------------------------------------------------------------------------


def _anthropic_stream() -> List[Event]:
    events = [
        {
            "type": "message_start",
            "message": {
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "model": "claude-test",
                "content": [],
                "usage": {"input_tokens": 10, "output_tokens": 1},
            },
        },
        {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "hmm"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "signature_delta", "signature": "sig"}},
        {"type": "content_block_stop", "index": 0},
        {"type": "content_block_start", "index": 1, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "Hi"}},
        {"type": "content_block_stop", "index": 1},
        {
            "type": "content_block_start",
            "index": 2,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {}},
        },
        {"type": "content_block_delta", "index": 2, "delta": {"type": "input_json_delta", "partial_json": '{"city":'}},
        {"type": "content_block_delta", "index": 2, "delta": {"type": "input_json_delta", "partial_json": ' "Paris"}'}},
        {"type": "content_block_stop", "index": 2},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 5}},
        {"type": "message_stop"},
    ]
    return [(event["type"], event) for event in events]


class TestBlockIndexedDecoder:
    @pytest.mark.asyncio
    async def test_full_stream(self) -> None:
        text, result = await _drain(BlockIndexedDecoder(), _anthropic_stream())

        assert text == f"{THINK_OPEN}hmm{THINK_CLOSE}Hi"
        assert result.text == "Hi"
        assert result.reasoning == "hmm"
        assert result.finish_reason == "tool_use"
        assert result.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        assert result.tool_calls is not None
        assert len(result.tool_calls) == 1
        call = result.tool_calls[0]
        assert (call.id, call.name, call.arguments) == ("toolu_1", "get_weather", {"city": "Paris"})

    @pytest.mark.asyncio
    async def test_raw_response_rebuilds_content_blocks(self) -> None:
        _, result = await _drain(BlockIndexedDecoder(), _anthropic_stream())
        raw = result.raw_response
        assert raw["id"] == "msg_1"
        assert raw["stop_reason"] == "tool_use"
        assert raw["content"] == [
            {"type": "thinking", "thinking": "hmm", "signature": "sig"},
            {"type": "text", "text": "Hi"},
            {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"city": "Paris"}},
        ]

    @pytest.mark.asyncio
    async def test_proxy_passthrough(self) -> None:
        text, result = await _drain(
            BlockIndexedDecoder(),
            [_chunk({"content": "via proxy"}, "stop"), (None, "[DONE]")],
        )
        assert text == "via proxy"
        assert result.finish_reason == "stop"

    def test_decode_response(self) -> None:
        body = {
            "id": "msg_2",
            "type": "message",
            "role": "assistant",
            "content": [
                {"type": "thinking", "thinking": "plan", "signature": "s"},
                {"type": "text", "text": "Sure."},
                {"type": "tool_use", "id": "toolu_9", "name": "lookup", "input": {"q": "x"}},
            ],
            "stop_reason": "tool_use",
            "usage": {"input_tokens": 4, "output_tokens": 6},
        }
        result = BlockIndexedDecoder().decode_response(body)
        assert result.text == "Sure."
        assert result.reasoning == "plan"
        assert result.tool_calls is not None
        assert result.tool_calls[0].arguments == {"q": "x"}
        assert result.usage == {"prompt_tokens": 4, "completion_tokens": 6, "total_tokens": 10}
        assert result.raw_response["content"][0]["signature"] == "s"


# ---------------------------------------------------------------------------
# Output-item dialect
# ---------------------------------------------------------------------------


def _responses_completed(output: List[dict], **extra: Any) -> Event:
    response = {
        "id": "resp_1",
        "object": "response",
        "status": "completed",
        "output": output,
        **extra,
    }
    return "response.completed", {"type": "response.completed", "response": response}


class TestOutputItemDecoder:
    @pytest.mark.asyncio
    async def test_deltas_then_done_events_do_not_double_append(self) -> None:
        function_item = {
            "type": "function_call",
            "call_id": "call_1",
            "name": "get_weather",
            "arguments": '{"city": "Oslo"}',
        }
        events: List[Event] = [
            ("response.created", {"type": "response.created", "response": {"id": "resp_1"}}),
            (
                "response.output_item.added",
                {"type": "response.output_item.added", "output_index": 0, "item": {"type": "reasoning", "summary": []}},
            ),
            (
                "response.reasoning_summary_text.delta",
                {"type": "response.reasoning_summary_text.delta", "output_index": 0, "delta": "plan"},
            ),
            (
                "response.output_item.done",
                {
                    "type": "response.output_item.done",
                    "output_index": 0,
                    "item": {"type": "reasoning", "summary": [{"type": "summary_text", "text": "plan"}]},
                },
            ),
            (
                "response.output_text.delta",
                {"type": "response.output_text.delta", "output_index": 1, "delta": "Hello"},
            ),
            (
                "response.output_item.added",
                {
                    "type": "response.output_item.added",
                    "output_index": 2,
                    "item": {**function_item, "arguments": ""},
                },
            ),
            (
                "response.function_call_arguments.delta",
                {"type": "response.function_call_arguments.delta", "output_index": 2, "delta": '{"city": "Oslo"}'},
            ),
            (
                "response.function_call_arguments.done",
                {"type": "response.function_call_arguments.done", "output_index": 2, "arguments": '{"city": "Oslo"}'},
            ),
            (
                "response.output_item.done",
                {"type": "response.output_item.done", "output_index": 2, "item": function_item},
            ),
            _responses_completed(
                [
                    {"type": "reasoning", "summary": [{"type": "summary_text", "text": "plan"}]},
                    {"type": "message", "content": [{"type": "output_text", "text": "Hello"}]},
                    function_item,
                ],
                usage={
                    "input_tokens": 7,
                    "output_tokens": 3,
                    "total_tokens": 10,
                    "output_tokens_details": {"reasoning_tokens": 2},
                },
            ),
        ]
        decoder = OutputItemDecoder()
        text, result = await _drain(decoder, events)

        assert text == f"{THINK_OPEN}plan{THINK_CLOSE}Hello"
        assert result.text == "Hello"
        assert result.reasoning == "plan"
        assert result.finish_reason == "completed"
        assert result.tool_calls is not None
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].id == "call_1"
        assert result.tool_calls[0].arguments == {"city": "Oslo"}
        assert result.usage == {
            "prompt_tokens": 7,
            "completion_tokens": 3,
            "total_tokens": 10,
            "reasoning_tokens": 2,
        }
        assert decoder.response_id == "resp_1"
        assert result.raw_response["id"] == "resp_1"

    @pytest.mark.asyncio
    async def test_events_without_output_index_share_one_slot(self) -> None:
        added = {"type": "function_call", "id": "fc_1", "call_id": "c1", "name": "foo", "arguments": ""}
        done = {**added, "arguments": '{"a":1}'}
        _, result = await _drain(
            OutputItemDecoder(),
            [
                ("response.output_item.added", {"type": "response.output_item.added", "item": added}),
                (
                    "response.function_call_arguments.delta",
                    {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "delta": '{"a":'},
                ),
                (
                    "response.function_call_arguments.delta",
                    {"type": "response.function_call_arguments.delta", "delta": "1}"},
                ),
                ("response.output_item.done", {"type": "response.output_item.done", "item": done}),
                _responses_completed(
                    [{"type": "message", "content": [{"type": "output_text", "text": ""}]}, done]
                ),
            ],
        )
        assert result.tool_calls is not None
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].id == "c1"
        assert result.tool_calls[0].arguments == {"a": 1}

    @pytest.mark.asyncio
    async def test_second_call_without_output_index_gets_own_slot(self) -> None:
        first = {"type": "function_call", "call_id": "c1", "name": "foo", "arguments": "{}"}
        second = {"type": "function_call", "call_id": "c2", "name": "bar", "arguments": "{}"}
        _, result = await _drain(
            OutputItemDecoder(),
            [
                ("response.output_item.added", {"type": "response.output_item.added", "item": first}),
                ("response.output_item.done", {"type": "response.output_item.done", "item": first}),
                ("response.output_item.added", {"type": "response.output_item.added", "item": second}),
                ("response.output_item.done", {"type": "response.output_item.done", "item": second}),
                _responses_completed([first, second]),
            ],
        )
        assert [(c.id, c.name) for c in result.tool_calls] == [("c1", "foo"), ("c2", "bar")]

    @pytest.mark.asyncio
    async def test_terminal_event_backfills_missing_content(self) -> None:
        text, result = await _drain(
            OutputItemDecoder(),
            [
                _responses_completed(
                    [
                        {"type": "reasoning", "summary": [{"type": "summary_text", "text": "why"}]},
                        {"type": "message", "content": [{"type": "output_text", "text": "Answer"}]},
                    ]
                )
            ],
        )
        assert text == f"{THINK_OPEN}why{THINK_CLOSE}Answer"
        assert result.text == "Answer"
        assert result.reasoning == "why"

    @pytest.mark.asyncio
    async def test_late_reasoning_is_recorded_silently(self) -> None:
        text, result = await _drain(
            OutputItemDecoder(),
            [
                ("response.output_text.delta", {"type": "response.output_text.delta", "delta": "Done"}),
                _responses_completed(
                    [
                        {"type": "reasoning", "summary": [{"type": "summary_text", "text": "late"}]},
                        {"type": "message", "content": [{"type": "output_text", "text": "Done"}]},
                    ]
                ),
            ],
        )
        assert text == "Done"
        assert result.reasoning == "late"

    @pytest.mark.asyncio
    async def test_failed_response_raises(self) -> None:
        with pytest.raises(TransportError):
            await _drain(
                OutputItemDecoder(),
                [
                    (
                        "response.failed",
                        {"type": "response.failed", "response": {"error": {"message": "boom"}}},
                    )
                ],
            )

    def test_decode_response(self) -> None:
        body = {
            "id": "resp_2",
            "object": "response",
            "status": "completed",
            "output": [
                {
                    "type": "function_call",
                    "call_id": "call_7",
                    "name": "lookup",
                    "arguments": '{"q": "y"}',
                }
            ],
        }
        decoder = OutputItemDecoder()
        result = decoder.decode_response(body)
        assert decoder.response_id == "resp_2"
        assert result.tool_calls is not None
        assert result.tool_calls[0].name == "lookup"
        assert result.tool_calls[0].arguments == {"q": "y"}
        assert result.text == ""


# ---------------------------------------------------------------------------
# Dialect detection
# ---------------------------------------------------------------------------


class TestAutoDecoder:
    @pytest.mark.parametrize(
        "event_type,data,expected",
        [
            (None, {"choices": []}, "delta_choice"),
            ("response.created", {}, "output_item"),
            (None, {"type": "content_block_delta"}, "block_indexed"),
            (None, {"object": "response", "output": []}, "output_item"),
            (None, {"type": "message", "content": []}, "block_indexed"),
            (None, {"something": "else"}, None),
        ],
    )
    def test_detect_dialect(self, event_type: Optional[str], data: dict, expected: Optional[str]) -> None:
        assert detect_dialect(event_type, data) == expected

    @pytest.mark.asyncio
    async def test_delegates_to_detected_dialect(self) -> None:
        decoder = AutoDecoder()
        text, result = await _drain(decoder, [(None, {"hello": 1})] + _anthropic_stream())
        assert isinstance(decoder.delegate, BlockIndexedDecoder)
        assert result.text == "Hi"
        assert result.raw_response["content"][1] == {"type": "text", "text": "Hi"}

    def test_decode_response_detects_dialect(self) -> None:
        result = AutoDecoder().decode_response(
            {"choices": [{"message": {"content": "plain"}, "finish_reason": "stop"}]}
        )
        assert result.text == "plain"
