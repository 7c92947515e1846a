"""Unit tests for the provider-keyed history formatters."""

from __future__ import annotations

import json

import pytest

from llm_react_toolkit.exceptions import ConfigurationError
from llm_react_toolkit.providers.history import (
    HistoryFormatter,
    get_history_formatter,
    register_history_format,
)
from llm_react_toolkit.tools.models import GenerationResult, ToolCall


def _result(**kwargs) -> GenerationResult:
    return GenerationResult(
        text="Checking.",
        tool_calls=[ToolCall(id="call_1", name="get_weather", arguments={"city": "Paris"})],
        **kwargs,
    )


class TestOpenAIFormat:
    def test_assistant_message(self) -> None:
        message = get_history_formatter("openai").format_assistant_message(_result())
        assert message["role"] == "assistant"
        assert message["content"] == "Checking."
        tool_call = message["tool_calls"][0]
        assert tool_call["id"] == "call_1"
        assert tool_call["type"] == "function"
        assert tool_call["function"]["name"] == "get_weather"
        assert json.loads(tool_call["function"]["arguments"]) == {"city": "Paris"}

    def test_tool_result(self) -> None:
        assert get_history_formatter("openai").format_tool_result(
            "call_1", "get_weather", "sunny"
        ) == {"role": "tool", "tool_call_id": "call_1", "content": "sunny"}


class TestOpenAIResponsesFormat:
    def test_tool_result_is_function_call_output(self) -> None:
        assert get_history_formatter("openai_responses").format_tool_result(
            "call_1", "get_weather", "sunny"
        ) == {"type": "function_call_output", "call_id": "call_1", "output": "sunny"}

    def test_assistant_message_keeps_chat_shape(self) -> None:
        message = get_history_formatter("openai_responses").format_assistant_message(
            _result()
        )
        assert message["tool_calls"][0]["id"] == "call_1"


class TestAnthropicFormat:
    def test_builds_blocks_without_raw_response(self) -> None:
        message = get_history_formatter("anthropic").format_assistant_message(_result())
        assert message == {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Checking."},
                {
                    "type": "tool_use",
                    "id": "call_1",
                    "name": "get_weather",
                    "input": {"city": "Paris"},
                },
            ],
        }

    def test_reuses_raw_content_blocks(self) -> None:
        blocks = [
            {"type": "thinking", "thinking": "hmm", "signature": "sig"},
            {"type": "tool_use", "id": "call_1", "name": "get_weather", "input": {}},
        ]
        message = get_history_formatter("anthropic").format_assistant_message(
            _result(raw_response={"content": blocks})
        )
        assert message["content"] == blocks
        assert message["content"] is not blocks

    def test_raw_tool_use_ids_follow_tool_calls(self) -> None:
        blocks = [
            {"type": "text", "text": "Checking."},
            {"type": "tool_use", "id": "", "name": "get_weather", "input": {"city": "Paris"}},
        ]
        formatter = get_history_formatter("anthropic")
        message = formatter.format_assistant_message(
            _result(raw_response={"content": blocks})
        )
        tool_use = message["content"][1]
        assert tool_use["id"] == "call_1"
        assert blocks[1]["id"] == ""
        reply = formatter.format_tool_result("call_1", "get_weather", "sunny")
        assert reply["content"][0]["tool_use_id"] == tool_use["id"]

    def test_tool_result(self) -> None:
        assert get_history_formatter("anthropic").format_tool_result(
            "call_1", "get_weather", "sunny"
        ) == {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": "call_1", "content": "sunny"}
            ],
        }


class TestRegistry:
    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigurationError):
            get_history_formatter("carrier_pigeon")

    def test_register_custom_format(self) -> None:
        @register_history_format("plain_test")
        class PlainFormatter(HistoryFormatter):
            def format_assistant_message(self, result):
                return {"role": "assistant", "content": result.text}

            def format_tool_result(self, tool_call_id, tool_name, content):
                return {"role": "user", "content": f"{tool_name}: {content}"}

        formatter = get_history_formatter("plain_test")
        assert isinstance(formatter, PlainFormatter)
        assert formatter.tag == "plain_test"
        assert formatter.format_tool_result("c", "t", "x") == {
            "role": "user",
            "content": "t: x",
        }
