"""Provider-keyed conversation history formats.

The ReAct loop never builds provider messages itself. After each tool batch
it looks up the active provider's ``history_format`` tag here and asks the
formatter for one assistant message plus one tool-result message per outcome.
"""

from __future__ import annotations

import abc
import json
import logging
from typing import Any, Dict, List, Type

from ..exceptions import ConfigurationError
from ..tools.models import GenerationResult

logger = logging.getLogger(__name__)

_formatter_registry: Dict[str, "HistoryFormatter"] = {}


def register_history_format(tag: str):
    """
    Decorator to register a history formatter class under *tag*.

    Args:
        tag (str): The ``history_format`` value providers use to select it.
    """

    def decorator(cls: Type["HistoryFormatter"]):
        if tag in _formatter_registry:
            logger.warning(
                f"History format '{tag}' is already registered. Overwriting with {cls.__name__}."
            )
        cls.tag = tag
        _formatter_registry[tag] = cls()
        return cls

    return decorator


def get_history_formatter(tag: str) -> "HistoryFormatter":
    try:
        return _formatter_registry[tag]
    except KeyError:
        raise ConfigurationError(
            f"Unknown history format '{tag}'. Registered: {sorted(_formatter_registry)}"
        ) from None


class HistoryFormatter(abc.ABC):
    tag: str = ""

    @abc.abstractmethod
    def format_assistant_message(self, result: GenerationResult) -> Dict[str, Any]:
        """The assistant turn that issued ``result.tool_calls``."""
        ...

    @abc.abstractmethod
    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]:
        """One tool result, answering the call with id *tool_call_id*."""
        ...


def _chat_tool_calls(result: GenerationResult) -> List[Dict[str, Any]]:
    return [
        {
            "id": tc.id,
            "type": "function",
            "function": {
                "name": tc.name,
                "arguments": json.dumps(tc.arguments, ensure_ascii=False),
            },
        }
        for tc in result.tool_calls or []
    ]


@register_history_format("openai")
class OpenAIHistoryFormatter(HistoryFormatter):
    """Chat Completions: ``tool_calls`` on the assistant, ``role: tool`` results."""

    def format_assistant_message(self, result: GenerationResult) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": result.text or "",
            "tool_calls": _chat_tool_calls(result),
        }

    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]:
        return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


@register_history_format("openai_responses")
class OpenAIResponsesHistoryFormatter(OpenAIHistoryFormatter):
    """Responses API: results are native ``function_call_output`` items.

    The assistant turn keeps the chat shape; the Responses provider expands
    its ``tool_calls`` into ``function_call`` input items when sending.
    """

    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": tool_call_id,
            "output": content,
        }


@register_history_format("anthropic")
class AnthropicHistoryFormatter(HistoryFormatter):
    """Messages API: content blocks on the assistant, ``tool_result`` blocks in a user turn."""

    def format_assistant_message(self, result: GenerationResult) -> Dict[str, Any]:
        raw = result.raw_response
        if isinstance(raw, dict) and isinstance(raw.get("content"), list):
            # Keeps thinking blocks (and their signatures) in the history.
            # tool_use ids follow result.tool_calls, which fills in missing ones.
            calls = iter(result.tool_calls or [])
            content: List[Any] = []
            for block in raw["content"]:
                if isinstance(block, dict) and block.get("type") == "tool_use":
                    call = next(calls, None)
                    if call is not None:
                        block = {**block, "id": call.id}
                content.append(block)
            return {"role": "assistant", "content": content}

        blocks: List[Dict[str, Any]] = []
        if result.text:
            blocks.append({"type": "text", "text": result.text})
        for tc in result.tool_calls or []:
            blocks.append(
                {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
            )
        return {"role": "assistant", "content": blocks}

    def format_tool_result(
        self, tool_call_id: str, tool_name: str, content: str
    ) -> Dict[str, Any]:
        return {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": tool_call_id, "content": content}
            ],
        }
