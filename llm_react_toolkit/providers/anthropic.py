"""Anthropic Messages API provider."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from ..streaming.decoders import BlockIndexedDecoder
from ..transport import AnthropicSDKTransport, Transport
from . import register_provider
from ._base import BaseProvider

logger = logging.getLogger(__name__)

# Default max_tokens for Anthropic (required parameter)
_DEFAULT_MAX_TOKENS = 4096


@register_provider("anthropic")
class AnthropicModel(BaseProvider):
    """Provider for the Messages API (block-indexed stream dialect)."""

    provider = "anthropic"
    history_format = "anthropic"
    decoder_class = BlockIndexedDecoder

    _EXTRA_PARAMS: frozenset[str] = frozenset(
        {"top_k", "top_p", "stop_sequences", "metadata", "thinking", "tool_choice"}
    )

    def __init__(
        self,
        model_id: str,
        *,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
        **kwargs: Any,
    ) -> None:
        super().__init__(model_id, **kwargs)
        self._default_max_tokens = max_tokens

    def _create_transport(self) -> Transport:
        return AnthropicSDKTransport(
            api_key=self.api_key, base_url=self.base_url, timeout=self.timeout
        )

    # ------------------------------------------------------------------
    # Message conversion: Chat Completions → Anthropic Messages API
    # ------------------------------------------------------------------

    @staticmethod
    def _convert_messages(
        messages: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Convert conversation messages to Anthropic format.

        Messages already in Anthropic shape (list content) pass through.
        Handles:
        - assistant messages with tool_calls → content blocks
        - tool result messages → user messages with tool_result blocks
        - Consecutive same-role messages → merged
        """
        converted: List[Dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role")

            if role == "system":
                continue  # Handled separately

            elif role == "user":
                content = msg.get("content", "")
                if isinstance(content, str):
                    blocks = [{"type": "text", "text": content}]
                elif isinstance(content, list):
                    blocks = list(content)
                else:
                    blocks = [{"type": "text", "text": str(content)}]
                converted.append({"role": "user", "content": blocks})

            elif role == "assistant":
                content = msg.get("content")
                if isinstance(content, list):
                    assistant_blocks = list(content)
                else:
                    assistant_blocks = []
                    if content:
                        assistant_blocks.append({"type": "text", "text": content})
                for tc in msg.get("tool_calls") or []:
                    func = tc.get("function", {})
                    try:
                        input_args = json.loads(func.get("arguments") or "{}")
                    except (json.JSONDecodeError, TypeError):
                        input_args = {}
                    assistant_blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.get("id", ""),
                            "name": func.get("name", ""),
                            "input": input_args if isinstance(input_args, dict) else {},
                        }
                    )
                if assistant_blocks:
                    converted.append({"role": "assistant", "content": assistant_blocks})

            elif role == "tool":
                # Tool results must be user messages with tool_result content
                converted.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": msg.get("tool_call_id", ""),
                                "content": msg.get("content", ""),
                            }
                        ],
                    }
                )

        return AnthropicModel._merge_consecutive(converted)

    @staticmethod
    def _merge_consecutive(
        messages: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Merge consecutive messages with the same role.

        Anthropic requires alternating user/assistant messages. Every
        converted message carries list content at this point.
        """
        merged: List[Dict[str, Any]] = []
        for msg in messages:
            if merged and msg["role"] == merged[-1]["role"]:
                merged[-1] = {
                    "role": msg["role"],
                    "content": merged[-1]["content"] + msg["content"],
                }
            else:
                merged.append(msg)
        return merged

    # ------------------------------------------------------------------
    # Tool definition building
    # ------------------------------------------------------------------

    def _build_tool_definitions(
        self, definitions: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Convert standard tool definitions to Anthropic format."""
        tools: List[Dict[str, Any]] = []
        for tool_def in definitions:
            if tool_def.get("type") == "function":
                func = tool_def.get("function", {})
                tools.append(
                    {
                        "name": func.get("name"),
                        "description": func.get("description", ""),
                        "input_schema": func.get("parameters")
                        or {"type": "object", "properties": {}},
                    }
                )
        return tools

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
        system, remaining = self._extract_system(messages)
        request: Dict[str, Any] = {
            "model": self.model_id,
            "messages": self._convert_messages(remaining),
            "max_tokens": max_output_tokens or self._default_max_tokens,
        }
        if system:
            request["system"] = system
        if temperature is not None:
            request["temperature"] = temperature
        if tools:
            request["tools"] = tools
        if stream:
            request["stream"] = True

        # Forward any remaining kwargs to the API request
        if kwargs:
            request.update(kwargs)
        return request
