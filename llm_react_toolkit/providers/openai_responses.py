"""OpenAI Responses API provider."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..streaming.decoders import OutputItemDecoder
from ..transport import OpenAISDKTransport, Transport
from . import register_provider
from ._base import BaseProvider

logger = logging.getLogger(__name__)


@register_provider("openai_responses")
class OpenAIResponsesModel(BaseProvider):
    """Provider for the Responses API (output-item stream dialect)."""

    provider = "openai_responses"
    history_format = "openai_responses"
    decoder_class = OutputItemDecoder

    API_ENV_VAR = "OPENAI_API_KEY"
    _EXTRA_PARAMS: frozenset[str] = frozenset(
        {
            "top_p",
            "tool_choice",
            "parallel_tool_calls",
            "reasoning",
            "text",
            "store",
            "include",
            "metadata",
            "user",
        }
    )

    def _create_transport(self) -> Transport:
        return OpenAISDKTransport(
            endpoint="responses",
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            api_key_env=self.API_ENV_VAR,
        )

    @staticmethod
    def _convert_to_responses_api(
        messages: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Convert conversation messages to Responses API input items."""
        converted: List[Dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role")
            if role == "tool":
                converted.append(
                    {
                        "type": "function_call_output",
                        "call_id": msg.get("tool_call_id", ""),
                        "output": msg.get("content", ""),
                    }
                )
            elif role == "assistant" and msg.get("tool_calls"):
                if msg.get("content"):
                    converted.append({"role": "assistant", "content": msg["content"]})
                for tc in msg["tool_calls"]:
                    func = tc.get("function", {})
                    converted.append(
                        {
                            "type": "function_call",
                            "call_id": tc.get("id", ""),
                            "name": func.get("name", ""),
                            "arguments": func.get("arguments") or "{}",
                        }
                    )
            elif role == "assistant":
                converted.append({"role": "assistant", "content": msg.get("content") or ""})
            else:
                converted.append(msg)
        return converted

    def _build_tool_definitions(
        self, definitions: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Flatten ``{"type": "function", "function": {...}}`` into Responses tools."""
        tools: List[Dict[str, Any]] = []
        for tool_def in definitions:
            if tool_def.get("type") != "function":
                continue
            func = tool_def.get("function", {})
            tool: Dict[str, Any] = {
                "type": "function",
                "name": func.get("name"),
                "description": func.get("description", ""),
                "parameters": func.get("parameters")
                or {"type": "object", "properties": {}},
            }
            tools.append(tool)
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
        instructions, remaining = self._extract_system(messages)
        request: Dict[str, Any] = {
            "model": self.model_id,
            "input": self._convert_to_responses_api(remaining),
        }
        if instructions:
            request["instructions"] = instructions
        if tools:
            request["tools"] = tools
        if temperature is not None:
            request["temperature"] = temperature
        if max_output_tokens is not None:
            request["max_output_tokens"] = max_output_tokens
        if stream:
            request["stream"] = True

        # Forward any remaining kwargs to the API request
        if kwargs:
            request.update(kwargs)
        return request
