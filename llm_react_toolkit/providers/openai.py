"""Chat Completions providers (OpenAI and OpenAI-compatible endpoints)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..streaming.decoders import DeltaChoiceDecoder
from ..transport import OpenAISDKTransport, Transport
from . import register_provider
from ._base import BaseProvider

logger = logging.getLogger(__name__)


@register_provider("openai")
class OpenAIChatModel(BaseProvider):
    """Provider for the Chat Completions API (delta-choice stream dialect)."""

    provider = "openai"
    history_format = "openai"
    decoder_class = DeltaChoiceDecoder

    API_ENV_VAR = "OPENAI_API_KEY"
    DEFAULT_BASE_URL: Optional[str] = None
    _MAX_TOKENS_PARAM = "max_completion_tokens"
    _EXTRA_PARAMS: frozenset[str] = frozenset(
        {
            "top_p",
            "stop",
            "seed",
            "presence_penalty",
            "frequency_penalty",
            "tool_choice",
            "parallel_tool_calls",
            "response_format",
            "reasoning_effort",
            "user",
        }
    )

    def __init__(
        self,
        model_id: str,
        *,
        include_stream_usage: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(model_id, **kwargs)
        self.include_stream_usage = include_stream_usage

    def _create_transport(self) -> Transport:
        return OpenAISDKTransport(
            endpoint="chat.completions",
            api_key=self.api_key,
            base_url=self.base_url or self.DEFAULT_BASE_URL,
            timeout=self.timeout,
            api_key_env=self.API_ENV_VAR,
        )

    def _build_tool_definitions(
        self, definitions: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Chat Completions is the native definition format."""
        return definitions

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
        request: Dict[str, Any] = {
            "model": self.model_id,
            "messages": [self._clean_message(m) for m in messages],
        }
        if tools:
            request["tools"] = tools
        if temperature is not None:
            request["temperature"] = temperature
        if max_output_tokens is not None:
            request[self._MAX_TOKENS_PARAM] = max_output_tokens
        if stream:
            request["stream"] = True
            if self.include_stream_usage:
                request["stream_options"] = {"include_usage": True}

        # Forward any remaining kwargs to the API request
        if kwargs:
            request.update(kwargs)
        return request

    @staticmethod
    def _clean_message(message: Dict[str, Any]) -> Dict[str, Any]:
        """Drop an empty ``tool_calls`` list, which the API rejects."""
        if "tool_calls" in message and not message["tool_calls"]:
            return {k: v for k, v in message.items() if k != "tool_calls"}
        return message


@register_provider("deepseek")
class DeepSeekChatModel(OpenAIChatModel):
    """DeepSeek's OpenAI-compatible endpoint; streams ``reasoning_content`` deltas."""

    provider = "deepseek"
    API_ENV_VAR = "DEEPSEEK_API_KEY"
    DEFAULT_BASE_URL = "https://api.deepseek.com"
    _MAX_TOKENS_PARAM = "max_tokens"
