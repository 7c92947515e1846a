# llm_react_toolkit/exceptions.py
from typing import Any, Optional


class LLMToolkitError(Exception):
    """Base exception class for the llm_react_toolkit library."""

    pass


class ConfigurationError(LLMToolkitError):
    """Exception raised for configuration errors (e.g., missing SDK or unknown model)."""

    pass


class ProviderError(LLMToolkitError):
    """Exception raised for errors originating from a model call."""

    pass


class TransportError(ProviderError):
    """Exception raised for a non-2xx status or a failed connection.

    ``status_code`` is ``None`` when no response was received at all
    (connection reset, timeout).
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        if message is None:
            if status_code is None:
                message = "API request failed"
            else:
                message = f"API request failed with status {status_code}"
        snippet = str(body)[:500] if body not in (None, "") else ""
        if snippet:
            message = f"{message}: {snippet}"
        super().__init__(message)


class DecodeError(ProviderError):
    """Exception raised for a malformed event payload. Never escapes a stream."""

    pass


class ToolError(LLMToolkitError):
    """Exception raised for errors during tool execution."""

    pass


class PermissionDeniedError(ToolError):
    """Exception raised when a hook vetoes a tool execution."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool execution denied for: {tool_name}")
