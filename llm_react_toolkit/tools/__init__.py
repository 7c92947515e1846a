from .arguments import parse_arguments
from .base_tool import BaseTool
from .dispatcher import execute_tool_calls, safe_serialize
from .hooks import HookHandler, create_permission_hook
from .models import (
    GenerationResult,
    StreamChunk,
    Tool,
    ToolCall,
    ToolExecutionOutcome,
    ToolExecutionResult,
)
from .repair import INVALID_TOOL_NAME, repair_tool_call, resolve_tool_name
from .state import SharedState
from .tool_factory import ToolFactory

__all__ = [
    "ToolFactory",
    "BaseTool",
    "Tool",
    "ToolCall",
    "ToolExecutionResult",
    "ToolExecutionOutcome",
    "GenerationResult",
    "StreamChunk",
    "HookHandler",
    "create_permission_hook",
    "SharedState",
    "execute_tool_calls",
    "safe_serialize",
    "parse_arguments",
    "repair_tool_call",
    "resolve_tool_name",
    "INVALID_TOOL_NAME",
]
