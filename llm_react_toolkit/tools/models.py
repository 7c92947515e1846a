# llm_react_toolkit/tools/models.py
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolCall(BaseModel):
    id: str  # Tool call ID from the provider (generated when the provider sent none)
    name: str  # Name of the function to be called
    arguments: Dict[str, Any] = Field(
        default_factory=dict
    )  # Always a mapping, even when empty


class ToolExecutionResult(BaseModel):
    """Optional rich return type for tool functions, separating LLM content from caller payloads."""

    content: str  # The string to be added to the message history for the LLM
    payload: Any = (
        None  # Data/instructions for the caller (e.g., message details to send)
    )
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None  # Marks the outcome as an error when set


class ToolExecutionOutcome(BaseModel):
    """One outcome per dispatched tool call, in the order the calls were issued."""

    id: str
    name: str  # Name after repair (may be "__invalid__")
    result: str  # Serialized result fed back to the model
    is_error: bool = False
    payload: Any = None  # ToolExecutionResult.payload, when the tool returned one


class GenerationResult(BaseModel):
    """Result of one model call, or of a whole ReAct run when returned by the loop."""

    model_config = ConfigDict(validate_assignment=True)

    text: str = ""
    reasoning: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None  # None, never [], when no tool was called
    raw_response: Any = None

    # Filled in by the ReAct loop
    steps: int = 0
    all_tool_calls: List[List[ToolCall]] = Field(default_factory=list)
    messages: Optional[List[Dict[str, Any]]] = None
    warning: Optional[str] = None

    @field_validator("tool_calls")
    @classmethod
    def _empty_tool_calls_as_none(
        cls, value: Optional[List[ToolCall]]
    ) -> Optional[List[ToolCall]]:
        return value or None


class StreamChunk(BaseModel):
    content: Optional[str] = None  # Text, including <think> markers around reasoning
    done: bool = False
    usage: Optional[Dict[str, int]] = None
    result: Optional[GenerationResult] = None  # Set on the final chunk only


class Tool(BaseModel):
    """A registered tool: its schema as shown to the model, plus the callable that runs it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str  # Unique within one execution set
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None  # JSON Schema for the arguments
    function: Callable[..., Any]

    def to_definition(self) -> Dict[str, Any]:
        """Chat Completions style definition; providers convert it to their own shape."""
        function_def: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.parameters:
            function_def["parameters"] = self.parameters
        return {"type": "function", "function": function_def}
