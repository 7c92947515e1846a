# llm_react_toolkit/tools/tool_factory.py
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..exceptions import ToolError
from .dispatcher import execute_tool_calls
from .hooks import HookHandler
from .models import Tool, ToolCall, ToolExecutionOutcome
from .repair import INVALID_TOOL_NAME

module_logger = logging.getLogger(__name__)


class ToolFactory:
    """
    Registry of the tools an LLM may call during a ReAct run.
    Builds provider-neutral tool definitions, supports filtering which tools
    are exposed for a specific call, dispatches batches of tool calls and
    tracks tool usage.
    """

    def __init__(self):
        self.tools: Dict[str, Tool] = {}
        self.tool_usage_counts: Dict[str, int] = defaultdict(int)
        module_logger.debug("ToolFactory initialized.")

    def register_tool(
        self,
        function: Callable,
        name: str,
        description: str,
        parameters: Dict[str, Any] | None = None,
    ) -> Tool:
        """
        Registers a tool function and its definition (schema).

        Args:
            function: The callable (sync or async) to execute. It receives the
                      model's arguments as keyword arguments, plus
                      ``shared_state`` when it declares that parameter.
            name: The name the LLM will use to call the function. Must be unique.
            description: A description for the LLM explaining what the tool does.
            parameters: A JSON Schema object for the function's parameters.
        """
        if name == INVALID_TOOL_NAME:
            raise ToolError(f"'{INVALID_TOOL_NAME}' is reserved for the sentinel tool.")
        if name in self.tools:
            module_logger.warning(f"Tool '{name}' is already registered. Overwriting.")

        if parameters and (
            not isinstance(parameters, dict) or parameters.get("type") != "object"
        ):
            module_logger.warning(
                "Tool '%s' parameters does not seem to be a valid JSON "
                "Schema object. Ensure it follows the provider's expected format.",
                name,
            )

        tool = Tool(
            name=name,
            description=description,
            parameters=parameters,
            function=function,
        )
        self.tools[name] = tool
        self.tool_usage_counts[name] = 0
        module_logger.info(f"Registered tool: {name}")
        return tool

    def register_tool_class(
        self,
        tool_class: type,
        config: Optional[Dict[str, Any]] = None,
        name_override: Optional[str] = None,
        description_override: Optional[str] = None,
        parameters_override: Optional[Dict[str, Any]] = None,
    ) -> Tool:
        """Registers a tool class that inherits from BaseTool."""
        from .base_tool import BaseTool

        if not issubclass(tool_class, BaseTool):
            raise ToolError(f"{tool_class.__name__} must inherit from BaseTool.")

        if not (name_override or tool_class.NAME) or not (
            description_override or tool_class.DESCRIPTION
        ):
            raise ToolError(
                f"Tool class {tool_class.__name__} missing required NAME or DESCRIPTION."
            )

        tool = tool_class.from_config(**(config or {})).as_tool(
            name_override, description_override, parameters_override
        )
        return self.register_tool(
            function=tool.function,
            name=tool.name,
            description=tool.description,
            parameters=tool.parameters,
        )

    def get_tools(self, filter_tool_names: Optional[Iterable[str]] = None) -> List[Tool]:
        """Registered tools, optionally restricted to *filter_tool_names*."""
        if filter_tool_names is None:
            return list(self.tools.values())
        wanted = set(filter_tool_names)
        unknown = wanted - set(self.tools)
        if unknown:
            module_logger.warning(
                "Requested tools are not registered and will be ignored: %s",
                sorted(unknown),
            )
        return [tool for name, tool in self.tools.items() if name in wanted]

    def get_tool_definitions(
        self, filter_tool_names: Optional[Iterable[str]] = None
    ) -> List[Dict[str, Any]]:
        """Chat Completions style definitions for the selected tools."""
        return [tool.to_definition() for tool in self.get_tools(filter_tool_names)]

    async def dispatch(
        self,
        tool_calls: Iterable[ToolCall],
        hooks: Optional[HookHandler] = None,
        shared_state: Any = None,
        *,
        filter_tool_names: Optional[Iterable[str]] = None,
        parallel: bool = False,
        repair_enabled: bool = True,
    ) -> List[ToolExecutionOutcome]:
        """Execute *tool_calls* against the registered tools and count usage."""
        outcomes = await execute_tool_calls(
            tool_calls,
            self.get_tools(filter_tool_names),
            hooks=hooks,
            shared_state=shared_state,
            repair_enabled=repair_enabled,
            parallel=parallel,
        )
        for outcome in outcomes:
            self.increment_tool_usage(outcome.name)
        return outcomes

    def increment_tool_usage(self, tool_name: str):
        """Increments the usage count for a registered tool."""
        if tool_name in self.tools:
            self.tool_usage_counts[tool_name] += 1
            module_logger.debug(
                f"Tool '{tool_name}' usage count: {self.tool_usage_counts[tool_name]}"
            )
        else:
            module_logger.debug(f"Not counting usage for unregistered tool '{tool_name}'.")

    def get_tool_usage_counts(self) -> Dict[str, int]:
        """Returns a copy of the current tool usage counts."""
        return dict(self.tool_usage_counts)

    def reset_tool_usage_counts(self):
        """Resets all tool usage counts to zero."""
        for name in self.tool_usage_counts:
            self.tool_usage_counts[name] = 0
        module_logger.info("Tool usage counts have been reset.")

    @property
    def available_tool_names(self) -> List[str]:
        return list(self.tools)
