"""ReAct loop controller: model call → tool execution → history, bounded by ``max_steps``."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncGenerator,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
)

from .exceptions import ConfigurationError, ProviderError
from .providers._base import LanguageModel
from .providers.history import get_history_formatter
from .tools.dispatcher import ToolSet, execute_tool_calls
from .tools.hooks import HookHandler
from .tools.models import (
    GenerationResult,
    StreamChunk,
    Tool,
    ToolCall,
    ToolExecutionOutcome,
)
from .tools.tool_factory import ToolFactory

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10
BUDGET_WARNING = (
    "[Warning: Maximum generation steps ({max_steps}) reached. Tool execution stopped.]"
)

Prompt = Union[str, Sequence[Dict[str, Any]], None]


@dataclass
class ReActState:
    """Per-invocation loop state. Never shared between runs and never persisted."""

    messages: List[Dict[str, Any]]
    step_index: int = 0
    all_tool_calls: List[List[ToolCall]] = field(default_factory=list)
    usage: Dict[str, int] = field(default_factory=dict)

    def add_usage(self, usage: Optional[Dict[str, int]]) -> None:
        for key, value in (usage or {}).items():
            self.usage[key] = self.usage.get(key, 0) + value


def build_messages(
    prompt: Prompt = None,
    system: Optional[str] = None,
    messages: Optional[Sequence[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Initial history: optional system message, prior *messages*, then *prompt*.

    *prompt* may be a string (one user message) or a list of messages.
    The caller's lists are copied, never mutated.
    """
    history: List[Dict[str, Any]] = []
    if system:
        history.append({"role": "system", "content": system})
    if messages:
        history.extend(copy.deepcopy(list(messages)))
    if isinstance(prompt, str):
        history.append({"role": "user", "content": prompt})
    elif prompt:
        history.extend(copy.deepcopy(list(prompt)))
    if not history:
        raise ConfigurationError("A prompt or a message history is required.")
    return history


class ReActLoop:
    """Alternates model calls with tool execution until an answer or the step budget.

    Each step makes exactly one model call. When the model asks for tools
    and budget remains, the batch is dispatched and exactly one assistant
    message plus one tool-result message per outcome are appended to the
    history, formatted for the model's ``history_format``. When the budget
    is exhausted, the pending tool calls are returned unexecuted and the
    result carries a ``warning``.

    Only errors from the model call itself propagate; tool failures are fed
    back to the model as error results.
    """

    def __init__(
        self,
        model: LanguageModel,
        tools: Union[ToolFactory, ToolSet, None] = None,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        hooks: Optional[HookHandler] = None,
        shared_state: Any = None,
        parallel_tools: bool = False,
        repair_tool_calls: bool = True,
        filter_tool_names: Optional[Sequence[str]] = None,
    ) -> None:
        if max_steps < 1:
            raise ConfigurationError(f"max_steps must be at least 1, got {max_steps}.")
        self.model = model
        self.max_steps = max_steps
        self.hooks = hooks
        self.shared_state = shared_state
        self.parallel_tools = parallel_tools
        self.repair_tool_calls = repair_tool_calls

        self.filter_tool_names = filter_tool_names
        self._tool_factory: Optional[ToolFactory] = None
        if isinstance(tools, ToolFactory):
            self._tool_factory = tools
            self.tools: List[Tool] = tools.get_tools(filter_tool_names)
        elif isinstance(tools, dict):
            self.tools = list(tools.values())
        else:
            self.tools = list(tools or [])
        if self._tool_factory is None and filter_tool_names is not None:
            wanted = set(filter_tool_names)
            self.tools = [tool for tool in self.tools if tool.name in wanted]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: Prompt = None,
        *,
        system: Optional[str] = None,
        messages: Optional[Sequence[Dict[str, Any]]] = None,
        **params: Any,
    ) -> GenerationResult:
        """Run the loop to completion and return the final result."""
        state = ReActState(messages=build_messages(prompt, system, messages))
        await self._trigger_generation_start(state)

        result: Optional[GenerationResult] = None
        while state.step_index < self.max_steps:
            state.step_index += 1
            logger.debug("ReAct step %d/%d", state.step_index, self.max_steps)
            try:
                result = await self.model.do_generate(
                    state.messages, tools=self.tools or None, **params
                )
            except Exception as e:
                logger.error("Model call failed at step %d: %s", state.step_index, e)
                raise
            state.add_usage(result.usage)
            if not await self._handle_tool_calls(state, result):
                break

        assert result is not None
        self._annotate(state, result)
        await self._trigger_generation_end(result)
        return result

    async def stream(
        self,
        prompt: Prompt = None,
        *,
        system: Optional[str] = None,
        messages: Optional[Sequence[Dict[str, Any]]] = None,
        **params: Any,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Run the loop, yielding text as it streams.

        Text chunks carry ``<think>``/``</think>`` markers around reasoning.
        The last chunk has ``done=True`` and carries the final result.
        """
        state = ReActState(messages=build_messages(prompt, system, messages))
        await self._trigger_generation_start(state)

        result: Optional[GenerationResult] = None
        while state.step_index < self.max_steps:
            state.step_index += 1
            logger.debug("ReAct stream step %d/%d", state.step_index, self.max_steps)
            result = None
            try:
                async for item in self.model.do_stream(
                    state.messages, tools=self.tools or None, **params
                ):
                    if isinstance(item, GenerationResult):
                        result = item
                    elif item.content:
                        yield item
            except Exception as e:
                logger.error("Model stream failed at step %d: %s", state.step_index, e)
                raise
            if result is None:
                raise ProviderError("Model stream ended without a result.")
            state.add_usage(result.usage)
            if not await self._handle_tool_calls(state, result):
                break

        assert result is not None
        self._annotate(state, result)
        if result.warning:
            yield StreamChunk(content=f"\n\n{result.warning}")
        await self._trigger_generation_end(result)
        yield StreamChunk(done=True, usage=result.usage, result=result)

    # ------------------------------------------------------------------
    # Step internals
    # ------------------------------------------------------------------

    async def _handle_tool_calls(
        self, state: ReActState, result: GenerationResult
    ) -> bool:
        """Execute the step's tool calls. Returns True when another step is due."""
        if not result.tool_calls or not self.tools:
            return False

        state.all_tool_calls.append(list(result.tool_calls))
        if state.step_index >= self.max_steps:
            logger.warning(
                "Maximum generation steps (%d) reached. Tool execution stopped.",
                self.max_steps,
            )
            result.warning = BUDGET_WARNING.format(max_steps=self.max_steps)
            return False

        outcomes = await self._dispatch(result.tool_calls)

        formatter = get_history_formatter(self.model.history_format)
        state.messages.append(formatter.format_assistant_message(result))
        for outcome in outcomes:
            state.messages.append(
                self.model.format_tool_result(outcome.id, outcome.name, outcome.result)
            )
        return True

    async def _dispatch(self, tool_calls: List[ToolCall]) -> List[ToolExecutionOutcome]:
        if self._tool_factory is not None:
            return await self._tool_factory.dispatch(
                tool_calls,
                hooks=self.hooks,
                shared_state=self.shared_state,
                filter_tool_names=self.filter_tool_names,
                parallel=self.parallel_tools,
                repair_enabled=self.repair_tool_calls,
            )
        return await execute_tool_calls(
            tool_calls,
            self.tools,
            hooks=self.hooks,
            shared_state=self.shared_state,
            repair_enabled=self.repair_tool_calls,
            parallel=self.parallel_tools,
        )

    def _annotate(self, state: ReActState, result: GenerationResult) -> None:
        result.steps = state.step_index
        result.all_tool_calls = state.all_tool_calls
        result.messages = state.messages
        if state.usage:
            result.usage = dict(state.usage)

    async def _trigger_generation_start(self, state: ReActState) -> None:
        if self.hooks is not None:
            await self.hooks.trigger_generation_start(
                self.model, state.messages, self.tools
            )

    async def _trigger_generation_end(self, result: GenerationResult) -> None:
        if self.hooks is not None:
            await self.hooks.trigger_generation_end(result)
