"""Execution of a batch of finished tool calls."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel

from .arguments import parse_arguments
from .hooks import HookHandler
from .models import Tool, ToolCall, ToolExecutionOutcome, ToolExecutionResult
from .repair import INVALID_TOOL_NAME, create_invalid_tool, repair_tool_call

logger = logging.getLogger(__name__)

SHARED_STATE_PARAM = "shared_state"

# Soft recovery for the skill script runner: it reports bad arguments as a
# returned string instead of raising.
SKILL_SCRIPT_TOOL = "execute_skill_script"
_SKILL_FAILURE_PREFIXES = ("Error", "Script execution error")
_SKILL_PARAMS = ("skill_name", "script_name", "args")
_SKILL_ARGUMENT_ALIASES: Dict[str, str] = {
    "skill": "skill_name",
    "name": "skill_name",
    "script": "script_name",
    "script_file": "script_name",
    "file": "script_name",
    "arguments": "args",
    "params": "args",
    "parameters": "args",
    "script_args": "args",
}

ToolSet = Union[Iterable[Tool], Mapping[str, Tool]]


# ---------------------------------------------------------------------------
# Result serialisation
# ---------------------------------------------------------------------------


def safe_serialize(value: Any) -> str:
    """Stringify a tool result for the conversation. Never raises."""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        return json.dumps(
            {
                "error": "non_serializable_result",
                "class": type(value).__name__,
                "message": str(e),
                "preview": repr(value)[:200],
            }
        )


def _unpack_result(value: Any) -> Tuple[str, bool, Any]:
    if isinstance(value, ToolExecutionResult):
        return value.content, value.error is not None, value.payload
    return safe_serialize(value), False, None


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


def _accepts_parameter(function: Any, name: str) -> bool:
    target = function
    if not inspect.isroutine(function) and inspect.isroutine(
        getattr(function, "__call__", None)
    ):
        target = function.__call__
    try:
        return name in inspect.signature(target).parameters
    except (TypeError, ValueError):
        return False


async def _invoke(tool: Tool, arguments: Dict[str, Any], shared_state: Any) -> Any:
    final_arguments = dict(arguments)
    if shared_state is not None and _accepts_parameter(
        tool.function, SHARED_STATE_PARAM
    ):
        if SHARED_STATE_PARAM in final_arguments:
            logger.warning(
                "Tool '%s' received a model-supplied '%s' argument; "
                "shared state will NOT override it.",
                tool.name,
                SHARED_STATE_PARAM,
            )
        else:
            final_arguments[SHARED_STATE_PARAM] = shared_state

    logger.debug("Executing tool '%s' with args: %s", tool.name, arguments)
    if inspect.iscoroutinefunction(tool.function):
        return await tool.function(**final_arguments)
    result = tool.function(**final_arguments)
    if asyncio.iscoroutine(result):
        result = await result
    return result


def _is_skill_failure(content: str) -> bool:
    return content.lstrip().startswith(_SKILL_FAILURE_PREFIXES)


def _skill_argument_variants(arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Alternate spellings of the skill-script arguments, most likely first."""
    renamed: Dict[str, Any] = {}
    for key, value in arguments.items():
        renamed.setdefault(_SKILL_ARGUMENT_ALIASES.get(key, key), value)

    if isinstance(renamed.get("args"), str):
        renamed["args"] = parse_arguments(renamed["args"], SKILL_SCRIPT_TOOL)

    variants: List[Dict[str, Any]] = [renamed]

    extras = {k: v for k, v in renamed.items() if k not in _SKILL_PARAMS}
    if extras:
        folded = {k: v for k, v in renamed.items() if k in _SKILL_PARAMS}
        existing = folded.get("args")
        folded["args"] = {**(existing if isinstance(existing, dict) else {}), **extras}
        variants.append(folded)

    unique: List[Dict[str, Any]] = []
    for variant in variants:
        if variant != arguments and variant not in unique:
            unique.append(variant)
    return unique


async def _recover_skill_script(
    tool: Tool, arguments: Dict[str, Any], shared_state: Any
) -> Optional[Tuple[str, bool, Any]]:
    for variant in _skill_argument_variants(arguments):
        try:
            unpacked = _unpack_result(await _invoke(tool, variant, shared_state))
        except Exception as e:
            logger.debug("Skill script retry with %s raised: %s", sorted(variant), e)
            continue
        if not unpacked[1] and not _is_skill_failure(unpacked[0]):
            logger.info(
                "Skill script call recovered with argument names %s", sorted(variant)
            )
            return unpacked
    return None


# ---------------------------------------------------------------------------
# Batch execution
# ---------------------------------------------------------------------------


def _build_registry(tools: ToolSet) -> Dict[str, Tool]:
    if isinstance(tools, Mapping):
        registry = dict(tools)
    else:
        registry = {tool.name: tool for tool in tools}
    registry.setdefault(INVALID_TOOL_NAME, create_invalid_tool())
    return registry


async def execute_tool_calls(
    tool_calls: Iterable[ToolCall],
    tools: ToolSet,
    hooks: Optional[HookHandler] = None,
    shared_state: Any = None,
    *,
    repair_enabled: bool = True,
    parallel: bool = False,
) -> List[ToolExecutionOutcome]:
    """Run each tool call and return one outcome per call, in input order.

    Never raises: unknown tools, hook vetoes and executor exceptions all
    become ``is_error=True`` outcomes carrying a message the model can read.
    Calls run one after another unless *parallel* is set.
    """
    registry = _build_registry(tools)
    registered_names = [name for name in registry if name != INVALID_TOOL_NAME]

    async def _handle_one(tool_call: ToolCall) -> ToolExecutionOutcome:
        try:
            tool = registry.get(tool_call.name)
            if tool is None and repair_enabled:
                tool_call = repair_tool_call(tool_call, registered_names)
                tool = registry.get(tool_call.name)
            if tool is None:
                return ToolExecutionOutcome(
                    id=tool_call.id,
                    name=tool_call.name,
                    result=f"Error: Tool '{tool_call.name}' not found",
                    is_error=True,
                )

            arguments = parse_arguments(tool_call.arguments, tool_call.name)
            if hooks is not None:
                await hooks.trigger_tool_start(tool, arguments)

            raw_result = await _invoke(tool, arguments, shared_state)
            content, is_error, payload = _unpack_result(raw_result)

            if tool.name == SKILL_SCRIPT_TOOL and _is_skill_failure(content):
                recovered = await _recover_skill_script(tool, arguments, shared_state)
                if recovered is None:
                    is_error = True
                else:
                    content, is_error, payload = recovered
                    raw_result = content

            if hooks is not None:
                await hooks.trigger_tool_end(tool, raw_result)

            return ToolExecutionOutcome(
                id=tool_call.id,
                name=tool_call.name,
                result=content,
                is_error=is_error,
                payload=payload,
            )
        except Exception as e:
            logger.error(
                "Error executing tool '%s': %s", tool_call.name, e, exc_info=True
            )
            return ToolExecutionOutcome(
                id=tool_call.id,
                name=tool_call.name,
                result=f"Error executing tool '{tool_call.name}': {e}",
                is_error=True,
            )

    calls = list(tool_calls)
    if parallel and len(calls) > 1:
        return list(await asyncio.gather(*[_handle_one(tc) for tc in calls]))

    outcomes: List[ToolExecutionOutcome] = []
    for tool_call in calls:
        outcomes.append(await _handle_one(tool_call))
    return outcomes
