"""Resolution of model-issued tool names against the registered tool set."""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Iterable, List, Optional, Tuple

from .models import Tool, ToolCall

logger = logging.getLogger(__name__)

INVALID_TOOL_NAME = "__invalid__"
MAX_FUZZY_DISTANCE = 3

_UPPERCASE = re.compile(r"(?<=[^_])([A-Z])")


def to_snake_case(name: str) -> str:
    """``getCurrentWeather`` -> ``get_current_weather``."""
    return _UPPERCASE.sub(r"_\1", name).lower()


def levenshtein(a: str, b: str) -> int:
    """Edit distance between *a* and *b* (insertions, deletions, substitutions)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def find_closest_match(
    name: str, candidates: Iterable[str], max_distance: int = MAX_FUZZY_DISTANCE
) -> Optional[str]:
    """Case-insensitive nearest candidate within *max_distance* edits, or ``None``.

    Ties go to the first candidate in iteration order.
    """
    best: Optional[str] = None
    best_distance = max_distance + 1
    lowered = name.lower()
    for candidate in candidates:
        distance = levenshtein(lowered, candidate.lower())
        if distance < best_distance:
            best, best_distance = candidate, distance
    return best


def resolve_tool_name(
    name: str, tool_names: Iterable[str]
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(resolved_name, strategy)``; both ``None`` when nothing matched.

    Strategies are tried in order: ``exact``, ``case_fold``, ``snake_case``,
    ``fuzzy``. The sentinel tool is never a candidate.
    """
    candidates: List[str] = [n for n in tool_names if n != INVALID_TOOL_NAME]
    if name in candidates:
        return name, "exact"

    folded = name.casefold()
    for candidate in candidates:
        if candidate.casefold() == folded:
            return candidate, "case_fold"

    snake = to_snake_case(name)
    if snake in candidates:
        return snake, "snake_case"

    closest = find_closest_match(name, candidates)
    if closest is not None:
        return closest, "fuzzy"
    return None, None


def repair_tool_call(
    tool_call: ToolCall,
    tool_names: Iterable[str],
    error_message: Optional[str] = None,
) -> ToolCall:
    """Map *tool_call* onto a registered tool, or onto the ``__invalid__`` sentinel.

    A call whose name is already registered is returned unchanged.
    """
    resolved, strategy = resolve_tool_name(tool_call.name, tool_names)
    if resolved is not None:
        if strategy != "exact":
            logger.info(
                "Repaired tool name '%s' -> '%s' (%s)",
                tool_call.name,
                resolved,
                strategy,
            )
            return tool_call.model_copy(update={"name": resolved})
        return tool_call

    logger.warning(
        "Tool '%s' not found and could not be repaired; routing to %s.",
        tool_call.name,
        INVALID_TOOL_NAME,
    )
    return ToolCall(
        id=tool_call.id or f"invalid_{uuid.uuid4().hex[:8]}",
        name=INVALID_TOOL_NAME,
        arguments={
            "original_tool": tool_call.name,
            "original_arguments": tool_call.arguments,
            "error": error_message or f"Tool '{tool_call.name}' not found",
        },
    )


def _handle_invalid_tool_call(
    original_tool: Optional[str] = None,
    original_arguments: Any = None,
    error: Optional[str] = None,
    **_: Any,
) -> str:
    detail = error or "Please check the tool name and try again."
    return json.dumps(
        {
            "success": False,
            "error_type": "invalid_tool_call",
            "message": f"Tool '{original_tool}' is not available. {detail}",
            "suggestion": "Please use one of the available tools listed in your instructions.",
        }
    )


def create_invalid_tool() -> Tool:
    """The sentinel tool that absorbs calls to unknown tools."""
    return Tool(
        name=INVALID_TOOL_NAME,
        description="Handles calls to tools that do not exist.",
        parameters={
            "type": "object",
            "properties": {
                "original_tool": {"type": "string"},
                "original_arguments": {"type": "object"},
                "error": {"type": "string"},
            },
        },
        function=_handle_invalid_tool_call,
    )
