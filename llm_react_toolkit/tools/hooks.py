"""Lifecycle hooks around generation and tool execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union

from ..exceptions import ConfigurationError, PermissionDeniedError
from .models import Tool

logger = logging.getLogger(__name__)

HookCallable = Callable[..., Union[Any, Awaitable[Any]]]

PERMISSION_MODES = ("implicit", "explicit", "escalate")
DEFAULT_ALLOWLIST = ("search_web", "read_resource", "read_file")


async def _call(hook: Optional[HookCallable], *args: Any) -> Any:
    if hook is None:
        return None
    result = hook(*args)
    if asyncio.iscoroutine(result):
        result = await result
    return result


class HookHandler:
    """Holds optional hook callables; each may be sync or async, and each may raise.

    Supported hooks:

    * ``on_generation_start(model, messages, tools)``
    * ``on_generation_end(result)``
    * ``on_tool_approval(tool, args)``: return ``True`` to approve. Anything
      else vetoes the call with :class:`PermissionDeniedError`.
    * ``on_tool_start(tool, args)``
    * ``on_tool_end(tool, result)``
    """

    def __init__(
        self,
        *,
        on_generation_start: Optional[HookCallable] = None,
        on_generation_end: Optional[HookCallable] = None,
        on_tool_approval: Optional[HookCallable] = None,
        on_tool_start: Optional[HookCallable] = None,
        on_tool_end: Optional[HookCallable] = None,
    ) -> None:
        self.on_generation_start = on_generation_start
        self.on_generation_end = on_generation_end
        self.on_tool_approval = on_tool_approval
        self.on_tool_start = on_tool_start
        self.on_tool_end = on_tool_end

    async def trigger_generation_start(
        self, model: Any, messages: Any, tools: Any
    ) -> None:
        await _call(self.on_generation_start, model, messages, tools)

    async def trigger_generation_end(self, result: Any) -> None:
        await _call(self.on_generation_end, result)

    async def trigger_tool_start(self, tool: Tool, args: Dict[str, Any]) -> None:
        if self.on_tool_approval is not None:
            approved = await _call(self.on_tool_approval, tool, args)
            if approved is not True:
                raise PermissionDeniedError(tool.name)
        await _call(self.on_tool_start, tool, args)

    async def trigger_tool_end(self, tool: Tool, result: Any) -> None:
        await _call(self.on_tool_end, tool, result)


def create_permission_hook(
    mode: str = "implicit",
    allowlist: Iterable[str] = DEFAULT_ALLOWLIST,
    ask: Optional[HookCallable] = None,
) -> HookHandler:
    """Build a :class:`HookHandler` enforcing a tool permission mode.

    Args:
        mode: ``"implicit"`` approves every tool. ``"explicit"`` asks for
            every tool. ``"escalate"`` approves tools in *allowlist* and asks
            for the rest.
        allowlist: Tool names auto-approved in ``"escalate"`` mode.
        ask: Callback ``ask(tool, args) -> bool`` (sync or async) used when
            confirmation is needed. Without one, such calls are denied.
    """
    if mode not in PERMISSION_MODES:
        raise ConfigurationError(
            f"Unknown permission mode '{mode}'. Expected one of {PERMISSION_MODES}."
        )
    allowed = frozenset(allowlist)

    async def on_tool_approval(tool: Tool, args: Dict[str, Any]) -> bool:
        if mode == "implicit":
            return True
        if mode == "escalate" and tool.name in allowed:
            return True
        if ask is None:
            logger.warning(
                "No approval callback configured: denying tool '%s'.", tool.name
            )
            return False
        return bool(await _call(ask, tool, args))

    return HookHandler(on_tool_approval=on_tool_approval)
