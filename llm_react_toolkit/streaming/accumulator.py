"""Delta accumulation and the finalize step shared by every decoder.

Streaming and non-streaming decoding both feed canonical deltas into a
:class:`DeltaAccumulator`, so both end in an identically shaped
:class:`~llm_react_toolkit.tools.models.GenerationResult`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..tools.arguments import parse_arguments
from ..tools.models import GenerationResult, ToolCall
from .deltas import (
    CanonicalDelta,
    FinishDelta,
    ReasoningDelta,
    ReasoningEnd,
    TextDelta,
    ToolCallFragment,
    UsageDelta,
)

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>\n"
THINK_CLOSE = "\n</think>\n\n"

# A fragment may open at most this many slots past the current end.
MAX_SLOT_GAP = 64


@dataclass
class ToolCallSlot:
    """Growable buffer for one index-addressed tool call."""

    id: str = ""
    name: str = ""
    raw_arguments: str = ""
    structured_arguments: Optional[Dict[str, Any]] = None

    @property
    def arguments_is_structured(self) -> bool:
        return self.structured_arguments is not None

    def set_arguments(self, arguments: Any) -> None:
        if isinstance(arguments, dict):
            self.structured_arguments = dict(arguments)
            self.raw_arguments = ""
        else:
            self.structured_arguments = None
            self.raw_arguments = str(arguments)

    def append_arguments(self, arguments: Any) -> None:
        if isinstance(arguments, dict):
            self.set_arguments(arguments)
        elif self.arguments_is_structured:
            # Streamed JSON text supersedes a structured placeholder.
            self.set_arguments(arguments)
        else:
            self.raw_arguments += str(arguments)


class DeltaAccumulator:
    """Applies canonical deltas in arrival order and builds the final result.

    :meth:`apply` returns the text to emit for each delta. That text is the
    answer text with ``<think>``/``</think>`` markers inserted exactly once
    per transition into and out of a reasoning section. The markers never
    appear in the final ``text`` or ``reasoning``.
    """

    def __init__(self) -> None:
        self._text_parts: List[str] = []
        self._reasoning_parts: List[str] = []
        self.in_reasoning = False
        self.slots: List[ToolCallSlot] = []
        self.finish_reason: Optional[str] = None
        self.usage: Dict[str, int] = {}

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    @property
    def reasoning(self) -> str:
        return "".join(self._reasoning_parts)

    # ------------------------------------------------------------------
    # Delta application
    # ------------------------------------------------------------------

    def slot(self, index: int) -> ToolCallSlot:
        """Return the slot at *index*, growing the slot list as needed."""
        while len(self.slots) <= index:
            self.slots.append(ToolCallSlot())
        return self.slots[index]

    def apply(self, delta: CanonicalDelta) -> List[str]:
        emitted: List[str] = []

        if isinstance(delta, TextDelta):
            if delta.text:
                emitted.extend(self.close())
                self._text_parts.append(delta.text)
                emitted.append(delta.text)

        elif isinstance(delta, ReasoningDelta):
            if not self.in_reasoning:
                self.in_reasoning = True
                emitted.append(THINK_OPEN)
            if delta.text:
                self._reasoning_parts.append(delta.text)
                emitted.append(delta.text)

        elif isinstance(delta, ReasoningEnd):
            emitted.extend(self.close())

        elif isinstance(delta, ToolCallFragment):
            self._apply_fragment(delta)

        elif isinstance(delta, UsageDelta):
            self._apply_usage(delta)

        elif isinstance(delta, FinishDelta):
            self.finish_reason = delta.reason

        return emitted

    def close(self) -> List[str]:
        """Leave an open reasoning section; returns the closing marker if one is due."""
        if not self.in_reasoning:
            return []
        self.in_reasoning = False
        return [THINK_CLOSE]

    def backfill_reasoning(self, reasoning: str) -> None:
        """Record reasoning without emitting it (used after the answer already streamed)."""
        if reasoning and not self._reasoning_parts:
            self._reasoning_parts.append(reasoning)

    def _apply_fragment(self, fragment: ToolCallFragment) -> None:
        if fragment.index < 0:
            logger.debug("Ignoring tool call fragment with index %d", fragment.index)
            return
        if fragment.index > len(self.slots) + MAX_SLOT_GAP:
            logger.warning(
                "Ignoring tool call fragment with out-of-range index %d (%d slots open)",
                fragment.index,
                len(self.slots),
            )
            return
        slot = self.slot(fragment.index)
        if fragment.replace:
            if fragment.id:
                slot.id = fragment.id
            if fragment.name:
                slot.name = fragment.name
            if fragment.arguments is not None:
                slot.set_arguments(fragment.arguments)
            return

        if fragment.id:
            slot.id += fragment.id
        if fragment.name:
            slot.name += fragment.name
        if fragment.arguments is not None:
            slot.append_arguments(fragment.arguments)

    def _apply_usage(self, usage: UsageDelta) -> None:
        for key in (
            "prompt_tokens",
            "completion_tokens",
            "total_tokens",
            "reasoning_tokens",
        ):
            value = getattr(usage, key)
            if isinstance(value, int):
                self.usage[key] = value

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def tool_calls(self) -> List[ToolCall]:
        finished: List[ToolCall] = []
        for index, slot in enumerate(self.slots):
            name = slot.name.strip()
            if not name:
                if slot.id or slot.raw_arguments:
                    logger.debug("Dropping nameless tool call fragment at index %d", index)
                continue
            if slot.arguments_is_structured:
                arguments = dict(slot.structured_arguments or {})
            else:
                arguments = parse_arguments(slot.raw_arguments, name)
            finished.append(
                ToolCall(
                    id=slot.id or f"call_{uuid.uuid4().hex[:24]}",
                    name=name,
                    arguments=arguments,
                )
            )
        return finished

    def finalize(self, raw_response: Any = None) -> GenerationResult:
        usage: Optional[Dict[str, int]] = None
        if self.usage:
            usage = dict(self.usage)
            usage.setdefault("prompt_tokens", 0)
            usage.setdefault("completion_tokens", 0)
            usage.setdefault(
                "total_tokens", usage["prompt_tokens"] + usage["completion_tokens"]
            )

        return GenerationResult(
            text=self.text,
            reasoning=self.reasoning or None,
            usage=usage,
            finish_reason=self.finish_reason,
            tool_calls=self.tool_calls(),
            raw_response=raw_response,
        )
