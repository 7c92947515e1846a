"""Canonical deltas: the provider-neutral vocabulary every decoder emits.

Deltas live only for one decode pass and their order is significant:
fragment accumulation and reasoning transitions are applied in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    """Reasoning text. An empty delta only opens the reasoning section."""

    text: str = ""


@dataclass(frozen=True)
class ReasoningEnd:
    """Explicit end of a reasoning section (block stop, item done)."""


@dataclass(frozen=True)
class ToolCallFragment:
    """A piece of the tool call at slot *index*.

    String fields are appended to the slot. ``arguments`` given as a mapping
    replaces the slot's arguments wholesale. With ``replace=True`` every
    field that is set overwrites the slot instead, which keeps "done"
    events that repeat streamed content idempotent.
    """

    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Union[str, Dict[str, Any], None] = None
    replace: bool = False


@dataclass(frozen=True)
class UsageDelta:
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None


@dataclass(frozen=True)
class FinishDelta:
    reason: str


CanonicalDelta = Union[
    TextDelta, ReasoningDelta, ReasoningEnd, ToolCallFragment, UsageDelta, FinishDelta
]
