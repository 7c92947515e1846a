from .accumulator import THINK_CLOSE, THINK_OPEN, DeltaAccumulator, ToolCallSlot
from .decoders import (
    AutoDecoder,
    BlockIndexedDecoder,
    DeltaChoiceDecoder,
    OutputItemDecoder,
    StreamDecoder,
    decode_events,
    detect_dialect,
)
from .deltas import (
    CanonicalDelta,
    FinishDelta,
    ReasoningDelta,
    ReasoningEnd,
    TextDelta,
    ToolCallFragment,
    UsageDelta,
)

__all__ = [
    "StreamDecoder",
    "DeltaChoiceDecoder",
    "BlockIndexedDecoder",
    "OutputItemDecoder",
    "AutoDecoder",
    "decode_events",
    "detect_dialect",
    "DeltaAccumulator",
    "ToolCallSlot",
    "THINK_OPEN",
    "THINK_CLOSE",
    "CanonicalDelta",
    "TextDelta",
    "ReasoningDelta",
    "ReasoningEnd",
    "ToolCallFragment",
    "UsageDelta",
    "FinishDelta",
]
