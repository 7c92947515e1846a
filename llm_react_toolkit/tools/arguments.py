"""Normalisation of raw tool-call arguments into a keyed mapping."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from ..json_repair import fix, quote_bare_keys, repair

logger = logging.getLogger(__name__)

# Argument strings that mean "no arguments"
EMPTY_ARGUMENT_LITERALS = frozenset(
    {"", "{}", "{ }", "null", "NULL", "undefined", "{", "}", "[]", "[ ]"}
)

_PARSE_STRATEGIES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("as_is", lambda text: text),
    ("repair", repair),
    ("fix", fix),
    ("quote_keys", lambda text: fix(quote_bare_keys(text))),
)


def parse_arguments(raw: Any, tool_name: Optional[str] = None) -> Dict[str, Any]:
    """Turn a raw argument payload into a ``dict``.

    Accepts an already-decoded mapping, ``None``, a scalar or a (possibly
    truncated or malformed) JSON string. Never raises: a payload that cannot
    be salvaged yields ``{}``. Non-object JSON values are wrapped as
    ``{"value": ...}``.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, float) and math.isnan(raw):
        return {}
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, (list, tuple)):
        return {"value": list(raw)} if raw else {}
    if not isinstance(raw, str):
        return {"value": raw}

    text = raw.strip()
    if text in EMPTY_ARGUMENT_LITERALS:
        return {}

    for strategy, transform in _PARSE_STRATEGIES:
        try:
            parsed = json.loads(transform(text))
        except (json.JSONDecodeError, ValueError, TypeError):
            continue
        if strategy != "as_is":
            logger.debug(
                "Arguments for tool '%s' parsed after '%s' repair.",
                tool_name,
                strategy,
            )
        return _as_mapping(parsed, tool_name)

    logger.warning(
        "Could not parse arguments for tool '%s'; using empty arguments. Raw: %.200s",
        tool_name,
        text,
    )
    return {}


def _as_mapping(value: Any, tool_name: Optional[str]) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.lstrip().startswith("{"):
        # Double-encoded object, e.g. "\"{\\\"a\\\": 1}\""
        inner = parse_arguments(value, tool_name)
        if inner:
            return inner
    if value is None or value == []:
        return {}
    return {"value": value}
