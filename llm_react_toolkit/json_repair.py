"""Best-effort structural repair of truncated or malformed JSON text.

Two passes are offered:

* :func:`repair` is a cheap, regex-driven pass that handles the common
  mistakes models make in tool arguments (single-quoted keys, bare keys,
  trailing commas, a missing closing quote or bracket).
* :func:`fix` is a string-aware scan that closes whatever is still open at
  the end of the input. Any prefix of a valid JSON document comes out of
  :func:`fix` as parseable JSON.

Neither function raises.
"""

from __future__ import annotations

import re
from typing import List, Optional

_SINGLE_QUOTED_KEY = re.compile(r"'([^'\\]+)'\s*:")
_TRAILING_COMMA_OBJECT = re.compile(r",\s*}")
_TRAILING_COMMA_ARRAY = re.compile(r",\s*]")
_BARE_KEY = re.compile(r"([{,])\s*([A-Za-z_][A-Za-z0-9_]*)\s*:")
_UNCLOSED_BEFORE_BRACKET = re.compile(r'([^"])([}\]])$')
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')
_PARTIAL_UNICODE_ESCAPE = re.compile(r"(\\+)u[0-9a-fA-F]{0,3}$")
_BARE_TOKEN = re.compile(r"[A-Za-z0-9.+\-]+$")

_LITERALS = ("true", "false", "null")


def repair(text: Optional[str]) -> str:
    """Cheap repair pass for model-written JSON.

    Bracket balancing here is naive: it counts braces without looking at
    string boundaries. Use :func:`fix` for a string-aware repair.
    """
    if not isinstance(text, str):
        return "{}"

    repaired = text.strip()
    if repaired in ("{", "}"):
        return "{}"
    if repaired in ("[", "]"):
        return "[]"

    repaired = _SINGLE_QUOTED_KEY.sub(r'"\1":', repaired)

    missing_braces = repaired.count("{") - repaired.count("}")
    if missing_braces > 0:
        repaired += "}" * missing_braces
    missing_brackets = repaired.count("[") - repaired.count("]")
    if missing_brackets > 0:
        repaired += "]" * missing_brackets

    repaired = _TRAILING_COMMA_OBJECT.sub("}", repaired)
    repaired = _TRAILING_COMMA_ARRAY.sub("]", repaired)
    repaired = quote_bare_keys(repaired)

    if len(_UNESCAPED_QUOTE.findall(repaired)) % 2 == 1:
        repaired = _UNCLOSED_BEFORE_BRACKET.sub(r'\1"\2', repaired)

    return repaired


def quote_bare_keys(text: str) -> str:
    """Quote JavaScript-literal style object keys: ``{a: 1}`` -> ``{"a": 1}``."""
    return _BARE_KEY.sub(r'\1"\2":', text)


def fix(text: Optional[str]) -> str:
    """Close every open string, object and array at the end of *text*.

    Empty or non-string input yields ``"{}"``. Guarantees syntactic balance,
    not semantic validity.
    """
    if not isinstance(text, str) or not text.strip():
        return "{}"

    closers: List[str] = []
    in_string = False
    escaped = False
    string_start = -1

    for position, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
            string_start = position
        elif char == "{":
            closers.append("}")
        elif char == "[":
            closers.append("]")
        elif char in "}]" and closers and closers[-1] == char:
            closers.pop()

    fixed = text
    if in_string:
        fixed = _close_string(fixed, escaped)

    fixed = _complete_tail(fixed, closers[-1] if closers else None, string_start)
    fixed += "".join(reversed(closers))
    return fixed if fixed.strip() else "{}"


# ---------------------------------------------------------------------------
# fix() helpers
# ---------------------------------------------------------------------------


def _close_string(text: str, escaped: bool) -> str:
    if escaped:
        # A lone backslash would escape the quote we are about to add.
        text = text[:-1]
    match = _PARTIAL_UNICODE_ESCAPE.search(text)
    if match and len(match.group(1)) % 2 == 1:
        text = text[: match.end(1) - 1]
    return text + '"'


def _complete_tail(text: str, closer: Optional[str], string_start: int) -> str:
    """Finish a dangling comma, colon, key, literal or number."""
    tail = text.rstrip()
    while tail.endswith(","):
        tail = tail[:-1].rstrip()

    if tail.endswith(":"):
        return tail + " null"

    if tail.endswith('"'):
        if closer == "}" and string_start >= 0:
            before = text[:string_start].rstrip()
            if before.endswith("{") or before.endswith(","):
                return tail + ": null"
        return tail

    match = _BARE_TOKEN.search(tail)
    if match:
        return tail[: match.start()] + _complete_token(match.group(0))
    return tail


def _complete_token(token: str) -> str:
    if token[0].isalpha():
        for literal in _LITERALS:
            if literal.startswith(token):
                return literal
        return token
    if token[-1] in "-+eE.":
        return token + "0"
    return token
