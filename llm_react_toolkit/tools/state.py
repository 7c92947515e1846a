"""Shared state handed to tool functions across one or more ReAct runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass
class SharedState:
    """A mutable key/value store passed by reference into tool functions.

    Tools receive it when their signature declares a ``shared_state``
    parameter. The same instance is handed to every tool in a batch and to
    every step of a run, so tools can leave values for each other.

    Ownership and synchronisation
    -----------------------------
    The toolkit never copies or locks the state. If several runs share one
    instance concurrently (or tools are dispatched with ``parallel=True``),
    the caller is responsible for any locking.

    Applications can serialise the state with :meth:`to_dict` /
    :meth:`from_dict` to carry it across turns.
    """

    values: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Mapping-style access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        logger.debug("SharedState[%s] set key '%s'", self.session_id, key)
        self.values[key] = value

    def update(self, other: Dict[str, Any]) -> None:
        self.values.update(other)

    def pop(self, key: str, default: Any = None) -> Any:
        return self.values.pop(key, default)

    def clear(self) -> None:
        self.values.clear()

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "session_id": self.session_id,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SharedState":
        return cls(
            values=dict(data.get("values", {})),
            session_id=data.get("session_id"),
            metadata=dict(data.get("metadata", {})),
        )
