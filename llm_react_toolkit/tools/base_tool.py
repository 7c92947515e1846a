from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import Tool, ToolExecutionResult


class BaseTool(ABC):
    """A tool whose schema lives on the class and whose executor is ``execute``.

    ``execute`` receives the model's arguments as keyword arguments (plus
    ``shared_state`` when declared) and may be sync or async.
    """

    NAME: str = ""
    DESCRIPTION: str = ""
    PARAMETERS: Optional[Dict[str, Any]] = None  # JSON Schema object

    @abstractmethod
    def execute(self, **kwargs: Any) -> ToolExecutionResult | Any:
        raise NotImplementedError

    @classmethod
    def from_config(cls, **config: Any) -> "BaseTool":
        return cls(**config)

    def as_tool(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Tool:
        """Bind this instance's ``execute`` into a :class:`Tool`, with optional overrides."""
        return Tool(
            name=name or self.NAME,
            description=description or self.DESCRIPTION,
            parameters=parameters or self.PARAMETERS,
            function=self.execute,
        )
