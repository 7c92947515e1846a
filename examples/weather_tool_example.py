# llm_react_toolkit/examples/weather_tool_example.py
import asyncio
import json
import logging
from typing import Any, Dict

from llm_react_toolkit import (
    LLMClient,
    SharedState,
    ToolExecutionResult,
    create_permission_hook,
)
from llm_react_toolkit.tools.base_tool import BaseTool

logging.basicConfig(level=logging.INFO)
module_logger = logging.getLogger(__name__)


class WeatherTool(BaseTool):
    """
    Class-based 'get_weather' tool backed by a canned forecast table.

    Remembers the last city looked up in the run's shared state.
    """

    NAME: str = "get_weather"
    DESCRIPTION: str = "Returns the current forecast for a city."
    PARAMETERS: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City name, e.g. 'Paris'."}
        },
        "required": ["city"],
    }

    FORECASTS: Dict[str, str] = {"paris": "sunny, 24C", "oslo": "light rain, 11C"}

    def __init__(self, units: str = "metric"):
        self._units = units

    def execute(self, city: str, shared_state: SharedState = None) -> ToolExecutionResult:
        forecast = self.FORECASTS.get(city.lower())
        if shared_state is not None:
            shared_state["last_city"] = city
        if forecast is None:
            return ToolExecutionResult(
                content=json.dumps({"error": f"No forecast for {city}"}),
                error="unknown_city",
            )
        module_logger.info(f"[WeatherTool] {city}: {forecast}")
        return ToolExecutionResult(
            content=json.dumps({"city": city, "forecast": forecast, "units": self._units})
        )


async def main() -> None:
    state = SharedState(session_id="demo")
    client = LLMClient(
        "openai/gpt-4o-mini",
        max_steps=4,
        shared_state=state,
        hooks=create_permission_hook("escalate", allowlist=["get_weather"]),
    )
    client.tool_factory.register_tool_class(WeatherTool, config={"units": "metric"})

    async for chunk in client.stream("What's the weather in Paris and Oslo?"):
        if chunk.done:
            print(f"\n\nsteps={chunk.result.steps} usage={chunk.usage}")
        elif chunk.content:
            print(chunk.content, end="", flush=True)
    print(f"last city looked up: {state.get('last_city')}")


if __name__ == "__main__":
    asyncio.run(main())
