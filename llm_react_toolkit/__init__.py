# llm_react_toolkit/__init__.py
import logging
import os

from dotenv import load_dotenv

# Library logging stays silent unless the application configures it.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Make API keys from a .env in the working directory visible to the providers.
try:
    dotenv_path = os.path.join(os.getcwd(), ".env")
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path=dotenv_path)
except Exception as e:
    logging.getLogger(__name__).warning(f"Could not load .env file: {e}")

if os.environ.get("LLM_REACT_DEBUG", "").lower() in ("1", "true", "yes"):
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s")
    )
    logging.getLogger(__name__).addHandler(_handler)
    logging.getLogger(__name__).setLevel(logging.DEBUG)


from .client import LLMClient  # noqa: E402
from .exceptions import (  # noqa: E402
    ConfigurationError,
    DecodeError,
    LLMToolkitError,
    PermissionDeniedError,
    ProviderError,
    ToolError,
    TransportError,
)
from .loop import ReActLoop  # noqa: E402
from .providers import create_language_model, register_provider  # noqa: E402
from .providers._base import BaseProvider, LanguageModel  # noqa: E402
from .tools.base_tool import BaseTool  # noqa: E402
from .tools.hooks import HookHandler, create_permission_hook  # noqa: E402
from .tools.models import (  # noqa: E402
    GenerationResult,
    StreamChunk,
    Tool,
    ToolCall,
    ToolExecutionResult,
)
from .tools.state import SharedState  # noqa: E402
from .tools.tool_factory import ToolFactory  # noqa: E402
from .transport import (  # noqa: E402
    AnthropicSDKTransport,
    EventStream,
    OpenAISDKTransport,
    Transport,
    TransportResponse,
)

__all__ = [
    "LLMClient",
    "ReActLoop",
    "LanguageModel",
    "BaseProvider",
    "create_language_model",
    "register_provider",
    "ToolFactory",
    "BaseTool",
    "Tool",
    "ToolCall",
    "ToolExecutionResult",
    "GenerationResult",
    "StreamChunk",
    "HookHandler",
    "create_permission_hook",
    "SharedState",
    "Transport",
    "TransportResponse",
    "EventStream",
    "OpenAISDKTransport",
    "AnthropicSDKTransport",
    "LLMToolkitError",
    "ConfigurationError",
    "ProviderError",
    "TransportError",
    "DecodeError",
    "ToolError",
    "PermissionDeniedError",
]

try:
    from importlib.metadata import version

    __version__ = version("llm_react_toolkit")
except Exception:
    __version__ = "0.0.0-unknown"
