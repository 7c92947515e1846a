# llm_react_toolkit/client.py
import logging
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Union

from .exceptions import ConfigurationError, LLMToolkitError
from .loop import DEFAULT_MAX_STEPS, Prompt, ReActLoop
from .providers import create_language_model
from .providers._base import LanguageModel
from .tools.hooks import HookHandler
from .tools.models import GenerationResult, StreamChunk, Tool
from .tools.tool_factory import ToolFactory
from .transport import Transport

module_logger = logging.getLogger(__name__)


class LLMClient:
    """
    High-level client: resolves a model string to a provider, owns a ToolFactory
    and runs each request through a fresh ReActLoop.
    """

    def __init__(
        self,
        model: Union[str, LanguageModel],
        tool_factory: Optional[ToolFactory] = None,
        *,
        transport: Optional[Transport] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 180.0,
        max_steps: int = DEFAULT_MAX_STEPS,
        parallel_tools: bool = False,
        repair_tool_calls: bool = True,
        hooks: Optional[HookHandler] = None,
        shared_state: Any = None,
        **provider_kwargs: Any,
    ) -> None:
        """
        Initializes the LLMClient.

        Args:
            model: A model string such as ``"openai/gpt-4o-mini"`` or
                   ``"claude-sonnet-4-5"``, or a ready LanguageModel instance.
            tool_factory: An existing ToolFactory. A new one is created if None.
            transport: Optional transport injected into the provider (tests,
                       proxies). Defaults to the vendor SDK transport.
            api_key: Provider API key. Falls back to the provider's env variable.
            max_steps: Model calls allowed per request.
            parallel_tools: Dispatch one step's tool calls concurrently.
            hooks: Lifecycle hooks applied to every request.
            shared_state: Object injected into tools declaring ``shared_state``.
        """
        self.tool_factory = tool_factory or ToolFactory()
        self.max_steps = max_steps
        self.parallel_tools = parallel_tools
        self.repair_tool_calls = repair_tool_calls
        self.hooks = hooks
        self.shared_state = shared_state

        if isinstance(model, str):
            module_logger.info(f"Initializing LLMClient for model: {model}")
            try:
                self.model: LanguageModel = create_language_model(
                    model,
                    transport=transport,
                    api_key=api_key,
                    base_url=base_url,
                    timeout=timeout,
                    **provider_kwargs,
                )
            except (ConfigurationError, LLMToolkitError) as e:
                module_logger.error(f"Failed to initialize LLMClient: {e}", exc_info=True)
                raise
        elif isinstance(model, LanguageModel):
            self.model = model
        else:
            raise ConfigurationError(
                f"model must be a model string or a LanguageModel, got {type(model).__name__}."
            )

    def register_tool(
        self,
        function: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Tool:
        """
        Registers a Python function as a tool with the internal ToolFactory.

        Name and description default to the function's ``__name__`` and docstring.
        """
        if name is None:
            name = function.__name__
        if description is None:
            docstring = function.__doc__ or ""
            description = docstring.strip() or f"Executes the {name} function."
            if not function.__doc__:
                module_logger.warning(
                    f"Tool function '{name}' has no docstring. Using generic description."
                )
        return self.tool_factory.register_tool(
            function=function, name=name, description=description, parameters=parameters
        )

    def _new_loop(
        self, use_tools: Optional[List[str]], max_steps: Optional[int]
    ) -> ReActLoop:
        # use_tools: [] exposes everything, None disables tools, a list restricts them.
        if use_tools is None:
            tools: Any = None
            filter_names = None
        else:
            tools = self.tool_factory
            filter_names = use_tools or None
        return ReActLoop(
            self.model,
            tools,
            max_steps=max_steps or self.max_steps,
            hooks=self.hooks,
            shared_state=self.shared_state,
            parallel_tools=self.parallel_tools,
            repair_tool_calls=self.repair_tool_calls,
            filter_tool_names=filter_names,
        )

    async def generate(
        self,
        prompt: Prompt = None,
        *,
        system: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        use_tools: Optional[List[str]] = [],
        max_steps: Optional[int] = None,
        **params: Any,
    ) -> GenerationResult:
        """
        Runs a full ReAct exchange and returns the final result.

        Args:
            prompt: A user message string, or a list of messages.
            system: Optional system prompt.
            messages: Prior conversation, placed before *prompt*.
            use_tools: ``[]`` exposes all registered tools, ``None`` disables
                       tools, a non-empty list restricts them to those names.
            max_steps: Per-call override of the step budget.
            **params: ``temperature``, ``max_output_tokens`` and provider extras.
        """
        loop = self._new_loop(use_tools, max_steps)
        return await loop.generate(prompt, system=system, messages=messages, **params)

    async def stream(
        self,
        prompt: Prompt = None,
        *,
        system: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        use_tools: Optional[List[str]] = [],
        max_steps: Optional[int] = None,
        **params: Any,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Streaming counterpart of :meth:`generate`; the last chunk carries the result."""
        loop = self._new_loop(use_tools, max_steps)
        async for chunk in loop.stream(
            prompt, system=system, messages=messages, **params
        ):
            yield chunk
