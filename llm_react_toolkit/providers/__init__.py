# llm_react_toolkit/providers/__init__.py
import importlib
import logging
from typing import Dict

from ..exceptions import ConfigurationError

_provider_registry: Dict[str, type] = {}
_providers_discovered = False
module_logger = logging.getLogger(__name__)

# Built-in provider modules, imported on first lookup so their
# @register_provider decorators run.
_BUILTIN_PROVIDER_MODULES = ("openai", "openai_responses", "anthropic")


def register_provider(name: str):
    """
    Decorator to register LanguageModel classes.

    The class only has to satisfy the ``LanguageModel`` interface
    (``do_generate``, ``do_stream``, ``format_tool_result``,
    ``history_format``); inheriting from ``BaseProvider`` is optional.

    Args:
        name (str): The identifier for the provider (e.g., 'openai', 'anthropic').
    """

    def decorator(cls):
        missing = [
            attr
            for attr in ("do_generate", "do_stream", "format_tool_result", "history_format")
            if not hasattr(cls, attr)
        ]
        if missing:
            raise TypeError(
                f"Class {cls.__name__} cannot be registered as a provider; missing {missing}."
            )
        if name in _provider_registry:
            module_logger.warning(
                f"Provider '{name}' is already registered. Overwriting with {cls.__name__}."
            )
        _provider_registry[name] = cls
        module_logger.debug(f"Registered provider: '{name}' -> {cls.__name__}")
        return cls

    return decorator


def _discover_providers() -> None:
    global _providers_discovered
    if _providers_discovered:
        return
    for module_name in _BUILTIN_PROVIDER_MODULES:
        importlib.import_module(f"{__name__}.{module_name}")
    _providers_discovered = True


def get_provider_class(name: str) -> type:
    """Look up a registered provider class by name."""
    _discover_providers()
    provider_class = _provider_registry.get(name.lower())
    if provider_class is None:
        raise ConfigurationError(
            f"Invalid provider type: '{name}'. Available providers: {sorted(_provider_registry)}"
        )
    return provider_class


from ._registry import (  # noqa: E402
    create_language_model,
    resolve_provider_key,
    split_model_string,
)

__all__ = [
    "register_provider",
    "get_provider_class",
    "create_language_model",
    "resolve_provider_key",
    "split_model_string",
]
