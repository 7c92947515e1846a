"""Model string routing: ``"provider/model"`` or a recognised bare name -> LanguageModel."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from ..exceptions import ConfigurationError
from ..transport import Transport

logger = logging.getLogger(__name__)

# Accepted spellings of an explicit "<provider>/" prefix.
_PROVIDER_ALIASES = {
    "openai": "openai",
    "openai-responses": "openai_responses",
    "openai_responses": "openai_responses",
    "anthropic": "anthropic",
    "claude": "anthropic",
    "deepseek": "deepseek",
}

# Bare names are matched by family; a family matches "<family>" or "<family>-...".
_MODEL_FAMILIES = (
    (("gpt", "chatgpt", "o1", "o3", "o4"), "openai"),
    (("claude",), "anthropic"),
    (("deepseek",), "deepseek"),
)


def split_model_string(model: str) -> Tuple[Optional[str], str]:
    """``"openai-responses/gpt-5"`` -> ``("openai_responses", "gpt-5")``.

    The provider is ``None`` when *model* has no recognised prefix.
    """
    prefix, sep, rest = model.partition("/")
    if sep:
        provider_key = _PROVIDER_ALIASES.get(prefix.lower())
        if provider_key is not None:
            return provider_key, rest
    return None, model


def _family_of(model_id: str) -> Optional[str]:
    lowered = model_id.lower()
    for families, provider_key in _MODEL_FAMILIES:
        for family in families:
            if lowered == family or lowered.startswith(f"{family}-"):
                return provider_key
    return None


def resolve_provider_key(model: str) -> str:
    """Provider key for *model*; the explicit prefix wins over the model family.

    Raises:
        ConfigurationError: Neither a prefix nor a known family matched.
    """
    provider_key, model_id = split_model_string(model)
    provider_key = provider_key or _family_of(model_id)
    if provider_key is None:
        raise ConfigurationError(
            f"Cannot determine provider for model '{model}'. Use an explicit prefix "
            f"({', '.join(sorted(p + '/' for p in _PROVIDER_ALIASES))}) "
            f"or a recognised bare model name."
        )
    return provider_key


def create_language_model(
    model: str,
    *,
    transport: Optional[Transport] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 180.0,
    **kwargs: Any,
) -> Any:
    """Instantiate the provider for *model* (e.g. ``"anthropic/claude-sonnet-4-5"``)."""
    from . import get_provider_class

    provider_key = resolve_provider_key(model)
    _, model_id = split_model_string(model)
    logger.debug("Routing model '%s' to provider '%s'", model, provider_key)
    return get_provider_class(provider_key)(
        model_id,
        transport=transport,
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        **kwargs,
    )
