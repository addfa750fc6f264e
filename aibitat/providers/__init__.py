"""Language-model providers and registry for AIbitat."""

import logging
from typing import TYPE_CHECKING, Optional, Type

from .base import Provider
from .claude import AnthropicProvider
from .functions import (
    FunctionDefinition,
    functions_to_anthropic,
    functions_to_openai,
)
from .gpt import OpenAIProvider
from .types import (
    Completion,
    FunctionCall,
    Message,
    MessageRole,
    estimate_cost,
)

if TYPE_CHECKING:
    from aibitat.config import Settings
    from aibitat.config.settings import ProviderConfig

logger = logging.getLogger(__name__)

# Registry mapping provider names to provider classes
PROVIDERS: dict[str, Type[Provider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}


def get_provider(
    name: str,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> Provider:
    """Create a provider by name.

    Args:
        name: Provider name ('openai', 'anthropic')
        model: Optional model ID (uses the provider default if not provided)
        api_key: Optional API key (falls back to environment variable)
        max_tokens: Optional max tokens
        temperature: Optional temperature
        max_retries: Optional transport-level retries

    Returns:
        Initialized Provider instance

    Raises:
        ValueError: If the provider name is not recognized
    """
    if name not in PROVIDERS:
        raise ValueError(
            f"Unknown provider: {name}. Available providers: {list(PROVIDERS.keys())}"
        )

    provider_class = PROVIDERS[name]

    kwargs = {}
    if api_key is not None:
        kwargs["api_key"] = api_key
    if model is not None:
        kwargs["model_id"] = model
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if temperature is not None:
        kwargs["temperature"] = temperature
    if max_retries is not None:
        kwargs["max_retries"] = max_retries

    return provider_class(**kwargs)


def get_provider_from_settings(
    config: "ProviderConfig",
    settings: "Settings",
    model: Optional[str] = None,
) -> Provider:
    """Create a provider from a provider section of the settings.

    Args:
        config: Provider section (``settings.provider`` or ``settings.selector``)
        settings: Application settings, used for API keys
        model: Model override taking precedence over the section's model

    Returns:
        Initialized Provider instance
    """
    return get_provider(
        name=config.name,
        model=model or config.model,
        api_key=settings.get_api_key(config.name),
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        max_retries=config.max_retries,
    )


__all__ = [
    # Base classes
    "Provider",
    # Implementations
    "OpenAIProvider",
    "AnthropicProvider",
    # Types
    "Completion",
    "FunctionCall",
    "Message",
    "MessageRole",
    "estimate_cost",
    # Functions
    "FunctionDefinition",
    "functions_to_openai",
    "functions_to_anthropic",
    # Registry
    "PROVIDERS",
    "get_provider",
    "get_provider_from_settings",
]
