from typing import Any

from .base import LLMProvider
from .providers import (
    AnthropicProvider,
    DeepSeekProvider,
    GeminiProvider,
    GeminiRestProvider,
    OpenAIProvider,
)

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "gemini": GeminiProvider,
    "gemini-rest": GeminiRestProvider,
    "openai": OpenAIProvider,
    "deepseek": DeepSeekProvider,
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
}

SUPPORTED_PROVIDERS = tuple(_PROVIDERS)


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Create an LLM provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('gemini', 'gemini-rest', 'openai', 'deepseek',
            'anthropic'/'claude')
        **config: Provider-specific configuration
            All providers:
                - api_key: str (required)
                - model: str (provider default if omitted)
            For OpenAI:
                - base_url: str | None
                - organization: str | None
            For DeepSeek:
                - base_url: str (default: 'https://api.deepseek.com')
            For Gemini REST:
                - base_url: str
                - timeout: float (default: 60.0)

    Returns:
        Initialized LLM provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_llm_provider(
        ...     "gemini",
        ...     api_key="...",
        ...     model="gemini-2.0-flash"
        ... )
    """
    provider_lower = provider.lower()
    provider_cls = _PROVIDERS.get(provider_lower)

    if provider_cls is None:
        raise ValueError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: {', '.join(repr(name) for name in SUPPORTED_PROVIDERS)}"
        )

    if not config.get("api_key"):
        raise TypeError(f"{provider_cls.__name__} requires 'api_key' in config")

    # Drop unset options so provider defaults apply
    return provider_cls(**{key: value for key, value in config.items() if value is not None})
