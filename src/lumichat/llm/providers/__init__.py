from .anthropic import AnthropicProvider
from .deepseek import DeepSeekProvider
from .gemini import GeminiProvider
from .gemini_rest import GeminiRestProvider
from .openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "DeepSeekProvider",
    "GeminiProvider",
    "GeminiRestProvider",
    "OpenAIProvider",
]
