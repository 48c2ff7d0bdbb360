from .base import LLMProvider
from .errors import APIStatusError, EmptyResponseError, LLMError, StreamEndedError
from .factory import SUPPORTED_PROVIDERS, create_llm_provider
from .models import ChatMessage, LLMResponse, StreamingResponse
from .providers import (
    AnthropicProvider,
    DeepSeekProvider,
    GeminiProvider,
    GeminiRestProvider,
    OpenAIProvider,
)
from .streaming import MalformedChunk, StreamComplete, StreamDecoder

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "SUPPORTED_PROVIDERS",
    "ChatMessage",
    "LLMResponse",
    "StreamingResponse",
    "StreamDecoder",
    "MalformedChunk",
    "StreamComplete",
    "LLMError",
    "APIStatusError",
    "EmptyResponseError",
    "StreamEndedError",
    "AnthropicProvider",
    "DeepSeekProvider",
    "GeminiProvider",
    "GeminiRestProvider",
    "OpenAIProvider",
]
