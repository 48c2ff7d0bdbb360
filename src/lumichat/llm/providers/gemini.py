"""Google Gemini LLM provider implementation.

Uses the official Google GenAI SDK for async chat completions.
Reference: https://github.com/googleapis/python-genai

Note: Gemini can return empty responses due to safety filtering or service issues.
Non-streaming calls retry a few times before giving up with EmptyResponseError.
"""

import asyncio
from typing import Any

from google import genai
from google.genai import types
from loguru import logger

from ..base import LLMProvider
from ..errors import EmptyResponseError
from ..models import ChatMessage, LLMResponse, StreamingResponse
from ..streaming import StreamDecoder, prime

# Article text routinely trips the default filters; reading assistants disable them
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_NONE"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_NONE"),
]


def extract_text(response: Any) -> str:
    """Extract text content from a Gemini response or stream chunk.

    Args:
        response: Gemini GenerateContentResponse

    Returns:
        Joined text of the first candidate's parts, or empty string
    """
    if response.candidates:
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            texts = [part.text for part in candidate.content.parts if getattr(part, "text", None)]
            if texts:
                return "".join(texts)
    return ""


def _usage(metadata: Any) -> dict[str, int]:
    return {
        "prompt_tokens": metadata.prompt_token_count or 0,
        "completion_tokens": metadata.candidates_token_count or 0,
        "total_tokens": metadata.total_token_count or 0,
    }


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation.

    Hidden design decisions:
    - Google GenAI client initialization
    - 'assistant' maps to Gemini's 'model' role, system text to system_instruction
    - Retry logic for empty non-streaming responses (known Gemini issue)
    - Relaxed safety settings
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        max_retries: int = 3,
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Google AI API key
            model: Default model (gemini-2.0-flash, gemini-2.5-flash, gemini-2.5-pro)
            max_retries: Max attempts for empty non-streaming responses (default 3)
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._max_retries = max_retries
        self._client = genai.Client(api_key=api_key, **client_kwargs)

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def _convert_messages(self, messages: list[ChatMessage]) -> tuple[str | None, list[types.Content]]:
        """Convert ChatMessage list to Gemini format.

        Returns:
            Tuple of (system_instruction, contents)
        """
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "model" if msg.role == "assistant" else "user"
                contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))

        return system_instruction, contents

    def _config(
        self,
        system_instruction: str | None,
        temperature: float,
        max_tokens: int | None,
        top_p: float | None,
        top_k: int | None,
        **kwargs: Any
    ) -> types.GenerateContentConfig:
        # mode=NONE prevents UNEXPECTED_TOOL_CALL on prompts with function-like text
        tool_config = types.ToolConfig(
            function_calling_config=types.FunctionCallingConfig(mode="NONE")
        )
        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_instruction,
            safety_settings=DEFAULT_SAFETY_SETTINGS,
            tool_config=tool_config,
            **kwargs
        )
        if max_tokens is not None:
            config.max_output_tokens = max_tokens
        if top_p is not None:
            config.top_p = top_p
        if top_k is not None:
            config.top_k = top_k
        return config

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion using Google Gemini.

        Raises:
            EmptyResponseError: If every attempt returned no text
        """
        model_to_use = model or self._model
        system_instruction, contents = self._convert_messages(messages)
        config = self._config(system_instruction, temperature, max_tokens, top_p, top_k, **kwargs)

        for attempt in range(self._max_retries):
            response = await self._client.aio.models.generate_content(
                model=model_to_use,
                contents=contents,
                config=config
            )
            content = extract_text(response)
            if content:
                usage = _usage(response.usage_metadata) if response.usage_metadata else None
                return LLMResponse(content=content, model=model_to_use, usage=usage)

            logger.warning("Empty Gemini response (attempt {}/{})", attempt + 1, self._max_retries)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(0.5 * (attempt + 1))

        raise EmptyResponseError(f"{model_to_use} returned no content")

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Open a streaming chat completion using Google Gemini."""
        model_to_use = model or self._model
        system_instruction, contents = self._convert_messages(messages)
        config = self._config(system_instruction, temperature, max_tokens, top_p, top_k, **kwargs)

        logger.debug("Opening {} stream with {} messages", model_to_use, len(contents))
        stream = await self._client.aio.models.generate_content_stream(
            model=model_to_use, contents=contents, config=config
        )
        # The SDK sends the request on first iteration
        source = await prime(stream)

        def parse(chunk: Any) -> str | None:
            if chunk.usage_metadata:
                response.set_usage(_usage(chunk.usage_metadata))
            return extract_text(chunk)

        response = StreamingResponse(StreamDecoder(source, parse), model=model_to_use)
        return response

    async def close(self) -> None:
        """Close the Gemini client.

        The GenAI client holds no connection between calls.
        """
