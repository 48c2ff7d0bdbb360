"""Anthropic Claude LLM provider implementation."""

from typing import Any

from anthropic import AsyncAnthropic
from loguru import logger

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse, StreamingResponse
from ..streaming import StreamDecoder

DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation.

    Hidden design decisions:
    - System prompt is a request field, not a message
    - max_tokens is mandatory for the Messages API
    - Usage is split across message_start and message_delta events
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def _request_params(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int | None,
        top_p: float | None,
        top_k: int | None,
        **kwargs: Any
    ) -> dict[str, Any]:
        system_message = None
        anthropic_messages = []
        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                anthropic_messages.append({"role": msg.role, "content": msg.content})

        request_params: dict[str, Any] = {
            "model": model,
            "messages": anthropic_messages,
            "temperature": temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            **kwargs
        }
        if system_message:
            request_params["system"] = system_message
        if top_p is not None:
            request_params["top_p"] = top_p
        if top_k is not None:
            request_params["top_k"] = top_k
        return request_params

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
        """Generate a chat completion using Anthropic Claude."""
        request_params = self._request_params(
            messages, model or self._model, temperature, max_tokens, top_p, top_k, **kwargs
        )
        response = await self._client.messages.create(**request_params)

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens
            }

        content = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        return LLMResponse(content=content, model=response.model, usage=usage)

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
        """Open a streaming chat completion using Anthropic Claude."""
        model_to_use = model or self._model
        request_params = self._request_params(
            messages, model_to_use, temperature, max_tokens, top_p, top_k, **kwargs
        )
        request_params["stream"] = True

        logger.debug("Opening {} stream with {} messages", model_to_use, len(messages))
        stream = await self._client.messages.create(**request_params)
        tokens = {"prompt_tokens": 0, "completion_tokens": 0}

        def parse(event: Any) -> str | None:
            event_type = getattr(event, "type", None)
            if event_type == "message_start":
                tokens["prompt_tokens"] = event.message.usage.input_tokens
            elif event_type == "message_delta":
                tokens["completion_tokens"] = event.usage.output_tokens
                response.set_usage({
                    **tokens,
                    "total_tokens": tokens["prompt_tokens"] + tokens["completion_tokens"],
                })
            elif event_type == "content_block_delta":
                return getattr(event.delta, "text", None)
            return None

        response = StreamingResponse(
            StreamDecoder(stream, parse, on_close=stream.close), model=model_to_use
        )
        return response

    async def close(self) -> None:
        """Close the Anthropic client."""
        await self._client.close()
