"""LLM chat collaborator for article conversations.

Hidden design decisions:
- How transcript senders map to provider roles
- How the article and the question are framed for the model
- Which provider serves a request and how it is cached per credential
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Any

from loguru import logger

from ..llm import ChatMessage, LLMProvider, create_llm_provider
from ..prompts import render_article_question, render_summary_request
from .config import SessionConfig
from .models import Message, Sender

ROLE_BY_SENDER = {
    Sender.USER: "user",
    Sender.ASSISTANT: "assistant",
}


def build_chat_messages(
    context_text: str,
    history: list[Message],
    new_message: str,
    language: str = "English",
) -> list[ChatMessage]:
    """Build the provider message list for one article question.

    History turns are passed verbatim; the article is embedded only in
    the final user turn.
    """
    messages = [
        ChatMessage(role=ROLE_BY_SENDER[message.sender], content=message.content)
        for message in history
    ]
    messages.append(ChatMessage(
        role="user",
        content=render_article_question(
            article=context_text,
            question=new_message,
            has_history=bool(history),
            language=language,
        ),
    ))
    return messages


class ChatClient(ABC):
    """Opens chat streams for a ChatSession."""

    @abstractmethod
    async def open_chat_stream(
        self,
        context_text: str,
        history: list[Message],
        new_message: str,
        credential: str,
    ) -> AsyncIterator[str]:
        """Open a stream of reply fragments.

        Raises:
            Exception: If the stream cannot be opened
        """

    async def close(self) -> None:
        """Release any provider resources."""


class ArticleChatClient(ChatClient):
    """ChatClient backed by an LLMProvider.

    Providers are created lazily and kept per credential; a changed
    credential closes the previous provider.
    """

    def __init__(
        self,
        provider: str = "gemini",
        config: SessionConfig | None = None,
        provider_factory: Callable[..., LLMProvider] = create_llm_provider,
        **provider_config: Any
    ):
        """Initialize the client.

        Args:
            provider: Provider name for the factory ('gemini', 'openai', ...)
            config: Generation settings
            provider_factory: Creates a provider from (name, api_key=..., **config)
            **provider_config: Extra provider options (model, base_url, ...)
        """
        self._provider_name = provider
        self._config = config or SessionConfig()
        self._factory = provider_factory
        self._provider_config = provider_config
        self._provider: LLMProvider | None = None
        self._credential: str | None = None

    @property
    def provider_name(self) -> str:
        return self._provider_name

    async def _provider_for(self, credential: str) -> LLMProvider:
        if self._provider is not None and credential == self._credential:
            return self._provider
        if self._provider is not None:
            await self._provider.close()
        self._provider = self._factory(
            self._provider_name, api_key=credential, **self._provider_config
        )
        self._credential = credential
        return self._provider

    def _generation_options(self) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "top_p": self._config.top_p,
            "top_k": self._config.top_k,
        }

    async def open_chat_stream(
        self,
        context_text: str,
        history: list[Message],
        new_message: str,
        credential: str,
    ) -> AsyncIterator[str]:
        messages = build_chat_messages(
            context_text, history, new_message, language=self._config.reply_language
        )
        provider = await self._provider_for(credential)
        logger.debug(
            "Requesting {} reply with {} history turns",
            self._provider_name,
            len(history),
        )
        return await provider.chat_completion_stream(messages, **self._generation_options())

    async def summarize(
        self,
        articles: list[dict[str, str]],
        instructions: str,
        credential: str,
    ) -> str:
        """Summarize several articles in Markdown (non-streaming).

        Args:
            articles: Dicts with 'title' and 'content'
            instructions: What the summary should focus on
            credential: API key

        Returns:
            Markdown summary text
        """
        prompt = render_summary_request(articles, instructions)
        provider = await self._provider_for(credential)
        response = await provider.chat_completion(
            [ChatMessage(role="user", content=prompt)], **self._generation_options()
        )
        return response.content

    async def close(self) -> None:
        if self._provider is not None:
            await self._provider.close()
            self._provider = None
            self._credential = None
