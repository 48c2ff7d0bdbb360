"""Pytest configuration and shared fixtures."""
import asyncio
import os

import pytest

from lumichat.chat import (
    ArticleContext,
    ChatClient,
    ChatSession,
    RecordingObserver,
    SessionConfig,
    StaticCredentialStore,
)

END = object()


class ScriptedStream:
    """Reply stream that yields fixed fragments, then optionally fails."""

    def __init__(self, fragments=(), error: Exception | None = None):
        self._fragments = list(fragments)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        await asyncio.sleep(0)
        if self._fragments:
            return self._fragments.pop(0)
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class QueueStream:
    """Reply stream fed by the test: push fragments, an exception, or END."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, *items) -> None:
        for item in items:
            self.queue.put_nowait(item)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self.queue.get()
        if item is END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeChatClient(ChatClient):
    """ChatClient that replays scripted streams (or raises scripted errors)."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls: list[dict] = []
        self.closed = False

    async def open_chat_stream(self, context_text, history, new_message, credential):
        self.calls.append({
            "context_text": context_text,
            "history": list(history),
            "new_message": new_message,
            "credential": credential,
        })
        script = self.scripts.pop(0)
        await asyncio.sleep(0)
        if isinstance(script, BaseException):
            raise script
        return script

    async def close(self) -> None:
        self.closed = True


async def wait_until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
        "openai": os.getenv("OPENAI_API_KEY"),
    }


@pytest.fixture
def article():
    """Return a sample article context."""
    return ArticleContext(
        id="article-1",
        title="On Reading",
        content="Reading slowly improves retention. Skimming helps triage.",
        link="https://example.com/on-reading",
    )


@pytest.fixture
def other_article():
    return ArticleContext(id="article-2", title="On Writing", content="Write every day.")


@pytest.fixture
def credentials():
    return StaticCredentialStore("test-key")


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_session(article, credentials, observer):
    """Build a session around a FakeChatClient with the given scripts."""

    def _make(*scripts, config: SessionConfig | None = None, context=article):
        client = FakeChatClient(*scripts)
        session = ChatSession(client, credentials, config=config, context=context)
        session.add_observer(observer)
        return session, client

    return _make
