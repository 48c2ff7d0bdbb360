"""Streaming chat session controller.

A ChatSession owns the transcript of one conversation about one article
and sequences send, streaming updates, failure and retry. Each reply is
consumed by its own asyncio task; the transcript is only mutated on the
event loop that drives the session, through the operations below.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

from loguru import logger

from .client import ChatClient
from .config import SessionConfig
from .credentials import CredentialStore
from .errors import (
    EmptyMessage,
    MissingCredential,
    NoContextSelected,
    NothingToRetry,
    SessionBusy,
    StreamAbandoned,
    StreamFailed,
    StreamInterrupted,
    StreamOpenFailed,
    StreamTimeout,
)
from .models import ArticleContext, Message, RetryContext, SessionState, StreamingState
from .observer import SessionObserver
from .retry import RetryPolicy


class ChatSession:
    """Conversation controller for one article context.

    State machine:
        IDLE --send()--> STREAMING --chunk*--> STREAMING
        STREAMING --complete--> IDLE
        STREAMING --error--> IDLE (retry armed)
        IDLE (retry armed) --retry()--> STREAMING
        any --switch_context()--> IDLE (transcript cleared)

    Usage:
        session = ChatSession(client, credentials, context=article)
        session.add_observer(view)
        reply = await session.send("What is the main argument?")
    """

    def __init__(
        self,
        client: ChatClient,
        credentials: CredentialStore,
        config: SessionConfig | None = None,
        context: ArticleContext | None = None,
    ):
        """Initialize the session.

        Args:
            client: Opens reply streams
            credentials: Supplies the API key on every send
            config: Session settings (history, idle timeout)
            context: Initially selected article, if any
        """
        self._client = client
        self._credentials = credentials
        self._config = config or SessionConfig()
        self._context = context
        self._transcript: list[Message] = []
        self._streaming = StreamingState()
        self._retry = RetryPolicy()
        self._observers: list[SessionObserver] = []
        # Bumped on every context switch; streams from older generations are abandoned
        self._generation = 0
        self._stream_task: asyncio.Task[Message] | None = None

    # -- Observation -------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def context(self) -> ArticleContext | None:
        return self._context

    @property
    def transcript(self) -> tuple[Message, ...]:
        return tuple(self._transcript)

    @property
    def streaming(self) -> StreamingState:
        return self._streaming.model_copy()

    @property
    def state(self) -> SessionState:
        return SessionState.STREAMING if self._streaming.is_active else SessionState.IDLE

    @property
    def is_busy(self) -> bool:
        return self._streaming.is_active

    @property
    def retry_context(self) -> RetryContext | None:
        return self._retry.pending

    def can_retry(self, message: Message) -> bool:
        """Whether ``message`` is the user turn offered for retry."""
        return not self.is_busy and self._retry.matches(message.id)

    def add_observer(self, observer: SessionObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: SessionObserver) -> None:
        self._observers.remove(observer)

    def _notify(self, hook: str, *args: Any) -> None:
        for observer in list(self._observers):
            getattr(observer, hook)(*args)

    # -- Operations --------------------------------------------------------

    async def send(self, text: str) -> Message:
        """Send a question about the current article and stream the reply.

        Returns:
            The finalized assistant message

        Raises:
            EmptyMessage: ``text`` is blank (no side effects)
            SessionBusy: A reply is already streaming (no side effects)
            NoContextSelected: No article selected (no side effects)
            MissingCredential: No API key configured (no side effects)
            StreamOpenFailed: The stream could not be opened (retry armed)
            StreamInterrupted: The stream failed midway (retry armed)
            StreamAbandoned: The context was switched while streaming
        """
        content = text.strip()
        if not content:
            raise EmptyMessage()
        credential = self._check_ready()

        # A fresh send supersedes any stale failure
        self._retry.clear()
        return await self._dispatch(content, credential, existing_user_id=None)

    async def retry(self) -> Message:
        """Re-send the text of the last failed attempt.

        The user message of the failed attempt is reused, never duplicated.

        Raises:
            SessionBusy: A reply is already streaming
            NothingToRetry: No failed attempt is pending
            NoContextSelected, MissingCredential: As for ``send``
            StreamFailed, StreamAbandoned: As for ``send``
        """
        if self.is_busy:
            raise SessionBusy()
        pending = self._retry.pending
        if pending is None:
            raise NothingToRetry()
        credential = self._check_ready()

        existing = pending.user_message_id
        if existing is not None and self._index_of(existing) is None:
            existing = None
        self._retry.clear()
        return await self._dispatch(pending.pending_content, credential, existing_user_id=existing)

    def switch_context(self, context: ArticleContext | None) -> None:
        """Select another article, resetting the conversation.

        Clears the transcript, streaming state and retry state
        unconditionally. An in-flight stream is cancelled and any of its
        late fragments are dropped.
        """
        was_streaming = self._streaming.is_active
        self._abandon_stream()

        self._transcript.clear()
        self._streaming = StreamingState()
        self._retry.clear()
        self._context = context

        logger.debug("Switched context to {}", context.title if context else None)
        self._notify("on_transcript_cleared")
        if was_streaming:
            self._notify("on_state_changed", SessionState.IDLE)

    async def close(self) -> None:
        """Tear down the session: cancel any stream and close the client."""
        active_id = self._streaming.active_message_id
        task = self._abandon_stream()

        if active_id is not None:
            self._remove(active_id)
            self._streaming = StreamingState()
            self._notify("on_state_changed", SessionState.IDLE)

        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._client.close()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -- Internals ---------------------------------------------------------

    def _check_ready(self) -> str:
        if self._streaming.is_active:
            raise SessionBusy()
        if self._context is None:
            raise NoContextSelected()
        credential = self._credentials.get_credential()
        if not credential or not credential.strip():
            raise MissingCredential()
        return credential.strip()

    def _abandon_stream(self) -> asyncio.Task[Message] | None:
        self._generation += 1
        task, self._stream_task = self._stream_task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    def _index_of(self, message_id: UUID) -> int | None:
        for index, message in enumerate(self._transcript):
            if message.id == message_id:
                return index
        return None

    def _history_before(self, index: int) -> list[Message]:
        if not self._config.include_history:
            return []
        return list(self._transcript[:index])

    def _append(self, message: Message) -> None:
        self._transcript.append(message)
        self._notify("on_message_appended", message)

    def _replace(self, message_id: UUID, content: str) -> Message | None:
        index = self._index_of(message_id)
        if index is None:
            return None
        updated = self._transcript[index].with_content(content)
        self._transcript[index] = updated
        self._notify("on_message_updated", updated)
        return updated

    def _remove(self, message_id: UUID) -> None:
        index = self._index_of(message_id)
        if index is not None:
            del self._transcript[index]
            self._notify("on_message_removed", message_id)

    def _is_current(self, generation: int, message_id: UUID) -> bool:
        return (
            generation == self._generation
            and self._streaming.active_message_id == message_id
        )

    async def _dispatch(
        self,
        content: str,
        credential: str,
        existing_user_id: UUID | None,
    ) -> Message:
        # Everything up to create_task runs without yielding, so the user
        # turn, the placeholder and the busy flag appear together
        if existing_user_id is None:
            history = self._history_before(len(self._transcript))
            user_message = Message.user(content)
            self._append(user_message)
            user_id = user_message.id
        else:
            history = self._history_before(self._index_of(existing_user_id))
            user_id = existing_user_id

        placeholder = Message.assistant()
        self._append(placeholder)
        self._streaming = StreamingState(active_message_id=placeholder.id)
        self._notify("on_state_changed", SessionState.STREAMING)

        generation = self._generation
        context_text = self._context.content if self._context else ""
        task = asyncio.create_task(
            self._run_stream(generation, placeholder.id, user_id, content, context_text, history, credential)
        )
        self._stream_task = task
        logger.debug("Streaming reply {} ({} history turns)", placeholder.id, len(history))

        try:
            return await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise StreamAbandoned() from None
            raise

    async def _run_stream(
        self,
        generation: int,
        message_id: UUID,
        user_id: UUID,
        content: str,
        context_text: str,
        history: list[Message],
        credential: str,
    ) -> Message:
        try:
            stream = await self._client.open_chat_stream(context_text, history, content, credential)
        except asyncio.CancelledError:
            self._on_cancelled(generation, message_id)
            raise
        except Exception as exc:
            raise self._on_stream_error(
                generation, StreamOpenFailed(f"Could not open reply stream: {exc}", content), user_id
            ) from exc

        try:
            async for fragment in self._fragments(stream, content):
                self._on_chunk(generation, message_id, fragment)
        except asyncio.CancelledError:
            self._on_cancelled(generation, message_id)
            raise
        except StreamTimeout as error:
            raise self._on_stream_error(generation, error, user_id)
        except Exception as exc:
            raise self._on_stream_error(
                generation, StreamInterrupted(f"Reply stream failed: {exc}", content), user_id
            ) from exc
        finally:
            closer = getattr(stream, "aclose", None)
            if closer is not None:
                await closer()

        return self._on_stream_complete(generation, message_id)

    async def _fragments(self, stream: AsyncIterator[str], content: str) -> AsyncIterator[str]:
        iterator = stream.__aiter__()
        timeout = self._config.stream_idle_timeout
        while True:
            try:
                if timeout is None:
                    fragment = await iterator.__anext__()
                else:
                    fragment = await self._next_within(iterator, timeout, content)
            except StopAsyncIteration:
                return
            yield fragment

    @staticmethod
    async def _next_within(iterator: AsyncIterator[str], timeout: float, content: str) -> str:
        # Only the idle timer becomes StreamTimeout; a TimeoutError raised by
        # the transport itself surfaces through result() unchanged
        next_fragment = asyncio.ensure_future(iterator.__anext__())
        try:
            done, _ = await asyncio.wait({next_fragment}, timeout=timeout)
        except asyncio.CancelledError:
            next_fragment.cancel()
            raise
        if not done:
            next_fragment.cancel()
            raise StreamTimeout(f"No reply data for {timeout}s", content)
        return next_fragment.result()

    def _on_chunk(self, generation: int, message_id: UUID, text: str) -> None:
        if not self._is_current(generation, message_id):
            return
        self._streaming.accumulated_text += text
        self._replace(message_id, self._streaming.accumulated_text)

    def _on_stream_complete(self, generation: int, message_id: UUID) -> Message:
        if not self._is_current(generation, message_id):
            raise StreamAbandoned()

        final = self._replace(message_id, self._streaming.accumulated_text)
        self._streaming = StreamingState()
        self._stream_task = None
        self._retry.clear()
        self._notify("on_state_changed", SessionState.IDLE)
        logger.debug("Reply {} complete ({} chars)", message_id, len(final.content))
        return final

    def _on_stream_error(self, generation: int, error: StreamFailed, user_id: UUID) -> StreamFailed:
        if generation != self._generation:
            return error

        error.partial_text = self._streaming.accumulated_text
        active_id = self._streaming.active_message_id
        if active_id is not None:
            self._remove(active_id)
        self._streaming = StreamingState()
        self._stream_task = None
        self._retry.arm(error.pending_content, user_id)

        logger.warning("{}: {}", type(error).__name__, error)
        self._notify("on_state_changed", SessionState.IDLE)
        self._notify("on_error", error)
        return error

    def _on_cancelled(self, generation: int, message_id: UUID) -> None:
        # Abandoned streams were already cleared by switch_context/close
        if not self._is_current(generation, message_id):
            return
        self._remove(message_id)
        self._streaming = StreamingState()
        self._stream_task = None
        self._notify("on_state_changed", SessionState.IDLE)
