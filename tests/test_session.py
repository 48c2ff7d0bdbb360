"""Tests for the chat session controller."""
import asyncio

import pytest
from conftest import END, FakeChatClient, QueueStream, ScriptedStream, wait_until
from hypothesis import given, settings
from hypothesis import strategies as st

from lumichat.chat import (
    ArticleContext,
    ChatSession,
    EmptyMessage,
    MissingCredential,
    NoContextSelected,
    Sender,
    SessionBusy,
    SessionConfig,
    SessionState,
    StaticCredentialStore,
    StreamAbandoned,
    StreamInterrupted,
    StreamOpenFailed,
    StreamTimeout,
)


def _article() -> ArticleContext:
    return ArticleContext(title="Sample", content="Some article text.")


class TestSend:
    """Tests for a successful send."""

    @pytest.mark.asyncio
    async def test_fragments_are_concatenated_in_order(self, make_session):
        """Test that a reply is built from fragments in arrival order."""
        session, client = make_session(ScriptedStream(["Hi", " there", "!"]))

        reply = await session.send("Hello")

        assert reply.sender is Sender.ASSISTANT
        assert reply.content == "Hi there!"
        assert [m.sender for m in session.transcript] == [Sender.USER, Sender.ASSISTANT]
        assert session.transcript[0].content == "Hello"
        assert session.transcript[1] == reply
        assert session.state is SessionState.IDLE
        assert session.streaming.active_message_id is None
        assert session.retry_context is None

    @pytest.mark.asyncio
    async def test_text_is_trimmed(self, make_session):
        session, client = make_session(ScriptedStream(["ok"]))

        await session.send("  What is this about?\n")

        assert session.transcript[0].content == "What is this about?"
        assert client.calls[0]["new_message"] == "What is this about?"

    @pytest.mark.asyncio
    async def test_request_carries_context_and_credential(self, make_session, article):
        session, client = make_session(ScriptedStream(["ok"]))

        await session.send("Hello")

        call = client.calls[0]
        assert call["context_text"] == article.content
        assert call["credential"] == "test-key"
        assert call["history"] == []

    @pytest.mark.asyncio
    async def test_observer_sees_mutations_in_order(self, make_session, observer):
        """Test the notification sequence of a streamed reply."""
        session, _ = make_session(ScriptedStream(["Hi", " there"]))

        await session.send("Hello")

        assert observer.names() == [
            "appended",
            "appended",
            "state",
            "updated",
            "updated",
            "updated",
            "state",
        ]
        updates = [payload.content for name, payload in observer.events if name == "updated"]
        assert updates == ["Hi", "Hi there", "Hi there"]
        states = [payload for name, payload in observer.events if name == "state"]
        assert states == [SessionState.STREAMING, SessionState.IDLE]

    @pytest.mark.asyncio
    async def test_streamed_message_keeps_identity(self, make_session, observer):
        """Test that content updates keep the placeholder's id and timestamp."""
        session, _ = make_session(ScriptedStream(["a", "b"]))

        reply = await session.send("Hello")

        placeholder = observer.events[1][1]
        assert placeholder.content == ""
        assert reply.id == placeholder.id
        assert reply.timestamp == placeholder.timestamp

    @pytest.mark.asyncio
    async def test_stream_is_closed_after_completion(self, make_session):
        stream = ScriptedStream(["done"])
        session, _ = make_session(stream)

        await session.send("Hello")

        assert stream.closed

    @pytest.mark.asyncio
    async def test_history_includes_prior_turns(self, make_session):
        session, client = make_session(ScriptedStream(["First"]), ScriptedStream(["Second"]))

        await session.send("One")
        await session.send("Two")

        history = client.calls[1]["history"]
        assert [(m.sender, m.content) for m in history] == [
            (Sender.USER, "One"),
            (Sender.ASSISTANT, "First"),
        ]

    @pytest.mark.asyncio
    async def test_history_can_be_disabled(self, make_session):
        session, client = make_session(
            ScriptedStream(["First"]),
            ScriptedStream(["Second"]),
            config=SessionConfig(include_history=False),
        )

        await session.send("One")
        await session.send("Two")

        assert client.calls[1]["history"] == []
        assert len(session.transcript) == 4

    @pytest.mark.asyncio
    async def test_credential_is_read_on_every_send(self, article):
        credentials = StaticCredentialStore(None)
        client = FakeChatClient(ScriptedStream(["ok"]))
        session = ChatSession(client, credentials, context=article)

        with pytest.raises(MissingCredential):
            await session.send("Hello")

        credentials.set_credential("new-key")
        await session.send("Hello")

        assert client.calls[0]["credential"] == "new-key"

    @given(st.lists(st.text(min_size=1), max_size=20))
    @settings(max_examples=50, deadline=None)
    def test_reply_is_concatenation_of_fragments(self, fragments):
        """Property test: the final reply equals the joined fragments."""
        async def scenario():
            client = FakeChatClient(ScriptedStream(fragments))
            session = ChatSession(client, StaticCredentialStore("k"), context=_article())
            reply = await session.send("Question")
            return session, reply

        session, reply = asyncio.run(scenario())

        assert reply.content == "".join(fragments)
        users = [m for m in session.transcript if m.sender is Sender.USER]
        assistants = [m for m in session.transcript if m.sender is Sender.ASSISTANT]
        assert len(users) == 1 and users[0].content == "Question"
        assert len(assistants) == 1


class TestPreconditions:
    """Tests for rejected sends."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t  "])
    async def test_blank_text_is_rejected(self, make_session, observer, text):
        session, client = make_session(ScriptedStream(["unused"]))

        with pytest.raises(EmptyMessage):
            await session.send(text)

        assert session.transcript == ()
        assert client.calls == []
        assert observer.events == []

    @given(st.text(alphabet=" \t\n\r", max_size=10))
    @settings(max_examples=25, deadline=None)
    def test_whitespace_never_opens_a_stream(self, text):
        """Property test: whitespace-only input is always a precondition failure."""
        async def scenario():
            client = FakeChatClient()
            session = ChatSession(client, StaticCredentialStore("k"), context=_article())
            with pytest.raises(EmptyMessage):
                await session.send(text)
            return session, client

        session, client = asyncio.run(scenario())

        assert session.transcript == ()
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_no_context_selected(self, make_session):
        session, client = make_session(ScriptedStream(["unused"]), context=None)

        with pytest.raises(NoContextSelected):
            await session.send("Hello")

        assert session.transcript == ()
        assert session.retry_context is None
        assert client.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credential", [None, "", "   "])
    async def test_missing_credential(self, article, credential):
        client = FakeChatClient(ScriptedStream(["unused"]))
        session = ChatSession(client, StaticCredentialStore(credential), context=article)

        with pytest.raises(MissingCredential):
            await session.send("Hello")

        assert session.transcript == ()
        assert session.retry_context is None

    @pytest.mark.asyncio
    async def test_send_while_streaming_is_rejected(self, make_session):
        """Test that a second send while a reply streams changes nothing."""
        stream = QueueStream()
        session, client = make_session(stream)

        first = asyncio.create_task(session.send("Hello"))
        stream.push("Partial")
        await wait_until(lambda: session.streaming.accumulated_text == "Partial")
        before = session.transcript

        with pytest.raises(SessionBusy):
            await session.send("Another question")
        with pytest.raises(SessionBusy):
            await session.retry()

        assert session.transcript == before
        assert len(client.calls) == 1

        stream.push(" reply", END)
        reply = await first
        assert reply.content == "Partial reply"

    @given(st.text(min_size=1).filter(lambda s: s.strip()))
    @settings(max_examples=25, deadline=None)
    def test_busy_rejection_is_idempotent(self, text):
        """Property test: any non-blank send while busy raises SessionBusy."""
        async def scenario():
            stream = QueueStream()
            client = FakeChatClient(stream)
            session = ChatSession(client, StaticCredentialStore("k"), context=_article())
            first = asyncio.create_task(session.send("Hello"))
            await wait_until(lambda: len(client.calls) == 1)
            before = session.transcript
            with pytest.raises(SessionBusy):
                await session.send(text)
            after = session.transcript
            stream.push(END)
            await first
            return before, after

        before, after = asyncio.run(scenario())

        assert before == after


class TestStreamFailure:
    """Tests for failed streams."""

    @pytest.mark.asyncio
    async def test_open_failure_keeps_user_message(self, make_session, observer):
        session, _ = make_session(RuntimeError("connection refused"))

        with pytest.raises(StreamOpenFailed) as exc_info:
            await session.send("Hello")

        assert exc_info.value.pending_content == "Hello"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert [(m.sender, m.content) for m in session.transcript] == [(Sender.USER, "Hello")]
        assert session.state is SessionState.IDLE
        assert session.retry_context.pending_content == "Hello"
        assert session.retry_context.user_message_id == session.transcript[0].id
        assert "removed" in observer.names()
        assert observer.names()[-1] == "error"

    @pytest.mark.asyncio
    async def test_interruption_removes_partial_reply(self, make_session):
        """Test that a stream failing midway leaves no partial assistant message."""
        stream = ScriptedStream(["Par", "tial"], error=ConnectionError("reset"))
        session, _ = make_session(stream)

        with pytest.raises(StreamInterrupted) as exc_info:
            await session.send("Hello")

        assert exc_info.value.partial_text == "Partial"
        assert [m.sender for m in session.transcript] == [Sender.USER]
        assert session.streaming.active_message_id is None
        assert session.streaming.accumulated_text == ""
        assert session.retry_context.pending_content == "Hello"
        assert stream.closed

    @pytest.mark.asyncio
    async def test_idle_timeout_fails_the_stream(self, make_session):
        stream = QueueStream()
        session, _ = make_session(stream, config=SessionConfig(stream_idle_timeout=0.05))

        with pytest.raises(StreamTimeout) as exc_info:
            await session.send("Hello")

        assert str(exc_info.value) == "No reply data for 0.05s"
        assert exc_info.value.pending_content == "Hello"
        assert [m.sender for m in session.transcript] == [Sender.USER]
        assert session.retry_context is not None
        assert stream.closed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("idle_timeout", [None, 5.0])
    async def test_transport_timeout_is_an_interruption(self, make_session, idle_timeout):
        """Test that a TimeoutError from the transport is not mistaken for the idle timer."""
        stream = ScriptedStream(["a"], error=TimeoutError("socket read timed out"))
        session, _ = make_session(stream, config=SessionConfig(stream_idle_timeout=idle_timeout))

        with pytest.raises(StreamInterrupted) as exc_info:
            await session.send("Hello")

        assert type(exc_info.value) is StreamInterrupted
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert exc_info.value.partial_text == "a"
        assert session.retry_context.pending_content == "Hello"

    @pytest.mark.asyncio
    async def test_idle_timeout_allows_steady_stream(self, make_session):
        session, _ = make_session(
            ScriptedStream(["a", "b", "c"]), config=SessionConfig(stream_idle_timeout=5.0)
        )

        reply = await session.send("Hello")

        assert reply.content == "abc"

    @pytest.mark.asyncio
    async def test_prior_transcript_survives_failure(self, make_session):
        session, _ = make_session(
            ScriptedStream(["Fine"]),
            ScriptedStream([], error=ConnectionError("reset")),
        )

        await session.send("One")
        with pytest.raises(StreamInterrupted):
            await session.send("Two")

        assert [m.content for m in session.transcript] == ["One", "Fine", "Two"]


class TestSwitchContext:
    """Tests for context switching."""

    @pytest.mark.asyncio
    async def test_switch_clears_everything(self, make_session, other_article):
        session, _ = make_session(RuntimeError("down"))
        with pytest.raises(StreamOpenFailed):
            await session.send("Hello")

        session.switch_context(other_article)

        assert session.transcript == ()
        assert session.retry_context is None
        assert session.state is SessionState.IDLE
        assert session.context == other_article

    @pytest.mark.asyncio
    async def test_switch_abandons_active_stream(self, make_session, observer, other_article):
        """Test that late fragments of an abandoned stream are dropped."""
        stream = QueueStream()
        session, _ = make_session(stream)

        pending = asyncio.create_task(session.send("Hello"))
        stream.push("Early")
        await wait_until(lambda: session.streaming.accumulated_text == "Early")

        session.switch_context(other_article)
        events_after_switch = len(observer.events)
        stream.push(" late", END)

        with pytest.raises(StreamAbandoned):
            await pending

        assert session.transcript == ()
        assert session.streaming.active_message_id is None
        assert session.streaming.accumulated_text == ""
        assert session.retry_context is None
        assert len(observer.events) == events_after_switch
        assert stream.closed

    @pytest.mark.asyncio
    async def test_new_context_accepts_sends(self, make_session, other_article):
        stream = QueueStream()
        session, client = make_session(stream, ScriptedStream(["Fresh"]))

        pending = asyncio.create_task(session.send("Hello"))
        await wait_until(lambda: len(client.calls) == 1)
        session.switch_context(other_article)
        with pytest.raises(StreamAbandoned):
            await pending

        reply = await session.send("New question")

        assert reply.content == "Fresh"
        assert client.calls[1]["context_text"] == other_article.content
        assert client.calls[1]["history"] == []

    @pytest.mark.asyncio
    async def test_switch_to_no_context(self, make_session):
        session, _ = make_session(ScriptedStream(["ok"]))
        await session.send("Hello")

        session.switch_context(None)

        with pytest.raises(NoContextSelected):
            await session.send("Hello again")


class TestClose:
    """Tests for session teardown."""

    @pytest.mark.asyncio
    async def test_close_cancels_stream_and_client(self, make_session):
        stream = QueueStream()
        session, client = make_session(stream)

        pending = asyncio.create_task(session.send("Hello"))
        stream.push("Half")
        await wait_until(lambda: session.streaming.accumulated_text == "Half")

        await session.close()

        with pytest.raises(StreamAbandoned):
            await pending
        assert client.closed
        assert stream.closed
        assert [m.sender for m in session.transcript] == [Sender.USER]
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, article, credentials):
        client = FakeChatClient(ScriptedStream(["ok"]))

        async with ChatSession(client, credentials, context=article) as session:
            await session.send("Hello")

        assert client.closed
