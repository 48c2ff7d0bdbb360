"""Decoding of raw provider streams into text fragments.

This module hides how a transport-level stream (SSE lines, SDK event
objects) becomes the ordered sequence of text fragments a chat session
consumes. A provider supplies the raw items and a parse function; the
decoder owns ordering, skipping of non-data items and termination.
"""

from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

from loguru import logger

from .errors import StreamEndedError

T = TypeVar("T")

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class MalformedChunk(ValueError):
    """Raised by a parse function for an item that carries no usable data."""


class StreamComplete(Exception):
    """Raised by a parse function when an item terminates the stream.

    Args:
        text: Final fragment carried by the terminal item, if any
    """

    def __init__(self, text: str | None = None):
        super().__init__(text)
        self.text = text


class StreamDecoder(Generic[T]):
    """Lazy, finite, non-restartable sequence of text fragments.

    Fragments are produced in exactly the order the source delivers them.
    For every raw item the parse function either returns the fragment
    text, returns ``None``/``""`` (nothing to emit), raises
    ``MalformedChunk`` (item skipped, stream continues) or raises
    ``StreamComplete`` (stream ends, optionally with a last fragment).

    Errors raised by the source propagate unchanged and end the sequence.
    Fragments already handed out stay with the consumer.

    Usage:
        decoder = StreamDecoder(response.aiter_lines(), parse_line)
        async for fragment in decoder:
            ...
    """

    def __init__(
        self,
        source: AsyncIterable[T],
        parse: Callable[[T], str | None],
        require_terminal: bool = False,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        """Initialize the decoder.

        Args:
            source: Raw items from the transport
            parse: Converts one raw item into a fragment
            require_terminal: Treat a source that ends without a
                ``StreamComplete`` as a failure (``StreamEndedError``)
            on_close: Releases the transport (HTTP response, SDK stream);
                awaited once by ``aclose``
        """
        self._source = source
        self._parse = parse
        self._require_terminal = require_terminal
        self._on_close = on_close
        self._iterator: AsyncIterator[T] | None = None
        self._finished = False
        self._closed = False
        self.skipped = 0

    @property
    def finished(self) -> bool:
        """Whether the sequence has ended (normally or with an error)."""
        return self._finished

    def __aiter__(self) -> "StreamDecoder[T]":
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        if self._iterator is None:
            self._iterator = self._source.__aiter__()

        while True:
            try:
                item = await self._iterator.__anext__()
            except StopAsyncIteration:
                self._finished = True
                if self._require_terminal:
                    raise StreamEndedError(
                        "Stream ended before its terminal marker"
                    ) from None
                raise
            except BaseException:
                self._finished = True
                raise

            try:
                text = self._parse(item)
            except MalformedChunk as exc:
                self.skipped += 1
                logger.debug("Skipping malformed stream item: {}", exc)
                continue
            except StreamComplete as done:
                self._finished = True
                if done.text:
                    return done.text
                raise StopAsyncIteration from None

            if text:
                return text

    async def aclose(self) -> None:
        """Stop the sequence and release the transport. Idempotent."""
        self._finished = True
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._iterator or self._source, "aclose", None)
        try:
            if closer is not None:
                await closer()
        finally:
            if self._on_close is not None:
                await self._on_close()


async def prime(source: AsyncIterable[T]) -> AsyncIterator[T]:
    """Pull the first raw item now so that open failures surface here.

    Some SDKs only send the request on first iteration. Priming moves
    that failure to the provider's ``chat_completion_stream`` call.

    Returns:
        An iterator yielding the primed item followed by the rest
    """
    iterator = source.__aiter__()
    try:
        first = await iterator.__anext__()
    except StopAsyncIteration:
        return _chain([], iterator)
    return _chain([first], iterator)


async def _chain(head: list[T], rest: AsyncIterator[T]) -> AsyncIterator[T]:
    try:
        for item in head:
            yield item
        async for item in rest:
            yield item
    finally:
        closer = getattr(rest, "aclose", None)
        if closer is not None:
            await closer()


def sse_data(line: str) -> str | None:
    """Extract the payload of one server-sent-events line.

    Returns ``None`` for blank separator lines, raises ``MalformedChunk``
    for anything that is not a ``data:`` field (comments, keep-alives,
    ``event:`` lines) and ``StreamComplete`` for the ``[DONE]`` marker.
    """
    stripped = line.strip()
    if not stripped:
        return None
    if not stripped.startswith(SSE_DATA_PREFIX):
        raise MalformedChunk(f"not a data line: {stripped[:80]!r}")

    payload = stripped[len(SSE_DATA_PREFIX):].strip()
    if payload == SSE_DONE:
        raise StreamComplete()
    return payload
