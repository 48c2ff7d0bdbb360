"""Errors raised by LLM providers.

SDK-backed providers let their client library's exceptions through; these
classes cover the cases the providers detect themselves.
"""


class LLMError(Exception):
    """Base class for provider-level failures."""


class APIStatusError(LLMError):
    """The upstream API answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class EmptyResponseError(LLMError):
    """The upstream API returned no text content."""


class StreamEndedError(LLMError):
    """The transport closed before the stream's terminal marker arrived."""
