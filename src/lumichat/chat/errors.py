"""Errors surfaced by ChatSession.

Precondition failures leave the session untouched. Stream failures arm
the retry policy with the text that failed.
"""


class ChatSessionError(Exception):
    """Base class for chat session errors."""


class PreconditionFailed(ChatSessionError):
    """A send or retry was rejected before any side effect."""


class EmptyMessage(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("Message is empty")


class NoContextSelected(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("Select an article before starting a conversation")


class MissingCredential(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("No API key configured")


class SessionBusy(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("A reply is still streaming")


class NothingToRetry(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("There is no failed message to retry")


class StreamFailed(ChatSessionError):
    """A send attempt failed after it was accepted.

    Attributes:
        pending_content: The user text that did not get a reply
        partial_text: Assistant text received before the failure (discarded
            from the transcript)
    """

    def __init__(self, message: str, pending_content: str, partial_text: str = ""):
        super().__init__(message)
        self.pending_content = pending_content
        self.partial_text = partial_text


class StreamOpenFailed(StreamFailed):
    """The stream could not be opened; no fragment arrived."""


class StreamInterrupted(StreamFailed):
    """The stream failed after it was opened."""


class StreamTimeout(StreamInterrupted):
    """No fragment arrived within the configured idle timeout."""


class StreamAbandoned(ChatSessionError):
    """The stream was abandoned by a context switch or session close."""

    def __init__(self) -> None:
        super().__init__("The conversation was reset while a reply was streaming")
