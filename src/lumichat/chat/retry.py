"""Retry bookkeeping for failed sends.

Retry is always an explicit user action; the policy only remembers
what to send again.
"""

from uuid import UUID

from .models import RetryContext


class RetryPolicy:
    """Tracks exactly one retryable failure at a time.

    Armed by a failed send, cleared by a successful reply, by a new send
    (which supersedes a stale failure) and by a context switch. Nothing
    is retried automatically.
    """

    def __init__(self) -> None:
        self._pending: RetryContext | None = None

    @property
    def pending(self) -> RetryContext | None:
        return self._pending

    @property
    def is_armed(self) -> bool:
        return self._pending is not None

    def arm(self, content: str, user_message_id: UUID | None = None) -> RetryContext:
        """Record the failed text, replacing any earlier failure."""
        self._pending = RetryContext(pending_content=content, user_message_id=user_message_id)
        return self._pending

    def clear(self) -> None:
        self._pending = None

    def matches(self, message_id: UUID) -> bool:
        """Whether the given transcript entry is the one offered for retry."""
        return self._pending is not None and self._pending.user_message_id == message_id
