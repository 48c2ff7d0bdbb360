"""Data models for article chat sessions.

These models describe the transcript and the session's transient state,
independent of how a front end renders them.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Sender(str, Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"


class SessionState(str, Enum):
    """Coarse session state reported to observers."""

    IDLE = "idle"
    STREAMING = "streaming"


class Message(BaseModel):
    """One turn in a conversation.

    Messages are immutable; a streaming assistant message is updated by
    replacing the transcript entry with ``with_content``, which keeps the
    id and timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    sender: Sender
    content: str = ""
    timestamp: datetime = Field(default_factory=_now)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(sender=Sender.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "") -> "Message":
        return cls(sender=Sender.ASSISTANT, content=content)

    def with_content(self, content: str) -> "Message":
        """Copy of this message with new content, same id and timestamp."""
        return self.model_copy(update={"content": content})


class ArticleContext(BaseModel):
    """Reference document a conversation is grounded in."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str | None = None
    content: str = ""
    link: str | None = None


class StreamingState(BaseModel):
    """At most one active stream per session.

    ``active_message_id`` is set if and only if a stream is open.
    """

    active_message_id: UUID | None = None
    accumulated_text: str = ""

    @property
    def is_active(self) -> bool:
        return self.active_message_id is not None


class RetryContext(BaseModel):
    """The most recent failed send, awaiting an explicit retry."""

    model_config = ConfigDict(frozen=True)

    pending_content: str
    user_message_id: UUID | None = Field(
        default=None,
        description="Transcript entry already holding pending_content for this attempt"
    )
