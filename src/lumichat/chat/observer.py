"""Observer interface for chat sessions.

Hides how a presentation layer learns about transcript changes. A session
calls these hooks synchronously, in mutation order, from the event loop
that drives it. Subclasses override only what they render.
"""

from typing import Any
from uuid import UUID

from .models import Message, SessionState


class SessionObserver:
    """Receives transcript and state notifications from a ChatSession."""

    def on_message_appended(self, message: Message) -> None:
        """A message was added to the end of the transcript."""

    def on_message_updated(self, message: Message) -> None:
        """The streaming assistant message got new content."""

    def on_message_removed(self, message_id: UUID) -> None:
        """A message (the failed assistant placeholder) was removed."""

    def on_transcript_cleared(self) -> None:
        """The transcript was emptied by a context switch."""

    def on_state_changed(self, state: SessionState) -> None:
        """The session moved between idle and streaming."""

    def on_error(self, error: Exception) -> None:
        """A send or retry failed."""


class RecordingObserver(SessionObserver):
    """Keeps every notification as an ``(event, payload)`` tuple."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_message_appended(self, message: Message) -> None:
        self.events.append(("appended", message))

    def on_message_updated(self, message: Message) -> None:
        self.events.append(("updated", message))

    def on_message_removed(self, message_id: UUID) -> None:
        self.events.append(("removed", message_id))

    def on_transcript_cleared(self) -> None:
        self.events.append(("cleared", None))

    def on_state_changed(self, state: SessionState) -> None:
        self.events.append(("state", state))

    def on_error(self, error: Exception) -> None:
        self.events.append(("error", error))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()
