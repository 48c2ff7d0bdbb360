"""Terminal rendering of a chat session.

Hides how transcript notifications become console output. Streaming
replies are printed incrementally as their content grows.
"""

from uuid import UUID

from rich.console import Console
from rich.markdown import Markdown

from ..chat import Message, Sender, SessionObserver, SessionState

# Preview length for the article banner
ARTICLE_PREVIEW_CHARS = 200


class ConsoleObserver(SessionObserver):
    """Prints assistant replies as they stream in."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self._printed: dict[UUID, int] = {}

    def on_message_appended(self, message: Message) -> None:
        if message.sender is Sender.ASSISTANT:
            self._printed[message.id] = 0
            self.console.print("[bold green]Assistant:[/bold green] ", end="")

    def on_message_updated(self, message: Message) -> None:
        offset = self._printed.get(message.id)
        if offset is None:
            return
        delta = message.content[offset:]
        if delta:
            self.console.print(delta, end="", markup=False, highlight=False)
            self._printed[message.id] = len(message.content)

    def on_message_removed(self, message_id: UUID) -> None:
        if self._printed.pop(message_id, None) is not None:
            self.console.print("\n[dim](partial reply discarded)[/dim]")

    def on_transcript_cleared(self) -> None:
        self._printed.clear()

    def on_state_changed(self, state: SessionState) -> None:
        if state is SessionState.IDLE and self._printed:
            self.console.print()
            self._printed.clear()

    def on_error(self, error: Exception) -> None:
        self.console.print(f"[red]Error: {error}[/red]")
        self.console.print("[dim]Type /retry to send it again.[/dim]")


def print_article_banner(console: Console, title: str | None, content: str) -> None:
    preview = content[:ARTICLE_PREVIEW_CHARS].replace("\n", " ")
    if len(content) > ARTICLE_PREVIEW_CHARS:
        preview += "..."
    console.print(f"[bold cyan]{title or 'Untitled'}[/bold cyan]")
    console.print(f"[dim]{preview}[/dim]\n")


def print_summary(console: Console, summary: str) -> None:
    console.print(Markdown(summary))
