"""Main CLI application using Typer."""
import asyncio
import os
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..chat import (
    ArticleContext,
    ChatSession,
    PreconditionFailed,
    PresetPrompt,
    Sender,
    StreamFailed,
    compose_input,
)
from ..logging_config import setup_logging
from .console import ConsoleObserver, print_article_banner, print_summary
from .providers import (
    get_chat_client,
    get_credentials,
    get_preset_store,
    get_provider_name,
    get_session_config,
    require_credential,
)

# Load environment variables
load_dotenv()

app = typer.Typer(
    name="lumichat",
    help="Ask questions about articles with a streaming LLM assistant",
    no_args_is_help=True,
    add_completion=True,
)

console = Console()

EXIT_WORDS = ("exit", "quit", "q")


@app.callback()
def main_options(
    log_level: str = typer.Option(
        os.getenv("LUMICHAT_LOG_LEVEL", "WARNING"),
        "--log-level",
        help="Log level for diagnostics on stderr"
    ),
    log_file: Path | None = typer.Option(
        os.getenv("LUMICHAT_LOG_FILE") or None,
        "--log-file",
        help="Also write DEBUG logs to this file"
    ),
):
    """Configure logging before any command runs."""
    setup_logging(level=log_level, log_file=log_file)


def load_article(path: Path) -> ArticleContext:
    """Read a text or Markdown file as an article context."""
    content = path.read_text(encoding="utf-8")
    return ArticleContext(id=str(path.resolve()), title=path.stem, content=content)


def _presets_table(presets: list[PresetPrompt]) -> Table:
    table = Table(title="Preset prompts")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Content", style="dim")
    for index, preset in enumerate(presets, 1):
        table.add_row(str(index), preset.title, preset.content)
    return table


def _select_presets(presets: list[PresetPrompt], args: list[str]) -> list[PresetPrompt]:
    selected = []
    for arg in args:
        index = int(arg) - 1
        if not 0 <= index < len(presets):
            raise ValueError(f"No preset number {arg}")
        selected.append(presets[index])
    return selected


@app.command()
def chat(
    article: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Article file (text or Markdown) to talk about"
    ),
):
    """Interactive chat about an article."""
    async def _chat():
        provider = get_provider_name(console)
        config = get_session_config()
        presets = get_preset_store().load()

        session = ChatSession(
            get_chat_client(provider, config),
            get_credentials(provider),
            config=config,
            context=load_article(article),
        )
        session.add_observer(ConsoleObserver(console))

        async with session:
            print_article_banner(console, session.context.title, session.context.content)
            console.print("[dim]Commands: /retry, /open PATH, /presets, /use N [N...], /history, quit[/dim]\n")

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                if not user_input:
                    continue
                if user_input.lower() in EXIT_WORDS:
                    console.print("[dim]Goodbye![/dim]")
                    break

                command, _, rest = user_input.partition(" ")
                try:
                    if command == "/retry":
                        await session.retry()
                    elif command == "/open":
                        context = load_article(Path(rest.strip()).expanduser())
                        session.switch_context(context)
                        print_article_banner(console, context.title, context.content)
                    elif command == "/presets":
                        console.print(_presets_table(presets))
                    elif command == "/use":
                        selected = _select_presets(presets, rest.split())
                        clipboard = None
                        if len(selected) == 1 and selected[0].takes_clipboard:
                            clipboard = console.input("[dim]Text for [x]:[/dim] ")
                        text = compose_input(selected, clipboard)
                        console.print(f"[bold yellow]You:[/bold yellow] {text}", markup=False)
                        await session.send(text)
                    elif command == "/history":
                        for message in session.transcript:
                            who = "You" if message.sender is Sender.USER else "Assistant"
                            console.print(f"[bold]{who}:[/bold] {message.content}\n")
                    else:
                        await session.send(user_input)
                except PreconditionFailed as e:
                    console.print(f"[yellow]{e}[/yellow]")
                except StreamFailed:
                    # Already reported by the observer
                    continue
                except (OSError, ValueError) as e:
                    console.print(f"[red]Error: {e}[/red]")

    asyncio.run(_chat())


@app.command()
def summarize(
    articles: list[Path] = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Article files to summarize together"
    ),
    instructions: str = typer.Option(
        "Highlight the main points and how the articles relate.",
        "--instructions",
        "-i",
        help="What the summary should focus on"
    ),
):
    """Summarize several articles in Markdown."""
    async def _summarize():
        provider = get_provider_name(console)
        credential = require_credential(provider, console)
        client = get_chat_client(provider, get_session_config())

        payload = [
            {"title": context.title or "", "content": context.content}
            for context in map(load_article, articles)
        ]
        try:
            with console.status(f"Summarizing {len(payload)} article(s)..."):
                summary = await client.summarize(payload, instructions, credential)
            print_summary(console, summary)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await client.close()

    asyncio.run(_summarize())


@app.command()
def presets(
    reset: bool = typer.Option(
        False,
        "--reset",
        help="Restore the default preset prompts"
    ),
):
    """List the preset prompts."""
    store = get_preset_store()
    items = store.reset() if reset else store.load()
    console.print(_presets_table(items))
    console.print(f"[dim]Stored in {store.path}[/dim]")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
