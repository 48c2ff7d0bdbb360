"""Prompt management module.

Externalizes prompts to text files for easy customization.
Prompts can be overridden by placing files in the working directory.
"""

from functools import lru_cache
from pathlib import Path

# Default prompts directory (package location)
_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Load a prompt from file.

    Search order:
    1. Current working directory: ./prompts/{name}.txt
    2. Package prompts directory: lumichat/prompts/{name}.txt

    Args:
        name: Prompt name (without .txt extension)

    Returns:
        Prompt text content

    Raises:
        FileNotFoundError: If prompt file not found in any location
    """
    filename = f"{name}.txt"

    local_path = Path.cwd() / "prompts" / filename
    if local_path.exists():
        return local_path.read_text(encoding="utf-8")

    package_path = _PROMPTS_DIR / filename
    if package_path.exists():
        return package_path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt '{name}' not found. Searched:\n"
        f"  - {local_path}\n"
        f"  - {package_path}"
    )


def render_article_question(
    article: str,
    question: str,
    has_history: bool,
    language: str = "English",
) -> str:
    """Render the user turn that asks a question about an article.

    The wording differs once there is prior conversation to refer back to.
    """
    template = load_prompt("article_chat_followup" if has_history else "article_chat")
    return template.format(article=article, question=question, language=language).strip()


def render_summary_request(articles: list[dict[str, str]], instructions: str) -> str:
    """Render a batch summary request for several articles."""
    blocks = []
    for index, article in enumerate(articles, 1):
        title = article.get("title") or "Untitled"
        blocks.append(f"## {index}. {title}\n\n{article.get('content', '')}")
    template = load_prompt("summarize")
    return template.format(articles="\n\n".join(blocks), instructions=instructions).strip()


def clear_cache() -> None:
    """Clear the prompt cache (useful after modifying prompt files)."""
    load_prompt.cache_clear()


__all__ = [
    "load_prompt",
    "render_article_question",
    "render_summary_request",
    "clear_cache",
]
