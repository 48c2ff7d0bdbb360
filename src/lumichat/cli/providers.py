"""Provider factory functions for CLI.

Centralizes creation of the chat client, credential store and settings
from environment variables. Hides configuration details from command
implementations.
"""

import os
from pathlib import Path

from rich.console import Console

from ..chat import ArticleChatClient, EnvCredentialStore, PresetPromptStore, SessionConfig

_console = Console()

# Environment variable holding the key and model for each provider
PROVIDER_ENV = {
    "gemini": ("GEMINI_API_KEY", "GEMINI_MODEL"),
    "gemini-rest": ("GEMINI_API_KEY", "GEMINI_MODEL"),
    "openai": ("OPENAI_API_KEY", "OPENAI_CHAT_MODEL"),
    "deepseek": ("DEEPSEEK_API_KEY", "DEEPSEEK_MODEL"),
    "anthropic": ("ANTHROPIC_API_KEY", "ANTHROPIC_MODEL"),
    "claude": ("ANTHROPIC_API_KEY", "ANTHROPIC_MODEL"),
}

DEFAULT_PRESETS_PATH = Path.home() / ".lumichat" / "presets.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_provider_name(console: Console | None = None) -> str:
    """Read LLM_PROVIDER (default: gemini).

    Raises:
        SystemExit: If the provider is unknown
    """
    import typer

    con = console or _console
    name = os.getenv("LLM_PROVIDER", "gemini").lower()
    if name not in PROVIDER_ENV:
        con.print(f"[red]Error: Unknown LLM provider: {name}[/red]")
        raise typer.Exit(code=1)
    return name


def get_session_config() -> SessionConfig:
    """Build session settings from environment variables.

    Environment variables:
        LUMICHAT_INCLUDE_HISTORY: Send prior turns with each question (default: true)
        LUMICHAT_STREAM_TIMEOUT: Idle timeout in seconds (default: none)
        LUMICHAT_LANGUAGE: Reply language (default: English)
        LUMICHAT_MODEL: Model override
    """
    timeout = os.getenv("LUMICHAT_STREAM_TIMEOUT")
    return SessionConfig(
        include_history=_env_bool("LUMICHAT_INCLUDE_HISTORY", True),
        stream_idle_timeout=float(timeout) if timeout else None,
        reply_language=os.getenv("LUMICHAT_LANGUAGE", "English"),
        model=os.getenv("LUMICHAT_MODEL") or None,
    )


def get_credentials(provider: str) -> EnvCredentialStore:
    """Credential store reading the provider's API key variable on each send."""
    key_var, _ = PROVIDER_ENV[provider]
    return EnvCredentialStore(key_var)


def get_chat_client(provider: str, config: SessionConfig) -> ArticleChatClient:
    """Create the chat client for a provider.

    Environment variables:
        GEMINI_MODEL, OPENAI_CHAT_MODEL, DEEPSEEK_MODEL, ANTHROPIC_MODEL:
            Provider default model (used when LUMICHAT_MODEL is unset)
    """
    _, model_var = PROVIDER_ENV[provider]
    return ArticleChatClient(provider, config=config, model=os.getenv(model_var))


def get_preset_store() -> PresetPromptStore:
    """Preset store at LUMICHAT_PRESETS_PATH (default: ~/.lumichat/presets.json)."""
    return PresetPromptStore(os.getenv("LUMICHAT_PRESETS_PATH") or DEFAULT_PRESETS_PATH)


def require_credential(provider: str, console: Console | None = None) -> str:
    """Get the API key for a provider, exiting if it is not set.

    Raises:
        SystemExit: If the key is not configured
    """
    import typer

    con = console or _console
    key_var, _ = PROVIDER_ENV[provider]
    credential = os.getenv(key_var)
    if not credential or not credential.strip():
        con.print(f"[red]Error: {key_var} not set in environment[/red]")
        raise typer.Exit(code=1)
    return credential.strip()
