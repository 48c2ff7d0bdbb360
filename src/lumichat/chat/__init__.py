"""Article chat sessions.

Streaming question answering over one article at a time, with explicit
retry of failed replies.
"""

from .client import ArticleChatClient, ChatClient, build_chat_messages
from .config import SessionConfig
from .credentials import CredentialStore, EnvCredentialStore, StaticCredentialStore
from .errors import (
    ChatSessionError,
    EmptyMessage,
    MissingCredential,
    NoContextSelected,
    NothingToRetry,
    PreconditionFailed,
    SessionBusy,
    StreamAbandoned,
    StreamFailed,
    StreamInterrupted,
    StreamOpenFailed,
    StreamTimeout,
)
from .models import ArticleContext, Message, RetryContext, Sender, SessionState, StreamingState
from .observer import RecordingObserver, SessionObserver
from .presets import DEFAULT_PRESET_PROMPTS, PresetPrompt, PresetPromptStore, compose_input
from .retry import RetryPolicy
from .session import ChatSession

__all__ = [
    "ArticleChatClient",
    "ArticleContext",
    "ChatClient",
    "ChatSession",
    "ChatSessionError",
    "CredentialStore",
    "DEFAULT_PRESET_PROMPTS",
    "EmptyMessage",
    "EnvCredentialStore",
    "Message",
    "MissingCredential",
    "NoContextSelected",
    "NothingToRetry",
    "PreconditionFailed",
    "PresetPrompt",
    "PresetPromptStore",
    "RecordingObserver",
    "RetryContext",
    "RetryPolicy",
    "Sender",
    "SessionBusy",
    "SessionConfig",
    "SessionObserver",
    "SessionState",
    "StaticCredentialStore",
    "StreamAbandoned",
    "StreamFailed",
    "StreamInterrupted",
    "StreamOpenFailed",
    "StreamTimeout",
    "StreamingState",
    "build_chat_messages",
    "compose_input",
]
