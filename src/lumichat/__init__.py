"""
Lumichat: streaming question answering over articles.

Each module hides one design decision: ``llm`` which provider serves a
request and how its stream is decoded, ``chat`` how a conversation is
sequenced, ``prompts`` how the model is asked.
"""

__version__ = "0.1.0"

from .chat import (
    ArticleChatClient,
    ArticleContext,
    ChatSession,
    Message,
    SessionConfig,
    SessionObserver,
)
from .llm import LLMProvider, create_llm_provider

__all__ = [
    "ArticleChatClient",
    "ArticleContext",
    "ChatSession",
    "LLMProvider",
    "Message",
    "SessionConfig",
    "SessionObserver",
    "create_llm_provider",
]
