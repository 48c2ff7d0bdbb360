"""Session configuration.

Passed explicitly into ChatSession and ArticleChatClient at construction.
"""

from pydantic import BaseModel, ConfigDict, Field


class SessionConfig(BaseModel):
    """Settings for one chat session and the requests it issues."""

    model_config = ConfigDict(frozen=True)

    include_history: bool = Field(
        default=True,
        description="Send the prior transcript along with each new question"
    )
    stream_idle_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for the next fragment before failing the stream"
    )
    model: str | None = Field(default=None, description="Model override (provider default if None)")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    top_k: int | None = Field(default=30, ge=1)
    top_p: float | None = Field(default=0.7, gt=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, ge=1)
    reply_language: str = Field(default="English", description="Language the assistant answers in")
