"""Preset prompts for composing chat input.

A preset is a titled snippet. Selecting presets fills the input box: one
preset whose title contains ``[x]`` has the placeholder replaced by the
clipboard text; otherwise the selected contents are joined, ordered by
title.
"""

import re
from collections.abc import Iterable
from pathlib import Path
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

PLACEHOLDER = "[x]"
_PLACEHOLDER_RE = re.compile(re.escape(PLACEHOLDER), re.IGNORECASE)


class PresetPrompt(BaseModel):
    """A reusable prompt snippet."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    content: str

    @property
    def takes_clipboard(self) -> bool:
        return PLACEHOLDER in self.title.lower()


DEFAULT_PRESET_PROMPTS: tuple[PresetPrompt, ...] = (
    PresetPrompt(
        id="summary",
        title="Summary",
        content="Summarize the key points of this article in a few bullet points.",
    ),
    PresetPrompt(
        id="critique",
        title="Critique",
        content="What are the weakest arguments in this article, and why?",
    ),
    PresetPrompt(
        id="explain",
        title="Explain [x]",
        content="Explain what the article means by: [x]",
    ),
    PresetPrompt(
        id="translate",
        title="Translate",
        content="Translate the main conclusion of this article into plain language.",
    ),
)

_preset_list = TypeAdapter(list[PresetPrompt])


def compose_input(selected: Iterable[PresetPrompt], clipboard: str | None = None) -> str:
    """Build the input text for the selected presets.

    Args:
        selected: Presets chosen by the user, in any order
        clipboard: Current clipboard text for ``[x]`` substitution

    Returns:
        Text to place in the input box
    """
    presets = sorted(selected, key=lambda preset: preset.title)
    if len(presets) == 1 and presets[0].takes_clipboard:
        replacement = clipboard or ""
        return _PLACEHOLDER_RE.sub(lambda _: replacement, presets[0].content)
    return "\n\n".join(preset.content for preset in presets)


class PresetPromptStore:
    """JSON-file persistence for the user's preset list.

    An empty or unreadable file yields the defaults.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[PresetPrompt]:
        if not self._path.exists():
            return list(DEFAULT_PRESET_PROMPTS)
        try:
            presets = _preset_list.validate_json(self._path.read_bytes())
        except ValidationError as exc:
            logger.warning("Ignoring unreadable presets file {}: {}", self._path, exc)
            return list(DEFAULT_PRESET_PROMPTS)
        return presets or list(DEFAULT_PRESET_PROMPTS)

    def save(self, presets: Iterable[PresetPrompt]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(_preset_list.dump_json(list(presets), indent=2))

    def reset(self) -> list[PresetPrompt]:
        """Restore and persist the default presets."""
        presets = list(DEFAULT_PRESET_PROMPTS)
        self.save(presets)
        return presets
