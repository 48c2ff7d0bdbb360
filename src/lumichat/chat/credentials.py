"""Credential stores for the chat collaborator.

A session asks for the credential on every send so that a key entered
or changed in settings applies to the next message.
"""

import os
from abc import ABC, abstractmethod


class CredentialStore(ABC):
    """Source of the API credential."""

    @abstractmethod
    def get_credential(self) -> str | None:
        """Return the credential, or None/empty when not configured."""


class StaticCredentialStore(CredentialStore):
    """Holds a credential in memory; ``set_credential`` replaces it."""

    def __init__(self, credential: str | None = None):
        self._credential = credential

    def get_credential(self) -> str | None:
        return self._credential

    def set_credential(self, credential: str | None) -> None:
        self._credential = credential


class EnvCredentialStore(CredentialStore):
    """Reads the credential from an environment variable at call time."""

    def __init__(self, var_name: str = "GEMINI_API_KEY"):
        self.var_name = var_name

    def get_credential(self) -> str | None:
        return os.getenv(self.var_name)
