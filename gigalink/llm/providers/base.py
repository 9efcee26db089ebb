"""Abstract base class for the HTTP client the adapter talks through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ChatClient(ABC):
    """
    Transport for the GigaChat REST API.

    Implementations own authentication, retries and connection handling.
    They must *return* vendor error bodies (``{"status": ..., "message": ...}``)
    instead of raising, so the adapter can turn them into ``ApiError``.
    """

    @abstractmethod
    def chat(self, parameters: dict[str, Any]) -> dict[str, Any] | None:
        """
        Send a chat-completion request.

        When ``parameters["stream"]`` is a callable the request is streamed:
        the callable is invoked once per decoded chunk, in arrival order, and
        the method returns ``None`` (or an error body if the request failed
        before streaming began).  Otherwise the decoded reply is returned.
        """
        ...

    @abstractmethod
    def embeddings(self, parameters: dict[str, Any]) -> dict[str, Any]:
        """Send an embeddings request and return the decoded reply."""
        ...
