"""Error types raised by the GigaChat adapter."""

from __future__ import annotations


class GigaLinkError(Exception):
    """Base class for every error raised by gigalink."""


class InvalidRoleError(GigaLinkError, ValueError):
    """A message was constructed with a role the vendor does not accept."""


class InvalidToolCallsError(GigaLinkError, ValueError):
    """``tool_calls`` was not a sequence of structured records."""


class ArgumentConflictError(GigaLinkError, ValueError):
    """Two request arguments were supplied in a combination the API rejects."""


class ApiError(GigaLinkError):
    """
    The vendor replied with an error body.

    GigaChat reports failures as JSON (``{"status": 400, "message": ...}``)
    rather than only through the HTTP status, so the adapter raises this after
    inspecting the body.
    """

    provider = "GigaChat"

    def __init__(self, status: int | None, message: str | None) -> None:
        self.status = status
        self.message = message
        super().__init__(f"{self.provider} API error: {status}, {message}")
