"""Uniform read-only view over a GigaChat reply payload."""

from __future__ import annotations

from typing import Any


class GigaChatResponse:
    """
    Wraps a raw reply, whether it came back in one piece or was synthesized
    from a stream.  Accessors return ``None`` for absent fields rather than
    raising.
    """

    def __init__(self, raw_response: dict[str, Any], model: str | None = None) -> None:
        self._raw = raw_response if raw_response is not None else {}
        self._model = model

    def __repr__(self) -> str:
        return f"GigaChatResponse(model={self.model!r}, choices={len(self.completions)})"

    @property
    def raw_response(self) -> dict[str, Any]:
        return self._raw

    @property
    def model(self) -> str | None:
        return self._raw.get("model") or self._model

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------

    @property
    def completions(self) -> list[dict[str, Any]]:
        return self._raw.get("choices") or []

    def _first_message(self) -> dict[str, Any]:
        choices = self.completions
        if not choices:
            return {}
        return choices[0].get("message") or {}

    @property
    def completion(self) -> str | None:
        return self._first_message().get("content")

    @property
    def chat_completion(self) -> str | None:
        return self.completion

    @property
    def role(self) -> str | None:
        return self._first_message().get("role")

    @property
    def tool_calls(self) -> list[dict[str, Any]]:
        return self._first_message().get("tool_calls") or []

    @property
    def finish_reason(self) -> str | None:
        choices = self.completions
        return choices[0].get("finish_reason") if choices else None

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    @property
    def embeddings(self) -> list[list[float]]:
        return [item.get("embedding") for item in self._raw.get("data") or []]

    @property
    def embedding(self) -> list[float] | None:
        embeddings = self.embeddings
        return embeddings[0] if embeddings else None

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def _usage(self, key: str) -> int | None:
        usage = self._raw.get("usage") or {}
        return usage.get(key)

    @property
    def prompt_tokens(self) -> int | None:
        return self._usage("prompt_tokens")

    @property
    def completion_tokens(self) -> int | None:
        return self._usage("completion_tokens")

    @property
    def total_tokens(self) -> int | None:
        return self._usage("total_tokens")
