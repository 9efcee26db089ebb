"""
Synthesizes a complete reply payload from a GigaChat chunk stream.

One ``StreamAccumulator`` belongs to exactly one streamed ``chat`` call.  It
collects text per choice, keeps the first ``finish_reason`` each choice
reports, remembers the last ``usage`` block, and runs a ``ToolCallAssembler``
per choice so reconstructed tool calls land on the matching choice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from gigalink.llm.tool_call_assembler import ToolCallAssembler
from gigalink.llm.types import PartialDelta

_META_KEYS = ("id", "object", "created", "model")


@dataclass
class _ChoiceState:
    role: str | None = None
    content_parts: list[str] = field(default_factory=list)
    finish_reason: str | None = None
    assembler: ToolCallAssembler = field(default_factory=ToolCallAssembler)


class StreamAccumulator:
    """Collects raw chunks in arrival order and builds the final payload."""

    def __init__(self) -> None:
        self._meta: dict[str, Any] = {}
        self._choices: dict[int, _ChoiceState] = {}
        self._usage: dict[str, Any] | None = None
        self.chunk_count = 0

    def add(self, chunk: Mapping[str, Any]) -> None:
        self.chunk_count += 1
        if not isinstance(chunk, Mapping):
            return

        for key in _META_KEYS:
            if key not in self._meta and chunk.get(key) is not None:
                self._meta[key] = chunk[key]

        usage = chunk.get("usage")
        if isinstance(usage, Mapping):
            self._usage = dict(usage)

        choices = chunk.get("choices")
        if not isinstance(choices, list):
            return
        for choice in choices:
            if isinstance(choice, Mapping):
                self._add_choice(choice)

    def _add_choice(self, choice: Mapping[str, Any]) -> None:
        index = choice.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            index = 0
        state = self._choices.setdefault(index, _ChoiceState())

        delta = PartialDelta.from_mapping(choice.get("delta"))
        if delta.role is not None:
            state.role = delta.role
        if delta.content:
            state.content_parts.append(delta.content)

        finish_reason = choice.get("finish_reason")
        if state.finish_reason is None and isinstance(finish_reason, str):
            state.finish_reason = finish_reason

        state.assembler.feed_delta(delta)

    def final_payload(self) -> dict[str, Any]:
        """Build the ``{..., choices, usage}`` payload for the response model."""
        choices: list[dict[str, Any]] = []
        for index in sorted(self._choices):
            state = self._choices[index]
            message: dict[str, Any] = {
                "role": state.role or "assistant",
                "content": "".join(state.content_parts),
            }
            tool_calls = state.assembler.finish()
            if tool_calls is not None:
                message["tool_calls"] = [tc.to_dict() for tc in tool_calls]
            choices.append(
                {
                    "index": index,
                    "message": message,
                    "finish_reason": state.finish_reason,
                }
            )

        payload = dict(self._meta)
        payload["choices"] = choices
        payload["usage"] = self._usage
        return payload
