"""
Assembles streamed GigaChat function-call fragments into complete tool calls.

GigaChat streams a tool call very differently from plain text:

  - the name and arguments arrive in a ``function_call`` fragment, usually
    whole, sometimes as string pieces spread over several chunks;
  - arguments may arrive as an already-structured object instead of a string;
  - the correlation id (``functions_state_id``) arrives in a *later* chunk
    that carries no function-call index at all;
  - several calls may be open at once, told apart only by ``index``.

``ToolCallAssembler`` keeps one accumulator per index and applies the merge
rules in ``merge_fragment``.  Fields absent from a fragment are never treated
as errors; they simply leave the accumulator untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from gigalink.llm.types import FunctionCallFragment, PartialDelta, ToolCall

logger = logging.getLogger(__name__)


@dataclass
class AssembledToolCall:
    """Mutable per-index state while a stream is being consumed."""

    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str | None = None
    correlation_id: str | None = None

    def to_tool_call(self) -> ToolCall:
        return ToolCall(
            name=self.name or "",
            arguments=self.arguments or "",
            id=self.id if self.id is not None else self.correlation_id,
            type=self.type,
        )


def render_arguments(arguments: str | Mapping[str, Any] | list) -> str:
    """Serialize structured arguments deterministically (sorted keys)."""
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments, sort_keys=True, ensure_ascii=False)


def merge_fragment(call: AssembledToolCall, fragment: FunctionCallFragment) -> None:
    """
    Merge *fragment* into *call* in place.

    Scalar fields are last-non-null-wins.  String arguments are appended so
    token-by-token streams reassemble; a structured argument object is a
    complete value and replaces whatever was accumulated.
    """
    if fragment.id is not None:
        call.id = fragment.id
    if fragment.type is not None:
        call.type = fragment.type
    if fragment.name is not None:
        call.name = fragment.name

    if fragment.arguments is None:
        return
    if isinstance(fragment.arguments, str):
        call.arguments = (call.arguments or "") + fragment.arguments
    else:
        call.arguments = render_arguments(fragment.arguments)


class ToolCallAssembler:
    """Accumulates the deltas of one choice and emits finished ``ToolCall``s."""

    def __init__(self) -> None:
        self._calls: dict[int, AssembledToolCall] = {}
        self._last_index: int | None = None
        self._pending_correlation_id: str | None = None
        self._saw_fragment = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, chunk: Mapping[str, Any]) -> None:
        """Merge the deltas of every choice in a raw stream chunk."""
        choices = chunk.get("choices") if isinstance(chunk, Mapping) else None
        if not isinstance(choices, list):
            return
        for choice in choices:
            if isinstance(choice, Mapping):
                self.feed_delta(choice.get("delta"))

    def feed_delta(self, delta: PartialDelta | Mapping[str, Any] | None) -> None:
        """Merge a single delta."""
        if not isinstance(delta, PartialDelta):
            delta = PartialDelta.from_mapping(delta)

        for fragment in delta.function_calls:
            self._saw_fragment = True
            index = fragment.index if fragment.index is not None else 0
            merge_fragment(self._open(index), fragment)
            self._last_index = index

        if delta.correlation_id is not None:
            self._attach_correlation_id(delta.correlation_id)

    def finish(self) -> list[ToolCall] | None:
        """
        Return the merged calls ordered by index.

        ``None`` means no function-call fragment was ever seen (a pure text
        stream).  Accumulators that never received a name are dropped.
        """
        if not self._saw_fragment:
            return None

        calls: list[ToolCall] = []
        for index in sorted(self._calls):
            call = self._calls[index]
            if not call.name:
                logger.debug("Dropping nameless tool-call fragment at index %d", index)
                continue
            calls.append(call.to_tool_call())
        return calls

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._calls.clear()
        self._last_index = None
        self._pending_correlation_id = None
        self._saw_fragment = False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, index: int) -> AssembledToolCall:
        call = self._calls.get(index)
        if call is None:
            call = self._calls[index] = AssembledToolCall()
            if self._pending_correlation_id is not None:
                call.correlation_id = self._pending_correlation_id
                self._pending_correlation_id = None
        return call

    def _attach_correlation_id(self, correlation_id: str) -> None:
        # The id carries no index; it belongs to whichever call was touched
        # last.  Before any call exists it waits for the first one.
        if self._last_index is None:
            self._pending_correlation_id = correlation_id
            return
        self._calls[self._last_index].correlation_id = correlation_id


def accumulate(chunks: Iterable[Mapping[str, Any]]) -> list[ToolCall] | None:
    """Run a fresh assembler over a complete chunk history."""
    assembler = ToolCallAssembler()
    for chunk in chunks:
        assembler.feed(chunk)
    return assembler.finish()
