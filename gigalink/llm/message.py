"""
GigaChat conversation message.

GigaChat deviates from the OpenAI chat format in a few places:

  - the tool-result role is ``"function"`` and links back to the call through
    ``function_call_id``;
  - an assistant turn that requested tools carries them under ``functions``
    and omits ``content`` entirely;
  - ``content`` must always be a plain string.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from gigalink.llm.errors import InvalidToolCallsError
from gigalink.llm.types import Role, ToolCall


def _coerce_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    # Tools may hand back structured results; keep them valid JSON.
    if isinstance(content, (dict, list)):
        return json.dumps(content, ensure_ascii=False)
    return str(content)


def _coerce_tool_calls(tool_calls: Any) -> tuple[dict, ...]:
    if tool_calls is None:
        return ()
    if not isinstance(tool_calls, (list, tuple)):
        raise InvalidToolCallsError("Tool calls must be a list of mappings")
    records: list[dict] = []
    for tc in tool_calls:
        if isinstance(tc, ToolCall):
            records.append(tc.to_dict())
        elif isinstance(tc, Mapping):
            records.append(dict(tc))
        else:
            raise InvalidToolCallsError(
                f"Tool calls must be a list of mappings (got {type(tc).__name__})"
            )
    return tuple(records)


@dataclass(frozen=True)
class GigaChatMessage:
    """A single, immutable turn of a GigaChat conversation."""

    role: Role
    content: str = ""
    image_url: str | None = None
    tool_calls: tuple[dict, ...] = field(default_factory=tuple)
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role.parse(self.role))
        object.__setattr__(self, "content", _coerce_content(self.content))
        object.__setattr__(self, "tool_calls", _coerce_tool_calls(self.tool_calls))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GigaChatMessage:
        """Build a message from a wire-format or OpenAI-style dict."""
        tool_calls = data.get("functions")
        if tool_calls is None:
            tool_calls = data.get("tool_calls")
        tool_call_id = data.get("function_call_id")
        if tool_call_id is None:
            tool_call_id = data.get("tool_call_id")
        return cls(
            role=data.get("role"),
            content=data.get("content"),
            image_url=data.get("image_url"),
            tool_calls=tool_calls or (),
            tool_call_id=tool_call_id,
        )

    # ------------------------------------------------------------------
    # Role predicates
    # ------------------------------------------------------------------

    @property
    def is_assistant(self) -> bool:
        return self.role is Role.ASSISTANT

    @property
    def is_system(self) -> bool:
        return self.role is Role.SYSTEM

    @property
    def is_tool(self) -> bool:
        return self.role is Role.TOOL

    @property
    def is_user(self) -> bool:
        return self.role is Role.USER

    @property
    def is_llm(self) -> bool:
        """Whether the message was produced by the model."""
        return self.is_assistant

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the message as a GigaChat API-compatible dict."""
        return _SERIALIZERS[self.role](self)

    def _assistant_dict(self) -> dict[str, Any]:
        if self.tool_calls:
            return {"role": Role.ASSISTANT.value, "functions": list(self.tool_calls)}
        return {"role": Role.ASSISTANT.value, "content": self.content}

    def _system_dict(self) -> dict[str, Any]:
        return {"role": Role.SYSTEM.value, "content": self.content}

    def _tool_dict(self) -> dict[str, Any]:
        return {
            "role": Role.TOOL.value,
            "function_call_id": self.tool_call_id,
            "content": self.content,
        }

    def _user_dict(self) -> dict[str, Any]:
        return {"role": Role.USER.value, "content": self.content}


_SERIALIZERS: dict[Role, Callable[[GigaChatMessage], dict[str, Any]]] = {
    Role.ASSISTANT: GigaChatMessage._assistant_dict,
    Role.SYSTEM: GigaChatMessage._system_dict,
    Role.TOOL: GigaChatMessage._tool_dict,
    Role.USER: GigaChatMessage._user_dict,
}
