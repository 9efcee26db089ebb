"""Core types for the GigaChat adapter."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from gigalink.llm.errors import InvalidRoleError


class Role(str, Enum):
    """Speaker of a conversation turn, valued by its GigaChat wire name."""

    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "function"

    @classmethod
    def parse(cls, value: Role | str) -> Role:
        """
        Resolve *value* to a ``Role``.

        Accepts a member, its wire value, or the provider-neutral alias
        ``"tool"``.  Raises ``InvalidRoleError`` for anything else.
        """
        if isinstance(value, cls):
            return value
        if value == "tool":
            return cls.TOOL
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise InvalidRoleError(
                f"Role must be one of {allowed} (got {value!r})"
            ) from None


@dataclass
class ToolCall:
    """
    A complete tool call as it appears in a non-streamed reply.

    *arguments* is always the serialized form; callers decode it themselves
    because GigaChat does not guarantee strict JSON there.
    """

    name: str
    arguments: str = ""
    id: str | None = None
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolCall:
        func = data.get("function")
        if not isinstance(func, Mapping):
            func = data
        arguments = func.get("arguments")
        if arguments is None:
            arguments = ""
        elif not isinstance(arguments, str):
            # Non-streamed GigaChat replies carry arguments as an object.
            arguments = json.dumps(arguments, sort_keys=True, ensure_ascii=False)
        return cls(
            name=func.get("name") or "",
            arguments=arguments,
            id=data.get("id"),
            type=data.get("type"),
        )


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass
class FunctionCallFragment:
    """
    One partial function call carried by a streamed delta.

    Every field is optional.  *arguments* is either a string fragment or an
    already-structured object (GigaChat sends whole argument objects).
    """

    index: int | None = None
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str | Mapping[str, Any] | list | None = None

    @classmethod
    def from_mapping(
        cls, raw: Mapping[str, Any], default_index: int | None = None
    ) -> FunctionCallFragment:
        """
        Read a fragment in either flat (``{"name", "arguments"}``) or nested
        (``{"function": {"name", "arguments"}}``) form.
        """
        nested = raw.get("function")
        if not isinstance(nested, Mapping):
            nested = {}

        name = raw.get("name")
        if name is None:
            name = nested.get("name")

        arguments = raw.get("arguments")
        if arguments is None:
            arguments = nested.get("arguments")
        if not isinstance(arguments, (str, Mapping, list)):
            arguments = None

        index = _int_or_none(raw.get("index"))
        if index is None:
            index = default_index

        return cls(
            index=index,
            id=_str_or_none(raw.get("id")),
            type=_str_or_none(raw.get("type")),
            name=_str_or_none(name),
            arguments=arguments,
        )


@dataclass
class PartialDelta:
    """
    A sparse fragment of an assistant message from one stream chunk.

    ``from_mapping`` never raises: absent or mistyped fields simply stay
    ``None`` so that they mean "no update in this chunk".
    """

    role: str | None = None
    content: str | None = None
    function_calls: list[FunctionCallFragment] = field(default_factory=list)
    correlation_id: str | None = None

    @classmethod
    def from_mapping(cls, raw: Any) -> PartialDelta:
        if not isinstance(raw, Mapping):
            return cls()

        fragments: list[FunctionCallFragment] = []

        function_call = raw.get("function_call")
        if isinstance(function_call, Mapping):
            fragments.append(FunctionCallFragment.from_mapping(function_call))

        # OpenAI-style deltas, which GigaChat-compatible proxies may emit.
        tool_calls = raw.get("tool_calls")
        if isinstance(tool_calls, list):
            for pos, item in enumerate(tool_calls):
                if isinstance(item, Mapping):
                    fragments.append(
                        FunctionCallFragment.from_mapping(item, default_index=pos)
                    )

        return cls(
            role=_str_or_none(raw.get("role")),
            content=_str_or_none(raw.get("content")),
            function_calls=fragments,
            correlation_id=_str_or_none(raw.get("functions_state_id")),
        )
