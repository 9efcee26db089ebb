"""LLM subsystem -- GigaChat messages, responses, and streaming tool-call assembly."""

from gigalink.llm.errors import (
    ApiError,
    ArgumentConflictError,
    GigaLinkError,
    InvalidRoleError,
    InvalidToolCallsError,
)
from gigalink.llm.gigachat import GigaChat
from gigalink.llm.message import GigaChatMessage
from gigalink.llm.response import GigaChatResponse
from gigalink.llm.stream import StreamAccumulator
from gigalink.llm.tool_call_assembler import ToolCallAssembler, accumulate
from gigalink.llm.types import FunctionCallFragment, PartialDelta, Role, ToolCall

__all__ = [
    "ApiError",
    "ArgumentConflictError",
    "FunctionCallFragment",
    "GigaChat",
    "GigaChatMessage",
    "GigaChatResponse",
    "GigaLinkError",
    "InvalidRoleError",
    "InvalidToolCallsError",
    "PartialDelta",
    "Role",
    "StreamAccumulator",
    "ToolCall",
    "ToolCallAssembler",
    "accumulate",
]
