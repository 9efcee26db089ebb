"""
GigaChat adapter.

Turns provider-agnostic requests into GigaChat request parameters, hands them
to a ``ChatClient``, rebuilds streamed replies (including tool calls) into a
single payload, and raises ``ApiError`` when the reply body reports failure.

Usage::

    llm = GigaChat(api_key=os.environ["GIGACHAT_CREDENTIALS"])
    llm.complete("Hello World").completion

    def show(chunk):
        ...
    response = llm.chat(messages, tools=tools, on_chunk=show)
    response.tool_calls
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from gigalink.llm.errors import ApiError, ArgumentConflictError
from gigalink.llm.message import GigaChatMessage
from gigalink.llm.providers.base import ChatClient
from gigalink.llm.providers.gigachat_http import GigaChatHTTPClient
from gigalink.llm.response import GigaChatResponse
from gigalink.llm.stream import StreamAccumulator

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "temperature": 0.0,
    "chat_model": "GigaChat",
    "completion_model": "GigaChat",
    "embedding_model": "GigaChat",
}

# Vector width per embedding model.
EMBEDDING_SIZES: dict[str, int] = {
    "GigaChat": 1024,
    "Embeddings": 1024,
    "EmbeddingsGigaR": 2560,
}

# Models that reject an explicit ``dimensions`` field.
LEGACY_EMBEDDING_MODELS = frozenset({"GigaChat"})

# Completion model names that are silently replaced by the chat model.
LEGACY_COMPLETION_MODELS = frozenset({"GigaChat-Plus", "GigaChat-Pro"})

# Request keys GigaChat understands; anything else is dropped.
CHAT_PARAMETERS = frozenset(
    {
        "messages",
        "model",
        "temperature",
        "top_p",
        "n",
        "stream",
        "max_tokens",
        "repetition_penalty",
        "update_interval",
        "profanity_check",
        "response_format",
        "tools",
        "tool_choice",
        "functions",
        "function_call",
        "stop",
        "presence_penalty",
        "frequency_penalty",
        "seed",
        "user",
    }
)

# Set explicitly by ``chat`` and never taken from overrides.
_RESERVED_PARAMETERS = frozenset(
    {"messages", "model", "temperature", "stream", "tools", "tool_choice"}
)

# Only ever set per call; never taken from ``default_options``.
_PER_CALL_PARAMETERS = frozenset({"messages", "model", "stream", "tools", "tool_choice"})

SUMMARIZE_PROMPT = (
    "Write a concise summary of the following:\n\n{text}\n\nCONCISE SUMMARY:"
)


def _error_status(reply: Any) -> int | None:
    """Return the status of a failed reply body, or ``None`` if it succeeded."""
    if not isinstance(reply, Mapping) or "status" not in reply:
        return None
    try:
        status = int(reply["status"])
    except (TypeError, ValueError):
        return None
    return None if 200 <= status < 300 else status


class GigaChat:
    """
    Client adapter for the GigaChat chat-completion and embeddings API.

    Parameters
    ----------
    api_key:
        Authorization key for the OAuth exchange (ignored when *client* is
        given).
    llm_options:
        Keyword arguments for ``GigaChatHTTPClient``.  ``log_errors`` defaults
        to whether this module logs at DEBUG.
    default_options:
        Overrides for ``DEFAULTS``.  Extra keys that are valid chat parameters
        (``response_format``, ``max_tokens``, ...) are sent with every chat
        request unless the call overrides them.
    client:
        A ready ``ChatClient``; mostly useful for tests.
    """

    provider_name = "GigaChat"

    def __init__(
        self,
        api_key: str = "",
        llm_options: dict[str, Any] | None = None,
        default_options: dict[str, Any] | None = None,
        client: ChatClient | None = None,
    ) -> None:
        if client is None:
            options = dict(llm_options or {})
            options.setdefault("log_errors", logger.isEnabledFor(logging.DEBUG))
            client = GigaChatHTTPClient(credentials=api_key, **options)
        self.client = client
        self.defaults: dict[str, Any] = {**DEFAULTS, **(default_options or {})}

    @classmethod
    def from_config(cls, cfg: Any, client: ChatClient | None = None) -> GigaChat:
        """Build an adapter from a loaded ``GigalinkConfig``."""
        gc = cfg.gigachat
        llm_options: dict[str, Any] = {
            "base_url": gc.base_url,
            "auth_url": gc.auth_url,
            "scope": gc.scope,
            "timeout": float(gc.timeout_seconds),
            "max_retries": gc.max_retries,
            "verify_ssl": gc.verify_ssl,
        }
        if gc.log_errors is not None:
            llm_options["log_errors"] = gc.log_errors
        default_options = {
            "temperature": gc.temperature,
            "chat_model": gc.chat_model,
            "completion_model": gc.completion_model,
            "embedding_model": gc.embedding_model,
            **gc.default_options,
        }
        return cls(
            api_key=gc.read_credentials(),
            llm_options=llm_options,
            default_options=default_options,
            client=client,
        )

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def embed(
        self,
        text: str,
        model: str | None = None,
        user: str | None = None,
    ) -> GigaChatResponse:
        """Generate an embedding for *text*."""
        model = model or self.defaults["embedding_model"]
        parameters: dict[str, Any] = {"input": text, "model": model}
        if model not in LEGACY_EMBEDDING_MODELS and model in EMBEDDING_SIZES:
            parameters["dimensions"] = EMBEDDING_SIZES[model]
        if user:
            parameters["user"] = user

        logger.info("REQUEST: embeddings model=%s chars=%d", model, len(text))
        reply = self.client.embeddings(parameters)
        self._raise_on_error(reply)
        return GigaChatResponse(reply, model=model)

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        temperature: float | None = None,
        **overrides: Any,
    ) -> GigaChatResponse:
        """Send *prompt* as a single user message."""
        model = model or self.defaults["completion_model"]
        if model in LEGACY_COMPLETION_MODELS:
            replacement = self.defaults["chat_model"]
            logger.warning(
                "Completion model %r is deprecated; using %r instead",
                model,
                replacement,
            )
            model = replacement

        messages = [{"content": prompt, "role": "user"}]
        return self.chat(messages, model=model, temperature=temperature, **overrides)

    def summarize(self, text: str) -> GigaChatResponse:
        """Summarize *text* with a fixed instruction prompt."""
        return self.complete(SUMMARIZE_PROMPT.format(text=text))

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def chat(
        self,
        messages: Iterable[GigaChatMessage | Mapping[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        tools: list[dict] | None = None,
        tool_choice: Any = None,
        on_chunk: Callable[[dict[str, Any]], Any] | None = None,
        **overrides: Any,
    ) -> GigaChatResponse:
        """
        Send a chat-completion request.

        When *on_chunk* is given the request is streamed: every raw chunk is
        passed to *on_chunk* as it arrives, and the returned response is
        synthesized from the whole stream, tool calls included.
        """
        if tool_choice is not None and not tools:
            raise ArgumentConflictError(
                "'tool_choice' is only allowed when 'tools' are specified."
            )

        parameters = self._build_chat_parameters(overrides)
        parameters["messages"] = [self._wire_message(m) for m in messages]
        parameters["model"] = model or self.defaults["chat_model"]
        if temperature is not None:
            parameters["temperature"] = temperature
        if tools:
            parameters["tools"] = tools
        if tool_choice is not None:
            parameters["tool_choice"] = tool_choice

        logger.info(
            "REQUEST: model=%s messages=%d tools=%d stream=%s",
            parameters["model"],
            len(parameters["messages"]),
            len(tools) if tools else 0,
            on_chunk is not None,
        )

        if on_chunk is None:
            reply = self.client.chat(parameters)
            self._raise_on_error(reply)
            return GigaChatResponse(reply or {}, model=parameters["model"])

        return self._stream_chat(parameters, on_chunk)

    def _stream_chat(
        self,
        parameters: dict[str, Any],
        on_chunk: Callable[[dict[str, Any]], Any],
    ) -> GigaChatResponse:
        accumulator = StreamAccumulator()
        errors: list[Mapping[str, Any]] = []

        def _receive(chunk: dict[str, Any]) -> None:
            if _error_status(chunk) is not None:
                errors.append(chunk)
            else:
                accumulator.add(chunk)
            on_chunk(chunk)

        parameters["stream"] = _receive
        reply = self.client.chat(parameters)
        self._raise_on_error(reply)
        if errors:
            self._raise_on_error(errors[0])

        logger.debug("Stream finished after %d chunks", accumulator.chunk_count)
        return GigaChatResponse(accumulator.final_payload(), model=parameters["model"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_chat_parameters(self, overrides: Mapping[str, Any]) -> dict[str, Any]:
        parameters = {
            k: v
            for k, v in self.defaults.items()
            if k in CHAT_PARAMETERS and k not in _PER_CALL_PARAMETERS
        }
        for key, value in overrides.items():
            if key in CHAT_PARAMETERS and key not in _RESERVED_PARAMETERS:
                parameters[key] = value
            else:
                logger.debug("Ignoring unsupported chat parameter %r", key)
        return parameters

    @staticmethod
    def _wire_message(message: GigaChatMessage | Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(message, GigaChatMessage):
            message = GigaChatMessage.from_dict(message)
        return message.to_dict()

    def _raise_on_error(self, reply: Any) -> None:
        status = _error_status(reply)
        if status is not None:
            raise ApiError(status, reply.get("message"))
