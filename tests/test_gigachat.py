"""Tests for gigalink.llm.gigachat.GigaChat against a scripted client."""

from __future__ import annotations

import logging

import pytest

from gigalink.config import GigalinkConfig
from gigalink.llm.errors import ApiError, ArgumentConflictError, InvalidRoleError
from gigalink.llm.gigachat import (
    EMBEDDING_SIZES,
    LEGACY_EMBEDDING_MODELS,
    SUMMARIZE_PROMPT,
    GigaChat,
)
from gigalink.llm.message import GigaChatMessage
from gigalink.llm.providers.gigachat_http import GigaChatHTTPClient
from gigalink.llm.response import GigaChatResponse
from tests.mock_clients import MockChatClient, chat_reply, make_chunks

ANSWER = "The meaning of life is subjective and can vary from person to person."
ERROR_BODY = {
    "status": 400,
    "message": "User location is not supported for the API use.",
    "type": "invalid_request_error",
}
USAGE_CHUNK = {"usage": {"prompt_tokens": 10, "completion_tokens": 11, "total_tokens": 12}}


@pytest.fixture
def client() -> MockChatClient:
    return MockChatClient(reply=chat_reply(ANSWER))


@pytest.fixture
def llm(client) -> GigaChat:
    return GigaChat(api_key="123", client=client)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestInit:

    def test_builds_http_client(self):
        llm = GigaChat(api_key="123", llm_options={"base_url": "http://localhost:1234"})
        assert isinstance(llm.client, GigaChatHTTPClient)
        assert llm.client.base_url == "http://localhost:1234"

    def test_log_errors_follows_debug_level(self):
        logger = logging.getLogger("gigalink.llm.gigachat")
        old = logger.level
        try:
            logger.setLevel(logging.DEBUG)
            assert GigaChat(api_key="123").client.log_errors is True
            logger.setLevel(logging.INFO)
            assert GigaChat(api_key="123").client.log_errors is False
        finally:
            logger.setLevel(old)

    def test_log_errors_can_be_overridden(self):
        llm = GigaChat(api_key="123", llm_options={"log_errors": True})
        assert llm.client.log_errors is True

    def test_default_options_merge(self):
        llm = GigaChat(client=MockChatClient(), default_options={"response_format": {"type": "json_object"}})
        assert llm.defaults["response_format"] == {"type": "json_object"}
        assert llm.defaults["chat_model"] == "GigaChat"

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("GIGACHAT_CREDENTIALS", "secret")
        cfg = GigalinkConfig()
        cfg.gigachat.chat_model = "GigaChat-Max"
        cfg.gigachat.log_errors = True
        llm = GigaChat.from_config(cfg)
        assert llm.defaults["chat_model"] == "GigaChat-Max"
        assert llm.client.log_errors is True
        assert llm.client._credentials == "secret"


# ---------------------------------------------------------------------------
# embed
# ---------------------------------------------------------------------------


class TestEmbed:

    @pytest.fixture
    def reply(self):
        return {
            "object": "list",
            "model": "GigaChat",
            "data": [{"object": "embedding", "index": 0, "embedding": [-0.0071, 0.0035, -0.0069]}],
            "usage": {"prompt_tokens": 2, "total_tokens": 2},
        }

    def test_default_model_sends_no_dimensions(self, reply):
        client = MockChatClient(embeddings_reply=reply)
        response = GigaChat(client=client).embed("Hello World")

        assert client.embedding_calls == [{"input": "Hello World", "model": "GigaChat"}]
        assert isinstance(response, GigaChatResponse)
        assert response.model == "GigaChat"
        assert response.embedding == [-0.0071, 0.0035, -0.0069]
        assert response.prompt_tokens == 2
        assert response.completion_tokens is None
        assert response.total_tokens == 2

    @pytest.mark.parametrize("model", sorted(EMBEDDING_SIZES))
    def test_dimensions_from_model_table(self, model, reply):
        client = MockChatClient(embeddings_reply=reply)
        GigaChat(client=client).embed("Hello World", model=model)

        expected = {"input": "Hello World", "model": model}
        if model not in LEGACY_EMBEDDING_MODELS:
            expected["dimensions"] = EMBEDDING_SIZES[model]
        assert client.embedding_calls == [expected]

    def test_user_is_forwarded(self, reply):
        client = MockChatClient(embeddings_reply=reply)
        GigaChat(client=client).embed("Hello World", model="GigaChat", user="id")
        assert client.embedding_calls == [{"input": "Hello World", "model": "GigaChat", "user": "id"}]

    def test_error_body_raises(self):
        client = MockChatClient(embeddings_reply=ERROR_BODY)
        with pytest.raises(ApiError):
            GigaChat(client=client).embed("Hello World")


# ---------------------------------------------------------------------------
# complete
# ---------------------------------------------------------------------------


class TestComplete:

    def test_default_parameters(self, llm, client):
        response = llm.complete("Hello World")

        assert client.last_parameters == {
            "model": "GigaChat",
            "messages": [{"content": "Hello World", "role": "user"}],
            "temperature": 0.0,
        }
        assert response.model == "GigaChat"
        assert response.completion == ANSWER
        assert response.prompt_tokens == 7
        assert response.completion_tokens == 16
        assert response.total_tokens == 23

    def test_explicit_model_and_temperature(self, llm, client):
        llm.complete("Hello World", model="GigaChat-Max", temperature=1.0)
        assert client.last_parameters["model"] == "GigaChat-Max"
        assert client.last_parameters["temperature"] == 1.0

    def test_legacy_model_is_remapped_with_one_warning(self, client, caplog):
        llm = GigaChat(client=client, default_options={"completion_model": "GigaChat-Pro"})

        with caplog.at_level(logging.WARNING, logger="gigalink.llm.gigachat"):
            llm.complete("Hello World")

        assert client.last_parameters == {
            "model": "GigaChat",
            "messages": [{"content": "Hello World", "role": "user"}],
            "temperature": 0.0,
        }
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "GigaChat-Pro" in warnings[0].getMessage()

    def test_current_model_is_not_remapped(self, client, caplog):
        llm = GigaChat(client=client, default_options={"completion_model": "GigaChat"})
        with caplog.at_level(logging.WARNING, logger="gigalink.llm.gigachat"):
            llm.complete("Hello World")
        assert client.last_parameters["model"] == "GigaChat"
        assert not caplog.records

    def test_failed_api_call(self):
        llm = GigaChat(client=MockChatClient(reply=ERROR_BODY))
        with pytest.raises(ApiError) as excinfo:
            llm.complete("Hello World")

        assert str(excinfo.value) == (
            "GigaChat API error: 400, User location is not supported for the API use."
        )
        assert excinfo.value.status == 400


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


class TestChat:

    def test_returns_response(self, llm, client):
        response = llm.chat([{"role": "user", "content": "What is the meaning of life?"}])

        assert client.last_parameters == {
            "messages": [{"role": "user", "content": "What is the meaning of life?"}],
            "model": "GigaChat",
            "temperature": 0.0,
        }
        assert response.chat_completion == ANSWER
        assert response.completions == chat_reply(ANSWER)["choices"]

    def test_ignores_unknown_parameters(self, llm, client):
        response = llm.chat(
            [{"role": "user", "content": "What is the meaning of life?"}],
            top_k=5,
            beep="boop",
        )
        assert isinstance(response, GigaChatResponse)
        assert "top_k" not in client.last_parameters
        assert "beep" not in client.last_parameters

    def test_known_overrides_are_sent(self, llm, client):
        llm.chat([{"role": "user", "content": "hi"}], n=2, max_tokens=100)
        assert client.last_parameters["n"] == 2
        assert client.last_parameters["max_tokens"] == 100

    def test_default_options_sent_and_overridable(self, client):
        llm = GigaChat(client=client, default_options={"response_format": {"type": "json_object"}})

        llm.chat([{"role": "user", "content": "Hello json!"}])
        assert client.last_parameters["response_format"] == {"type": "json_object"}

        llm.chat([{"role": "user", "content": "Hello json!"}], response_format={"type": "text"})
        assert client.last_parameters["response_format"] == {"type": "text"}

    def test_message_objects_are_serialized(self, llm, client):
        llm.chat([
            GigaChatMessage(role="system", content="You are a chatbot"),
            GigaChatMessage(role="tool", content={"temp": 21}, tool_call_id="c1"),
        ])
        assert client.last_parameters["messages"] == [
            {"role": "system", "content": "You are a chatbot"},
            {"role": "function", "function_call_id": "c1", "content": '{"temp": 21}'},
        ]

    def test_tools_and_tool_choice(self, llm, client):
        tools = [{"type": "function", "function": {"name": "foo"}}]
        llm.chat([{"role": "user", "content": "hi"}], tools=tools, tool_choice="auto")
        assert client.last_parameters["tools"] == tools
        assert client.last_parameters["tool_choice"] == "auto"

    def test_tool_choice_without_tools(self, llm, client):
        with pytest.raises(
            ArgumentConflictError,
            match="'tool_choice' is only allowed when 'tools' are specified.",
        ):
            llm.chat([{"role": "user", "content": "hi"}], tool_choice="auto", temperature=0.5)
        assert client.chat_calls == []

    def test_tool_choice_default_is_not_sent_without_tools(self, client):
        llm = GigaChat(client=client, default_options={"tool_choice": "auto", "max_tokens": 64})

        llm.chat([{"role": "user", "content": "hi"}])

        assert "tool_choice" not in client.last_parameters
        assert client.last_parameters["max_tokens"] == 64

    def test_tool_choice_default_cannot_bypass_conflict_check(self, client):
        llm = GigaChat(client=client, default_options={"tool_choice": "auto"})
        with pytest.raises(ArgumentConflictError):
            llm.chat([{"role": "user", "content": "hi"}], tool_choice="none")
        assert client.chat_calls == []

    def test_dict_messages_are_converted_to_wire_form(self, llm, client):
        llm.chat([
            {"role": "assistant", "tool_calls": [{"name": "weather", "arguments": "{}"}]},
            {"role": "tool", "tool_call_id": "c1", "content": {"t": 1}},
        ])
        assert client.last_parameters["messages"] == [
            {"role": "assistant", "functions": [{"name": "weather", "arguments": "{}"}]},
            {"role": "function", "function_call_id": "c1", "content": '{"t": 1}'},
        ]

    def test_dict_message_with_invalid_role(self, llm, client):
        with pytest.raises(InvalidRoleError):
            llm.chat([{"role": "robot", "content": "hi"}])
        assert client.chat_calls == []

    def test_argument_conflict_is_a_value_error(self, llm):
        with pytest.raises(ValueError):
            llm.chat([{"role": "user", "content": "hi"}], tools=[], tool_choice="auto")

    def test_failed_api_call(self):
        llm = GigaChat(client=MockChatClient(reply=ERROR_BODY))
        with pytest.raises(ApiError, match="GigaChat API error: 400"):
            llm.chat([{"role": "user", "content": "hi"}])

    def test_success_status_is_not_an_error(self):
        reply = chat_reply("ok")
        reply["status"] = 200
        llm = GigaChat(client=MockChatClient(reply=reply))
        assert llm.chat([{"role": "user", "content": "hi"}]).completion == "ok"


class TestStreamingChat:

    def test_text_stream_with_usage(self):
        client = MockChatClient(
            chunks=make_chunks([{"content": "Hello"}, {"content": " world"}]) + [USAGE_CHUNK]
        )
        seen: list[dict] = []

        response = GigaChat(client=client).chat(
            [{"role": "user", "content": "hi"}], on_chunk=seen.append
        )

        assert len(seen) == 3
        assert seen[-1] is USAGE_CHUNK
        assert response.completion == "Hello world"
        assert response.prompt_tokens == 10
        assert response.completion_tokens == 11
        assert response.total_tokens == 12

    def test_stream_flag_is_a_callable(self):
        client = MockChatClient(chunks=[USAGE_CHUNK])
        GigaChat(client=client).chat([{"role": "user", "content": "hi"}], on_chunk=lambda c: None)
        assert callable(client.last_parameters["stream"])

    def test_stream_override_is_ignored_without_observer(self, client):
        GigaChat(client=client).chat([{"role": "user", "content": "hi"}], stream=True)
        assert "stream" not in client.last_parameters

    def test_multiple_choices(self):
        chunks = [
            {"id": "x", "choices": [{"index": 0, "delta": {"content": "Hello how are you?"}, "finish_reason": "stop"}]},
            {"id": "x", "choices": [{"index": 1, "delta": {"content": "Alternative answer"}, "finish_reason": "stop"}]},
            USAGE_CHUNK,
        ]
        response = GigaChat(client=MockChatClient(chunks=chunks)).chat(
            [{"role": "user", "content": "hi"}], n=2, on_chunk=lambda c: None
        )
        assert response.completions == [
            {"index": 0, "message": {"role": "assistant", "content": "Hello how are you?"}, "finish_reason": "stop"},
            {"index": 1, "message": {"role": "assistant", "content": "Alternative answer"}, "finish_reason": "stop"},
        ]
        assert response.total_tokens == 12

    def test_tool_calls_are_reconstructed(self):
        chunks = make_chunks([
            {"role": "assistant", "content": None},
            {"function_call": {
                "index": 0,
                "id": "call_123456",
                "type": "function",
                "name": "foo",
                "arguments": '{"value": "my_string"}',
            }},
            {"content": None, "functions_state_id": "call_123456"},
        ])
        tools = [{
            "type": "function",
            "function": {
                "name": "foo",
                "parameters": {"type": "object", "properties": {"value": {"type": "string"}}},
                "required": ["value"],
            },
        }]
        client = MockChatClient(chunks=chunks, stream_return=chunks[-1])

        response = GigaChat(client=client).chat(
            [{"role": "user", "content": "hi"}], tools=tools, on_chunk=lambda c: None
        )

        assert response.raw_response["choices"][0]["message"]["tool_calls"] == [
            {"id": "call_123456", "type": "function", "function": {"name": "foo", "arguments": '{"value": "my_string"}'}}
        ]
        assert response.tool_calls == response.raw_response["choices"][0]["message"]["tool_calls"]

    def test_error_before_stream(self):
        client = MockChatClient(chunks=[], stream_return=ERROR_BODY)
        with pytest.raises(ApiError):
            GigaChat(client=client).chat([{"role": "user", "content": "hi"}], on_chunk=lambda c: None)

    def test_error_chunk_reaches_observer_then_raises(self):
        error_chunk = {"status": 500, "message": "boom"}
        client = MockChatClient(chunks=make_chunks([{"content": "a"}]) + [error_chunk])
        seen: list[dict] = []
        with pytest.raises(ApiError, match="500, boom"):
            GigaChat(client=client).chat([{"role": "user", "content": "hi"}], on_chunk=seen.append)
        assert seen[-1] is error_chunk


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


class TestSummarize:

    def test_delegates_to_complete(self, llm, monkeypatch):
        prompts: list[str] = []

        def fake_complete(prompt, **kwargs):
            prompts.append(prompt)
            return "Summary"

        monkeypatch.setattr(llm, "complete", fake_complete)

        assert llm.summarize("Text to summarize") == "Summary"
        assert prompts == [SUMMARIZE_PROMPT.format(text="Text to summarize")]

    def test_failure_propagates(self):
        llm = GigaChat(client=MockChatClient(reply=ERROR_BODY))
        with pytest.raises(ApiError):
            llm.summarize("Text to summarize")
