"""Tests for the OpenAI-compatible completion provider (no network)."""

import json

import httpx
import pytest

from chat_memory.providers import base as provider_base
from chat_memory.providers.openai import OpenAIProvider
from chat_memory.types import ChatMessage, CompletionError, CompletionRequest


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(provider_base.time, "sleep", lambda s: None)


def _request(**kw) -> CompletionRequest:
    return CompletionRequest(
        model="gpt-4.1-mini",
        messages=[ChatMessage("system", "be nice"), ChatMessage("user", "Hi")],
        **kw,
    )


def _ok(content="Hello"):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 2},
    })


class Recorder:
    """MockTransport handler that replays scripted responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def _provider(handler, max_retries=3) -> OpenAIProvider:
    return OpenAIProvider(
        api_key="sk-test",
        base_url="https://llm.example/v1/",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


class TestOpenAIProvider:
    def test_success(self):
        handler = Recorder(_ok("안녕!"))
        assert _provider(handler).complete(_request()) == "안녕!"

        call = handler.calls[0]
        assert str(call.url) == "https://llm.example/v1/chat/completions"
        assert call.headers["Authorization"] == "Bearer sk-test"

    def test_payload(self):
        handler = Recorder(_ok())
        _provider(handler).complete(_request(
            temperature=0.8, max_tokens=100, presence_penalty=0.6, frequency_penalty=0.3,
        ))
        body = json.loads(handler.calls[0].content)
        assert body["model"] == "gpt-4.1-mini"
        assert body["messages"] == [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "Hi"},
        ]
        assert body["temperature"] == 0.8
        assert body["max_tokens"] == 100
        assert body["presence_penalty"] == 0.6
        assert body["frequency_penalty"] == 0.3

    def test_payload_omits_unset_penalties(self):
        handler = Recorder(_ok())
        _provider(handler).complete(_request(temperature=0.0, max_tokens=2000))
        body = json.loads(handler.calls[0].content)
        assert "presence_penalty" not in body
        assert "frequency_penalty" not in body

    def test_missing_content_is_empty(self):
        handler = Recorder(httpx.Response(200, json={"choices": []}))
        assert _provider(handler).complete(_request()) == ""

    def test_server_error_retried_then_succeeds(self):
        handler = Recorder(httpx.Response(503, text="busy"), _ok("finally"))
        assert _provider(handler).complete(_request()) == "finally"
        assert len(handler.calls) == 2

    def test_rate_limit_exhausts_retries(self):
        handler = Recorder(httpx.Response(429, text="slow down"))
        with pytest.raises(CompletionError) as exc:
            _provider(handler, max_retries=2).complete(_request())
        assert exc.value.status_code == 429
        assert len(handler.calls) == 2

    def test_client_error_not_retried(self):
        handler = Recorder(httpx.Response(400, text="bad request"))
        with pytest.raises(CompletionError) as exc:
            _provider(handler).complete(_request())
        assert exc.value.status_code == 400
        assert len(handler.calls) == 1

    def test_transport_error(self):
        handler = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(CompletionError) as exc:
            _provider(handler, max_retries=1).complete(_request())
        assert exc.value.status_code is None
        assert exc.value.provider == "openai"

    @pytest.mark.parametrize("response", [
        httpx.Response(200, content=b"<html>gateway hiccup</html>"),
        httpx.Response(200, json=["not", "a", "completion"]),
        httpx.Response(200, json={"choices": ["oops"]}),
    ])
    def test_malformed_success_body(self, response):
        handler = Recorder(response)
        with pytest.raises(CompletionError) as exc:
            _provider(handler).complete(_request())
        assert exc.value.status_code == 200
        assert "Malformed completion response" in str(exc.value)
        assert len(handler.calls) == 1
