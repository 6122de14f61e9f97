import json

import httpx
import pytest

from rfpengine.utils.core.errors import ConfigurationError
from rfpengine.utils.llm import LLM_GROQ
from rfpengine.utils.llm.LLM_GROQ import ChatMessage, GroqError, GroqLLM, call_groq_sync


def _completion(text):
    return {
        "model": "llama-3.1-8b-instant",
        "created": 1,
        "usage": {"prompt_tokens": 3, "completion_tokens": 2},
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
    }


@pytest.fixture
def transport(monkeypatch):
    """Route Groq HTTP calls to queued responses and record the requests."""
    responses = []
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    def _make_client(self):
        return httpx.Client(
            base_url=self.base_url,
            headers=self._build_headers(),
            transport=httpx.MockTransport(handler),
        )

    monkeypatch.setattr(GroqLLM, "_make_client", _make_client)
    monkeypatch.setattr(LLM_GROQ.time, "sleep", lambda s: None)
    return responses, requests


class TestGroqLLM:
    def test_chat(self, transport):
        responses, requests = transport
        responses.append(httpx.Response(200, json=_completion('{"a": 1}')))

        with GroqLLM(api_key="k") as client:
            resp = client.chat(
                [ChatMessage(role="user", content="hi")],
                response_format={"type": "json_object"},
                temperature=0,
            )

        assert resp.text == '{"a": 1}'
        assert resp.finish_reason == "stop"
        sent = json.loads(requests[0].content)
        assert sent["model"] == "llama-3.1-8b-instant"
        assert sent["temperature"] == 0
        assert sent["response_format"] == {"type": "json_object"}
        assert requests[0].headers["Authorization"] == "Bearer k"
        assert requests[0].url.path.endswith("/chat/completions")

    def test_retries_rate_limit(self, transport):
        responses, requests = transport
        responses.append(
            httpx.Response(429, headers={"retry-after": "0"}, json={"error": {"message": "slow down"}})
        )
        responses.append(httpx.Response(200, json=_completion("ok")))

        with GroqLLM(api_key="k") as client:
            assert client.chat([ChatMessage(role="user", content="hi")]).text == "ok"
        assert len(requests) == 2

    def test_auth_error_is_final(self, transport):
        responses, requests = transport
        responses.append(httpx.Response(401, json={"error": {"message": "bad key"}}))

        with GroqLLM(api_key="k") as client:
            with pytest.raises(GroqError) as exc:
                client.chat([ChatMessage(role="user", content="hi")])
        assert exc.value.status_code == 401
        assert len(requests) == 1

    def test_empty_messages(self):
        with pytest.raises(ValueError):
            GroqLLM(api_key="k").chat([])


class TestCallGroqSync:
    def test_missing_key(self, monkeypatch):
        for name in ("groq_api_key", "GROQ_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ConfigurationError):
            call_groq_sync("hi")

    def test_system_instruction_sent_first(self, transport, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "k")
        responses, requests = transport
        responses.append(httpx.Response(200, json=_completion("done")))

        assert call_groq_sync("hi", system_instruction="be terse") == "done"
        roles = [m["role"] for m in json.loads(requests[0].content)["messages"]]
        assert roles == ["system", "user"]

    def test_requests_json_object(self, transport, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "k")
        responses, requests = transport
        responses.append(httpx.Response(200, json=_completion('{"ok": true}')))

        call_groq_sync("Reply in JSON")
        sent = json.loads(requests[0].content)
        assert sent["response_format"] == {"type": "json_object"}
        assert sent["messages"] == [{"role": "user", "content": "Reply in JSON"}]

    def test_plain_text_mode(self, transport, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "k")
        responses, requests = transport
        responses.append(httpx.Response(200, json=_completion("hello")))

        assert call_groq_sync("hi", json_mode=False) == "hello"
        assert "response_format" not in json.loads(requests[0].content)

    def test_empty_content(self, transport, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "k")
        responses, _ = transport
        responses.append(httpx.Response(200, json=_completion("  ")))

        with pytest.raises(GroqError):
            call_groq_sync("hi")
