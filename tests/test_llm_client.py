# tests/test_llm_client.py
import asyncio

import httpx
import pytest

from config import settings
from services import llm_client
from services.errors import LLMError
from services.llm_client import OpenRouterLLMClient


@pytest.fixture
def openrouter(monkeypatch):
    """
    OpenRouter client whose HTTP calls are answered by a local handler.
    Set `state["reply"]` to the response the handler should return.
    """
    state = {"requests": [], "reply": httpx.Response(200, json={})}
    real_client = httpx.AsyncClient

    def handler(request):
        state["requests"].append(request)
        return state["reply"]

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(llm_client.httpx, "AsyncClient", client_factory)
    return OpenRouterLLMClient(api_key="test-key"), state


def complete(client):
    return asyncio.run(client.complete(
        "You edit pages.",
        [{"role": "user", "content": "make it red"}],
        settings.CLAUDE_MODEL_HAIKU,
        256,
        0.2,
    ))


def test_openrouter_reads_text_and_usage(openrouter):
    client, state = openrouter
    state["reply"] = httpx.Response(200, json={
        "choices": [{"message": {"content": "{\"css\": \"a {}\"}"}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 4},
    })

    response = complete(client)

    assert response.text == "{\"css\": \"a {}\"}"
    assert response.usage.input_tokens == 12
    assert response.usage.output_tokens == 4
    assert response.provider == "openrouter"

    sent = state["requests"][0]
    assert sent.headers["Authorization"] == "Bearer test-key"
    body = sent.read().decode()
    assert "anthropic/claude-haiku-4.5" in body
    assert "You edit pages." in body


def test_openrouter_empty_choices_is_an_llm_error(openrouter):
    client, state = openrouter
    state["reply"] = httpx.Response(200, json={"choices": [], "usage": {}})

    with pytest.raises(LLMError):
        complete(client)


def test_openrouter_error_status_is_an_llm_error(openrouter):
    client, state = openrouter
    state["reply"] = httpx.Response(429, text="rate limited")

    with pytest.raises(LLMError) as exc:
        complete(client)
    assert "429" in str(exc.value)
