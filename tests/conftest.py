# tests/conftest.py
import json
import os

# Settings are read at import time; keep tests off a real Redis and provider.
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

import pytest

from models import DocumentState, TokenUsage
from services.errors import LLMError
from services.llm_client import LLMClient, LLMResponse


class FakeLLMClient(LLMClient):
    """
    Scripted stand-in for a provider.

    Each queued item is returned (or raised) by one complete() call, in order:
    a str or dict becomes the response text, an Exception is raised.
    """

    provider = "fake"

    def __init__(self, *script, usage=(10, 5)):
        self.script = list(script)
        self.usage = usage
        self.calls = []

    def queue(self, *items):
        self.script.extend(items)
        return self

    async def complete(self, system_prompt, messages, model, max_tokens, temperature):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if not self.script:
            raise LLMError("No scripted response left")

        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        text = json.dumps(item) if isinstance(item, dict) else item
        return LLMResponse(
            text=text,
            usage=TokenUsage(input_tokens=self.usage[0], output_tokens=self.usage[1]),
            model=model,
            provider=self.provider,
        )

    def user_text(self, call_index=-1):
        """Text of the user message sent in one recorded call"""
        content = self.calls[call_index]["messages"][0]["content"]
        if isinstance(content, str):
            return content
        return "".join(block.get("text", "") for block in content if block.get("type") == "text")


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def landing_page():
    """A small page with the usual landing-page sections"""
    return DocumentState(
        html=(
            "<body>\n"
            "<nav class=\"navbar\"><a href=\"#\">Home</a></nav>\n"
            "<section class=\"hero-section\">\n"
            "  <h1 id=\"main-title\">Welcome aboard</h1>\n"
            "  <button class=\"btn primary\">Get started</button>\n"
            "</section>\n"
            "<footer>Contact us</footer>\n"
            "</body>"
        ),
        css=(
            ".navbar { display: flex; }\n"
            ".hero-section { padding: 40px; }\n"
            ".btn { color: white; background: blue; }\n"
            "footer { color: gray; }"
        ),
        javascript="console.log('ready');",
    )


def intent_json(**overrides):
    data = {
        "action": "modify",
        "targetHint": "body",
        "scope": "global",
        "property": None,
        "value": None,
        "complexity": "medium",
    }
    data.update(overrides)
    return data
