# tests/test_responsive_service.py
import asyncio
from datetime import datetime

import pytest

from conftest import FakeLLMClient
from config import settings
from models import DocumentState
from services.errors import LLMError, ResponseParseError
from services.responsive_service import ResponsiveService, namespace_timestamp

PAGE = DocumentState(html='<div class="card">x</div>', css=".card { width: 800px; }")
NOW = datetime(2026, 3, 14, 9, 26)


def convert(llm, mode="comfortable", **kwargs):
    return asyncio.run(ResponsiveService(llm).convert(PAGE, mode, now=NOW, **kwargs))


def test_namespace_timestamp_format():
    assert namespace_timestamp(NOW) == "2603140926"


def test_convert_returns_changed_fields():
    llm = FakeLLMClient({
        "message": "Responsive now",
        "html": '<div class="card-2603140926">x</div>',
        "css": ".card-2603140926 { width: 800px; }\n@media (max-width: 1024px) { .card-2603140926 { width: 100%; } }",
    })
    result = convert(llm)

    assert result.mutation_type == "responsive"
    assert result.message == "Responsive now"
    assert "@media (max-width: 1024px)" in result.css
    assert result.javascript is None
    assert result.usage.input_tokens == 10


def test_system_prompt_carries_the_timestamp():
    llm = FakeLLMClient({"css": "a {}"})
    convert(llm, mode="compact")

    call = llm.calls[0]
    assert "2603140926" in call["system_prompt"]
    assert "{{TIMESTAMP}}" not in call["system_prompt"]
    assert '<div class="card">x</div>' in llm.user_text()


def test_haiku_gets_a_smaller_budget():
    llm = FakeLLMClient({"css": "a {}"}, {"css": "a {}"})
    convert(llm)
    convert(llm, model_choice="sonnet")

    assert llm.calls[0]["model"] == settings.CLAUDE_MODEL_HAIKU
    assert llm.calls[0]["max_tokens"] == settings.RESPONSIVE_MAX_TOKENS_HAIKU
    assert llm.calls[1]["model"] == settings.CLAUDE_MODEL_SONNET
    assert llm.calls[1]["max_tokens"] == settings.RESPONSIVE_MAX_TOKENS


def test_unknown_mode_is_rejected_before_calling_the_model():
    llm = FakeLLMClient()
    with pytest.raises(ValueError):
        convert(llm, mode="huge")
    assert llm.calls == []


def test_unusable_response_raises_parse_error():
    with pytest.raises(ResponseParseError) as exc:
        convert(FakeLLMClient("Here is your responsive site!"))
    assert exc.value.usage.input_tokens == 10


def test_response_with_only_fragment_fields_is_unusable():
    with pytest.raises(ResponseParseError):
        convert(FakeLLMClient({"cssFragment": "a {}"}))


def test_provider_error_propagates():
    with pytest.raises(LLMError):
        convert(FakeLLMClient(LLMError("down")))
