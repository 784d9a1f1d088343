# tests/test_mutation_dispatcher.py
import asyncio

import pytest

from conftest import FakeLLMClient
from config import settings
from models import DocumentState, Intent, ResolvedContext, Tier
from services.errors import LLMError, MutationError
from services.mutation_dispatcher import MutationDispatcher
from services.mutation_prompts import ATTACHED_IMAGE_PLACEHOLDER

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="

BOX_DOCUMENT = DocumentState(
    html='<body><div class="box">old</div></body>',
    css=".box { color: red; }",
    javascript="init();",
)


def make_context(strategy=Tier.MEDIUM, selector=".box"):
    return ResolvedContext(
        selector=selector,
        matched_tag="div",
        surrounding_html='<div class="box">old</div>',
        surrounding_css=".box { color: red; }",
        strategy=strategy,
        resolved_by="direct",
    )


def make_intent(**kwargs):
    defaults = dict(action="modify", target_hint=".box", normalized_message="update the box")
    defaults.update(kwargs)
    return Intent(**defaults)


def run(coro):
    return asyncio.run(coro)


def test_fragment_merges_html_and_css():
    llm = FakeLLMClient({
        "htmlFragment": "<p>new</p>",
        "cssFragment": ".box { color: blue; }",
        "mergeMode": "replace",
        "message": "Box updated",
    })
    result = run(MutationDispatcher(llm).mutate(make_intent(), make_context(), BOX_DOCUMENT))

    assert result.mutation_type == "fragment"
    assert result.html == '<body><div class="box">\n<p>new</p>\n</div></body>'
    assert result.css == ".box { color: blue; }"
    assert result.javascript is None
    assert result.message == "Box updated"
    assert result.usage.input_tokens == 10
    assert llm.calls[0]["max_tokens"] == settings.FRAGMENT_MAX_TOKENS
    assert "TARGET ELEMENT: .box" in llm.user_text()


def test_css_only_fragment_leaves_other_fields_unchanged():
    llm = FakeLLMClient({"cssFragment": ".box { color: green; }"})
    result = run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.SIMPLE), BOX_DOCUMENT))

    assert result.html is None
    assert result.javascript is None
    assert result.css == ".box { color: green; }"
    assert result.message == "Applied surgical edit."


def test_simple_tier_uses_the_cheap_model():
    llm = FakeLLMClient({"cssFragment": ".box { color: green; }"})
    run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.SIMPLE), BOX_DOCUMENT, model_choice="opus"))
    assert llm.calls[0]["model"] == settings.SIMPLE_TIER_MODEL


def test_medium_tier_honours_model_choice():
    llm = FakeLLMClient({"cssFragment": ".box { color: green; }"})
    run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.MEDIUM), BOX_DOCUMENT, model_choice="opus"))
    assert llm.calls[0]["model"] == settings.CLAUDE_MODEL_OPUS


def test_js_fragment_is_appended():
    llm = FakeLLMClient({"jsFragment": "track();"})
    result = run(MutationDispatcher(llm).mutate(make_intent(), make_context(), BOX_DOCUMENT))
    assert result.javascript == "init();\n\ntrack();"
    assert result.html is None and result.css is None


def test_fragment_parse_failure_carries_usage():
    llm = FakeLLMClient("I could not do that.")
    with pytest.raises(MutationError) as exc:
        run(MutationDispatcher(llm).mutate(make_intent(), make_context(), BOX_DOCUMENT))
    assert exc.value.mutation_type == "fragment"
    assert exc.value.usage.input_tokens == 10


def test_provider_error_becomes_mutation_error():
    llm = FakeLLMClient(LLMError("503"))
    with pytest.raises(MutationError) as exc:
        run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.FULL), BOX_DOCUMENT))
    assert exc.value.mutation_type == "full"
    assert exc.value.usage.total_tokens == 0


def test_full_mutation_returns_whole_document_with_null_fields():
    llm = FakeLLMClient({"html": "<body>rebuilt</body>", "css": None, "explanation": "Rebuilt"})
    result = run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.FULL), BOX_DOCUMENT))

    assert result.mutation_type == "full"
    assert result.html == "<body>rebuilt</body>"
    assert result.css is None
    assert result.javascript is None
    assert result.message == "Rebuilt"
    assert llm.calls[0]["max_tokens"] == settings.FULL_MAX_TOKENS
    assert "CURRENT CODE:" in llm.user_text()


def test_full_mutation_empty_string_is_a_real_change():
    llm = FakeLLMClient({"html": "<body></body>", "javascript": ""})
    result = run(MutationDispatcher(llm).mutate(make_intent(), make_context(Tier.FULL), BOX_DOCUMENT))
    assert result.javascript == ""


def test_selection_beats_tier():
    llm = FakeLLMClient({"html": "<body>selected</body>"})
    intent = make_intent(has_selection=True, selection_context='[{"tag": "div"}]')
    result = run(MutationDispatcher(llm).mutate(intent, make_context(Tier.SIMPLE), BOX_DOCUMENT))

    assert result.mutation_type == "selection"
    assert llm.calls[0]["temperature"] == settings.SELECTION_TEMPERATURE
    assert '[{"tag": "div"}]' in llm.user_text()


def test_feedback_is_included_on_retry():
    llm = FakeLLMClient({"cssFragment": ".box { color: blue; }"})
    run(MutationDispatcher(llm).mutate(make_intent(), make_context(), BOX_DOCUMENT, feedback="1. NO_CHANGES"))
    assert "RETRY - THE PREVIOUS ATTEMPT FAILED VALIDATION:\n1. NO_CHANGES" in llm.user_text()


def test_image_embed_sends_image_block():
    llm = FakeLLMClient({"html": f'<img src="{ATTACHED_IMAGE_PLACEHOLDER}">'})
    result = run(MutationDispatcher(llm).mutate_image(
        "embed", PNG_DATA_URL, "paste this as a logo", make_intent(), BOX_DOCUMENT
    ))

    assert result.mutation_type == "image-embed"
    content = llm.calls[0]["messages"][0]["content"]
    assert content[0]["type"] == "image"
    assert content[0]["source"]["media_type"] == "image/png"
    assert not content[0]["source"]["data"].startswith("data:")
    assert ATTACHED_IMAGE_PLACEHOLDER in llm.user_text()


def test_image_reference_without_existing_code():
    llm = FakeLLMClient({"html": "<body>clone</body>", "css": "body { margin: 0; }"})
    result = run(MutationDispatcher(llm).mutate_image(
        "reference", PNG_DATA_URL, "make it look like this", make_intent(), DocumentState()
    ))
    assert result.mutation_type == "image-reference"
    assert result.message == "Recreated the design from the reference image."
    assert "There is no existing code" in llm.user_text()


def test_original_flow_uses_fallback_model_unless_chosen():
    llm = FakeLLMClient({"html": "<body>a</body>"}, {"html": "<body>b</body>"})
    dispatcher = MutationDispatcher(llm)

    run(dispatcher.mutate_original_flow("do it", BOX_DOCUMENT))
    run(dispatcher.mutate_original_flow("do it", BOX_DOCUMENT, model_choice="haiku"))

    assert llm.calls[0]["model"] == settings.FALLBACK_MODEL
    assert llm.calls[1]["model"] == settings.CLAUDE_MODEL_HAIKU
