# tests/test_intent_classifier.py
import asyncio

import pytest

from conftest import FakeLLMClient, intent_json
from config import settings
from models import Tier
from services.errors import LLMError
from services.intent_classifier import (
    SELECTION_MARKER,
    IntentClassifier,
    detect_image_mode,
    has_layout_vocabulary,
    local_tier,
    normalize_message,
    reconcile_tiers,
    strip_selection_context,
)


# --- Local heuristic ---

def test_size_request_is_simple():
    assert local_tier("make the button bigger") is Tier.SIMPLE


def test_layout_vocabulary_is_at_least_medium():
    assert local_tier("align the navbar and sidebar in a flex row") is Tier.MEDIUM
    # A simple colour word does not pull a layout request down
    assert local_tier("align the red buttons in a row") is Tier.MEDIUM


def test_complex_phrases_are_full():
    assert local_tier("redesign the whole landing page") is Tier.FULL
    assert local_tier("add section for pricing") is Tier.FULL


def test_no_keyword_is_medium():
    assert local_tier("swap the second paragraph with the quote") is Tier.MEDIUM


def test_keywords_match_whole_words_only():
    # "rowdy" is not "row", "textual" is not "text"
    assert not has_layout_vocabulary("rowdy crowd")
    assert local_tier("a textual analysis") is Tier.MEDIUM
    assert has_layout_vocabulary("put the cards in two columns")


# --- Thai normalisation ---

def test_thai_vocabulary_maps_to_english():
    assert normalize_message("เปลี่ยนสีปุ่ม") == "change color button"


def test_thai_table_means_grid():
    normalized = normalize_message("จัดวางการ์ดเป็นตาราง")
    assert "grid" in normalized
    assert local_tier(normalized) is Tier.MEDIUM


def test_plain_english_is_untouched():
    message = "make  the title   red"
    assert normalize_message(message) == message


# --- Reconciliation ---

@pytest.mark.parametrize("local, llm, expected", [
    (Tier.SIMPLE, "full", Tier.SIMPLE),
    (Tier.FULL, "simple", Tier.SIMPLE),
    (Tier.MEDIUM, "full", Tier.MEDIUM),
    (Tier.FULL, "full", Tier.FULL),
    (Tier.FULL, "banana", Tier.MEDIUM),
    (Tier.SIMPLE, None, Tier.SIMPLE),
])
def test_cheaper_tier_wins(local, llm, expected):
    assert reconcile_tiers(local, llm) is expected


# --- Selection block ---

def test_selection_block_is_split_off():
    message = f'make these blue\n{SELECTION_MARKER}\n[{{"tag": "button"}}]'
    text, has_selection, context = strip_selection_context(message)
    assert text == "make these blue"
    assert has_selection
    assert context == '[{"tag": "button"}]'


def test_message_without_selection():
    assert strip_selection_context("hello") == ("hello", False, None)


# --- Image mode ---

@pytest.mark.parametrize("message, mode", [
    ("paste this as the hero background", "embed"),
    ("set as background of the header", "embed"),
    ("make my page look like this", "reference"),
    ("ทำตามรูปนี้", "reference"),
    ("", "reference"),
    (None, "reference"),
])
def test_image_mode(message, mode):
    assert detect_image_mode(message) == mode


# --- Classifier with a model ---

def test_classify_uses_model_fields_and_intent_model():
    llm = FakeLLMClient(intent_json(action="recolor", targetHint=".btn", property="color",
                                    value="red", complexity="full"))
    intent = asyncio.run(IntentClassifier(llm).classify("make the button red"))

    assert intent.action == "recolor"
    assert intent.target_hint == ".btn"
    assert intent.property == "color"
    assert intent.value == "red"
    # Local says simple, model says full: the cheaper one is kept
    assert intent.strategy is Tier.SIMPLE
    assert intent.usage.input_tokens == 10

    call = llm.calls[0]
    assert call["model"] == settings.INTENT_MODEL
    assert call["max_tokens"] == settings.INTENT_MAX_TOKENS
    assert call["temperature"] == 0


def test_classify_bigger_button_stays_simple():
    llm = FakeLLMClient(intent_json(action="resize_text", targetHint="button", complexity="simple"))
    intent = asyncio.run(IntentClassifier(llm).classify("make the button bigger"))
    assert intent.strategy is Tier.SIMPLE


def test_classify_falls_back_to_local_analysis_on_provider_error():
    llm = FakeLLMClient(LLMError("timeout"))
    intent = asyncio.run(IntentClassifier(llm).classify("align the cards in a grid"))

    assert intent.action == "modify"
    assert intent.target_hint == "body"
    assert intent.scope == "global"
    assert intent.strategy is Tier.MEDIUM
    assert intent.usage.total_tokens == 0


def test_classify_keeps_usage_when_response_is_unparseable():
    llm = FakeLLMClient("I think you want a blue button.")
    intent = asyncio.run(IntentClassifier(llm).classify("make the button blue"))

    assert intent.target_hint == "body"
    assert intent.strategy is Tier.SIMPLE
    assert intent.usage.input_tokens == 10
    assert intent.usage.output_tokens == 5


def test_classify_selection_fallback_scope_is_local():
    llm = FakeLLMClient(LLMError("down"))
    message = f'make these blue\n{SELECTION_MARKER}\n[{{"tag": "button"}}]'
    intent = asyncio.run(IntentClassifier(llm).classify(message))

    assert intent.has_selection
    assert intent.scope == "local"
    assert intent.normalized_message == "make these blue"
    assert "CONTEXT: The user explicitly selected elements" in llm.user_text()


def test_image_forces_full_strategy():
    llm = FakeLLMClient(intent_json(complexity="simple"))
    intent = asyncio.run(IntentClassifier(llm).classify("make the title red", has_image=True))
    assert intent.strategy is Tier.FULL
    assert intent.has_image


def test_classify_normalises_thai_before_prompting():
    llm = FakeLLMClient(intent_json())
    intent = asyncio.run(IntentClassifier(llm).classify("เปลี่ยนสีปุ่ม"))
    assert intent.normalized_message == "change color button"
    assert '"change color button"' in llm.user_text()


# --- File intent ---

def test_detect_required_files():
    llm = FakeLLMClient({"intent": {"html": False, "css": True, "js": False}})
    files = asyncio.run(IntentClassifier(llm).detect_required_files("make the title red"))
    assert files == {"html": False, "css": True, "js": False}
    assert llm.calls[0]["max_tokens"] == settings.FILE_INTENT_MAX_TOKENS


@pytest.mark.parametrize("script", [LLMError("down"), "no json here", {"files": []}])
def test_detect_required_files_defaults_to_everything(script):
    files = asyncio.run(IntentClassifier(FakeLLMClient(script)).detect_required_files("anything"))
    assert files == {"html": True, "css": True, "js": True}
