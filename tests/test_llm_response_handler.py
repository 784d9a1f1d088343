# tests/test_llm_response_handler.py
from services.llm_response_handler import LLMResponseHandler


def test_strict_json():
    parsed = LLMResponseHandler.parse_json_response('{"html": "<p>x</p>", "message": "done"}')
    assert parsed == {"html": "<p>x</p>", "message": "done"}


def test_markdown_fences_are_stripped():
    text = 'Here you go:\n```json\n{"css": ".a { color: red; }"}\n```\nEnjoy!'
    assert LLMResponseHandler.parse_json_response(text) == {"css": ".a { color: red; }"}


def test_text_around_braces_is_trimmed():
    text = 'Sure! {"htmlFragment": "<p>hi</p>", "mergeMode": "append"} Hope that helps.'
    parsed = LLMResponseHandler.parse_json_response(text)
    assert parsed["htmlFragment"] == "<p>hi</p>"
    assert parsed["mergeMode"] == "append"


def test_raw_newlines_inside_strings_are_tolerated():
    text = '{"html": "<div>\n  <p>x</p>\n</div>"}'
    assert LLMResponseHandler.parse_json_response(text)["html"] == "<div>\n  <p>x</p>\n</div>"


def test_field_extraction_recovers_from_unescaped_quotes():
    text = '{"message": "Updated", "html": "<div class="card">Hi</div>", "js": "alert(1);"}'
    parsed = LLMResponseHandler.parse_json_response(text)
    assert parsed["html"] == '<div class="card">Hi</div>'
    assert parsed["javascript"] == "alert(1);"
    assert "js" not in parsed
    assert parsed["message"] == "Updated"


def test_field_extraction_unescapes_sequences():
    text = '{"css": ".a {\\n  color: red;\\n}", "html": "<p class="x">\\"q\\"</p>"}'
    parsed = LLMResponseHandler.parse_json_response(text)
    assert parsed["css"] == ".a {\n  color: red;\n}"


def test_no_code_field_returns_none():
    assert LLMResponseHandler.parse_json_response("") is None
    assert LLMResponseHandler.parse_json_response("Sorry, I cannot help with that.") is None
    assert LLMResponseHandler.parse_json_response('{"message": "only words", oops}') is None


def test_code_fields_maps_js_alias_and_missing_to_none():
    assert LLMResponseHandler.code_fields({"html": "<p></p>", "js": "x()"}) == {
        "html": "<p></p>", "css": None, "javascript": "x()",
    }
    assert LLMResponseHandler.code_fields({"javascript": "", "js": "ignored"})["javascript"] == ""


def test_handle_response_filters_thinking_parts():
    content = [
        {"type": "thinking", "text": "let me think"},
        {"type": "text", "text": "answer "},
        {"type": "text", "text": "here"},
    ]
    assert LLMResponseHandler.handle_response(content) == "answer here"
    assert LLMResponseHandler.handle_response(None) == ""
