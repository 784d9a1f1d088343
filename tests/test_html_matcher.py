# tests/test_html_matcher.py
import pytest

from utils.html_matcher import (
    build_selector_pattern,
    extract_css_rules,
    extract_element_html,
    find_css_rules,
    find_element,
    find_matching_close,
    splice_region,
    tag_for_selector,
)


NESTED = '<div class="outer"><div class="inner"><div>deep</div></div><p>after</p></div><div>sibling</div>'


@pytest.mark.parametrize("selector", ["#hero", ".box", "section", "div.box", "div#hero"])
def test_supported_selectors_compile(selector):
    assert build_selector_pattern(selector) is not None


@pytest.mark.parametrize("selector", ["", "div > p", ".a .b", "[data-x]", "a:hover", "ul li"])
def test_unsupported_selectors_are_soft_misses(selector):
    assert build_selector_pattern(selector) is None
    assert find_element("<div class='a'><p>x</p></div>", selector) is None


def test_matching_close_counts_same_name_depth():
    close = find_matching_close(NESTED, "div", 0)
    assert NESTED[close:].startswith("</div><div>sibling")
    # The close belongs to the outer element, so the sibling comes right after it
    assert NESTED[close + len("</div>"):] == "<div>sibling</div>"


def test_matching_close_for_inner_element():
    start = NESTED.index('<div class="inner">')
    close = find_matching_close(NESTED, "div", start)
    assert NESTED[start:close + len("</div>")] == '<div class="inner"><div>deep</div></div>'


def test_matching_close_ignores_other_tag_names():
    html = "<section><div></div><span></span></section>"
    assert find_matching_close(html, "section", 0) == html.index("</section>")


def test_matching_close_unbalanced_returns_minus_one():
    assert find_matching_close("<div><div>never closed</div>", "div", 0) == -1


def test_matching_close_void_and_self_closing_have_no_close():
    assert find_matching_close('<img src="a.png">', "img", 0) == -1
    assert find_matching_close("<div/><div>x</div>", "div", 0) == -1


def test_matching_close_infers_tag_name():
    html = "<ul><li>a</li></ul>"
    assert find_matching_close(html, None, 0) == html.index("</ul>")


def test_find_element_by_class_token():
    html = '<div class="card box-shadow"></div><div class="hero box">x</div>'
    element = find_element(html, ".box")
    assert element is not None
    # "box-shadow" is a different class, not a match for .box
    assert html[element.start:element.open_end] == '<div class="hero box">'
    assert element.bounded


def test_find_element_by_id_and_tag_variants():
    html = '<main><h1 id="title">Hi</h1><p id="title-sub">x</p></main>'
    assert find_element(html, "#title").tag_name == "h1"
    assert find_element(html, "h1#title").tag_name == "h1"
    assert find_element(html, "p#title") is None


def test_find_element_is_case_insensitive_on_tags():
    element = find_element("<BODY><P>x</P></BODY>", "p")
    assert element.tag_name == "p"
    assert element.bounded


def test_find_element_unbounded_when_close_missing():
    element = find_element('<div class="box">open forever', ".box")
    assert element is not None
    assert not element.bounded


def test_extract_element_html():
    html = '<body><div class="box"><span>in</span></div></body>'
    assert extract_element_html(html, ".box") == '<div class="box"><span>in</span></div>'
    assert extract_element_html(html, ".missing") is None


def test_tag_for_selector_defaults():
    html = '<section class="hero-section"></section>'
    assert tag_for_selector(html, ".hero-section") == "section"
    assert tag_for_selector(html, "article.card") == "article"
    assert tag_for_selector(html, ".nothing") == "div"


def test_splice_region_leaves_outside_bytes_alone():
    html = "<p>one</p><p>two</p>"
    assert splice_region(html, 3, 6, "ONE") == "<p>ONE</p><p>two</p>"
    assert splice_region(html, 0, 0, "<hr>") == "<hr>" + html


def test_splice_region_rejects_bad_ranges():
    with pytest.raises(ValueError):
        splice_region("abc", 2, 1, "x")
    with pytest.raises(ValueError):
        splice_region("abc", 0, 10, "x")


def test_extract_css_rules_skips_comments_and_statements():
    css = '@import url("x.css");\n/* header */ .a  .b { color: red; }\nbody{margin:0}'
    rules = extract_css_rules(css)
    assert [rule.selector for rule in rules] == [".a .b", "body"]
    assert rules[0].full == ".a  .b { color: red; }"
    assert rules[1].body == "margin:0"


def test_extract_css_rules_treats_at_rule_blocks_as_opaque():
    css = (
        ".card { width: 50%; }\n"
        "@media (max-width: 600px) { .card { width: 100%; } }\n"
        "@font-face { font-family: Inter; }\n"
        ".footer { color: gray; }"
    )
    rules = extract_css_rules(css)
    assert [rule.selector for rule in rules] == [".card", ".footer"]
    assert rules[0].body == "width: 50%;"
    assert css[rules[1].start:rules[1].end] == ".footer { color: gray; }"


def test_find_css_rules_normalises_whitespace():
    css = ".a   .b { x: 1; }\n.a .b { y: 2; }\n.a { z: 3; }"
    assert len(find_css_rules(css, ".a .b")) == 2
