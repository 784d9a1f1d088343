"""
Surgical fragment merge for HTML, CSS and JavaScript.

Splices LLM-produced fragments into the user's full document through the
structure matcher, without a DOM parser.
"""
from enum import Enum
from typing import Optional

from logging_config import logger
from utils.html_matcher import (
    extract_css_rules,
    find_element,
    normalize_selector,
    splice_region,
)


class MergeMode(str, Enum):
    REPLACE = "replace"  # swap the inner content of the element
    APPEND = "append"    # insert before the element's closing tag
    WRAP = "wrap"        # replace the whole element, tags included

    @classmethod
    def parse(cls, value: Optional[str]) -> "MergeMode":
        if isinstance(value, MergeMode):
            return value
        try:
            return cls(str(value or "replace").strip().lower())
        except ValueError:
            logger.warning(f"Unknown merge mode '{value}', falling back to replace", merge_mode=value)
            return cls.REPLACE


def merge_html(full_html: str, fragment_html: str, selector: str, mode: str = "replace") -> str:
    """
    Merge an HTML fragment into the full document at selector.

    Args:
        full_html: Current document
        fragment_html: Markup returned by the model
        selector: Target selector (#id, .class, tag, tag.class, tag#id)
        mode: replace / append / wrap (unknown modes behave as replace)

    Returns:
        The merged document. When the target cannot be resolved or has no
        balanced closing tag the fragment is appended after the document.
    """
    if not fragment_html:
        return full_html
    if not full_html:
        return fragment_html

    merge_mode = MergeMode.parse(mode)
    element = find_element(full_html, selector) if selector else None

    if element is None or not element.bounded:
        logger.info(
            f"Merge target '{selector}' not resolvable, appending fragment",
            selector=selector,
            found=element is not None,
        )
        return full_html + "\n" + fragment_html

    if merge_mode is MergeMode.APPEND:
        return splice_region(full_html, element.close_start, element.close_start, "\n" + fragment_html)

    if merge_mode is MergeMode.WRAP:
        return splice_region(full_html, element.start, element.close_end, fragment_html)

    return splice_region(full_html, element.open_end, element.close_start, "\n" + fragment_html + "\n")


def merge_css(full_css: str, fragment_css: str, selector: Optional[str] = None) -> str:
    """
    Merge CSS rules from a fragment into the full stylesheet.

    Existing rules whose selector equals a fragment rule's selector are
    replaced in place. If nothing was replaced the fragment is appended as a
    whole; otherwise only rules for selectors new to the stylesheet are
    appended after the replacements. At-rule blocks in the fragment are
    opaque and are appended verbatim.

    The selector argument names the edit target and is only used for logging.
    """
    if not full_css and not fragment_css:
        return ""
    if not full_css:
        return fragment_css
    if not fragment_css:
        return full_css

    fragment_rules = extract_css_rules(fragment_css)
    if not fragment_rules:
        return full_css.strip() + "\n\n" + fragment_css.strip()

    original_selectors = {rule.selector for rule in extract_css_rules(full_css)}
    replacements = {}
    for rule in fragment_rules:
        if rule.selector in original_selectors:
            # Last fragment rule for a selector wins
            replacements[rule.selector] = rule.full

    if not replacements:
        return full_css.strip() + "\n\n" + fragment_css.strip()

    merged = full_css
    # Splice back to front so earlier offsets stay valid
    for rule in reversed(extract_css_rules(full_css)):
        if rule.selector in replacements:
            merged = splice_region(merged, rule.start, rule.end, replacements[rule.selector])

    appended = set()
    for rule in fragment_rules:
        if rule.selector not in original_selectors and rule.selector not in appended:
            merged = merged.strip() + "\n\n" + rule.full
            appended.add(rule.selector)

    opaque = _opaque_css(fragment_css, fragment_rules)
    if opaque:
        merged = merged.strip() + "\n\n" + opaque

    logger.info(
        f"CSS merge replaced {len(replacements)} rule(s), appended {len(appended)}",
        selector=normalize_selector(selector) if selector else None,
    )
    return merged


def _opaque_css(fragment_css: str, rules) -> str:
    """Fragment text left after removing its top-level rules, if it holds a block"""
    rest = fragment_css
    for rule in reversed(rules):
        rest = splice_region(rest, rule.start, rule.end, "")
    rest = rest.strip()
    return rest if "{" in rest else ""


def append_javascript(full_js: str, fragment_js: str) -> str:
    """JavaScript fragments are additive only"""
    if not fragment_js:
        return full_js
    if not full_js:
        return fragment_js
    return full_js + "\n\n" + fragment_js
