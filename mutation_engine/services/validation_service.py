"""
Validation of mutation results.

Each check contributes independent error strings prefixed with a code
(NO_CHANGES, EMPTY_HTML, MISMATCHED_TAG, UNCLOSED_TAGS, UNBALANCED_CSS,
PROPERTY_NOT_APPLIED, TRUNCATED_HTML). Anti-patterns are warnings only.
"""
import re
from typing import List, Optional

from logging_config import logger
from models import DocumentState, Intent, MutationResult, ValidationOutcome
from utils.html_matcher import VOID_ELEMENTS

MAX_UNCLOSED_TAGS = 3
MAX_IMPORTANT = 3

_TAG = re.compile(r"<(/?)([a-zA-Z][\w-]*)[^>]*>")
_LAST_OPEN_TAG = re.compile(r"<([a-zA-Z][\w-]*)[^>]*>$")
_CUT_OFF_TAG = re.compile(r"<[a-zA-Z][^>]*$")


def check_html_syntax(html: Optional[str]) -> List[str]:
    """Empty output, mismatched closes and more than a few unclosed tags"""
    if not html or not html.strip():
        return ["EMPTY_HTML: HTML output is empty."]

    errors = []
    open_tags: List[str] = []
    for m in _TAG.finditer(html):
        tag = m.group(2).lower()
        if tag in VOID_ELEMENTS or m.group(0).endswith("/>"):
            continue

        if m.group(1):
            last_open = open_tags.pop() if open_tags else None
            if last_open and last_open != tag:
                errors.append(f"MISMATCHED_TAG: Expected closing tag for <{last_open}>, found </{tag}>.")
                # The close may belong to an outer level
                open_tags.append(last_open)
        else:
            open_tags.append(tag)

    if len(open_tags) > MAX_UNCLOSED_TAGS:
        errors.append(
            f"UNCLOSED_TAGS: {len(open_tags)} unclosed tags detected: {', '.join(open_tags[:5])}..."
        )
    return errors


def check_css_syntax(css: Optional[str]) -> List[str]:
    if not css or not css.strip():
        return []

    opening, closing = css.count("{"), css.count("}")
    if opening != closing:
        return [f"UNBALANCED_CSS: CSS has {opening} opening braces and {closing} closing braces."]
    return []


def check_property_applied(intent: Intent, after: DocumentState) -> bool:
    """The property (with its value in the same declaration) is in the CSS, or either shows up in the HTML"""
    prop = (intent.property or "").lower()
    value = (intent.value or "").lower()
    if not prop:
        return True

    css = after.css or ""
    if re.search(re.escape(prop) + r"\s*:", css, re.IGNORECASE):
        if not value:
            return True
        if re.search(re.escape(prop) + r"\s*:\s*[^;{}]*" + re.escape(value), css, re.IGNORECASE):
            return True

    html = (after.html or "").lower()
    return prop in html or bool(value and value in html)


def check_anti_patterns(css: Optional[str]) -> List[str]:
    if not css:
        return []

    warnings = []
    if re.search(r"margin[^:;{}]*:\s*-\d", css, re.IGNORECASE):
        warnings.append("NEGATIVE_MARGIN: Prefer Flexbox/Grid layout over negative margins.")

    important_count = len(re.findall(r"!important", css, re.IGNORECASE))
    if important_count > MAX_IMPORTANT:
        warnings.append(f"EXCESSIVE_IMPORTANT: {important_count} uses of !important detected.")

    if re.search(r"(?<![\w-])width\s*:\s*\d{4,}px", css, re.IGNORECASE):
        warnings.append("LARGE_FIXED_WIDTH: Fixed pixel width of 1000px or more; prefer max-width or relative units.")

    return warnings


def is_truncated(html: Optional[str]) -> bool:
    """Output that stops on an ellipsis or inside / right after an unclosed opening tag"""
    trimmed = (html or "").strip()
    if not trimmed:
        return False
    if trimmed.endswith("...") or trimmed.endswith("…"):
        return True
    if _CUT_OFF_TAG.search(trimmed):
        return True

    last_tag = _LAST_OPEN_TAG.search(trimmed)
    if last_tag and not last_tag.group(0).endswith("/>"):
        tag = last_tag.group(1).lower()
        if tag not in VOID_ELEMENTS and not re.search(r"</" + re.escape(tag) + r"\s*>", trimmed, re.IGNORECASE):
            return True
    return False


def build_feedback_prompt(intent: Intent, errors: List[str]) -> str:
    """Retry context: every error plus the original request, target and expected change"""
    lines = ["The previous code generation attempt had the following issues:", ""]
    lines.extend(f"{i}. {error}" for i, error in enumerate(errors, 1))
    lines.append("")
    lines.append(f'Original user request: "{intent.normalized_message or intent.action}"')
    lines.append(f"Target: {intent.target_hint or 'unspecified'}")
    if intent.property:
        expected = f'{intent.property} to "{intent.value}"' if intent.value else intent.property
        lines.append(f"Expected change: {expected}")
    lines.append("")
    lines.append("Fix these issues and regenerate the code. Make sure the requested change is clearly visible in the output.")
    return "\n".join(lines)


def validate_mutation(intent: Intent, before: DocumentState, after: MutationResult) -> ValidationOutcome:
    """
    Validate that a mutation result is well-formed and did what was asked.

    Args:
        intent: Classified request
        before: Document prior to the mutation
        after: Mutation result (None fields are unchanged)

    Returns:
        ValidationOutcome; never raises for invalid output
    """
    errors: List[str] = []
    html_changed = after.html is not None
    css_changed = after.css is not None

    if not after.has_changes:
        errors.append("NO_CHANGES: The mutation produced no changes to any code file.")

    if html_changed:
        errors.extend(check_html_syntax(after.html))
    if css_changed:
        errors.extend(check_css_syntax(after.css))

    if intent.property and intent.value and not check_property_applied(intent, before.apply(after)):
        errors.append(
            f'PROPERTY_NOT_APPLIED: Expected "{intent.property}: {intent.value}" but the change was not detected in the output.'
        )

    warnings = check_anti_patterns(after.css) if css_changed else []
    if warnings:
        logger.warning(f"CSS anti-patterns detected: {warnings}")

    if html_changed and is_truncated(after.html):
        errors.append("TRUNCATED_HTML: The HTML output appears to be truncated.")

    valid = not errors
    if valid:
        logger.info("Validation passed")
    else:
        logger.warning(f"Validation failed ({len(errors)} errors)", errors=errors)

    return ValidationOutcome(
        valid=valid,
        errors=errors,
        feedback_prompt=None if valid else build_feedback_prompt(intent, errors),
        warnings=warnings,
    )
