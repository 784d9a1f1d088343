"""
Context Resolver - turns an Intent's abstract target hint into a concrete
selector plus the minimal HTML/CSS around it.

Resolution chain, first hit wins:
selection -> direct -> synonym -> text-search -> action-fallback -> absolute-fallback
"""
import json
import re
from typing import List, Optional, Tuple

from logging_config import logger
from models import DocumentState, Intent, ResolvedContext, Tier
from services.intent_classifier import keyword_pattern
from utils.html_matcher import (
    build_selector_pattern,
    class_attr_pattern,
    extract_css_rules,
    extract_element_html,
    id_attr_pattern,
    selector_exists,
    tag_for_selector,
)

# Descriptive nouns -> probable selectors, most specific first
VISUAL_SYNONYMS = {
    # Layout sections
    "box": ["div", "section", "article"],
    "container": ["div.container", "main", ".wrapper"],
    "wrapper": ["div.wrapper", ".container", "main"],
    "theme": ["body", "html"],
    "page": ["body", "main", ".page"],
    "content": ["main", ".content", "article"],

    # Navigation
    "navbar": ["nav", ".navbar", ".nav"],
    "menu": ["nav", ".menu", "ul.nav"],
    "navigation": ["nav", ".navigation", "header"],

    # Common UI
    "button": ["button", ".btn", "a.btn"],
    "header": ["header", "h1", ".header"],
    "title": ["h1", "h2", ".title", ".heading"],
    "subtitle": ["h2", "h3", ".subtitle"],
    "heading": ["h1", "h2", "h3"],
    "paragraph": ["p", ".text"],
    "text": ["p", "span", ".text"],
    "link": ["a", ".link"],
    "image": ["img", "picture", ".image"],
    "card": [".card", "article", ".card-container"],
    "footer": ["footer", ".footer"],
    "hero": [".hero", ".hero-section", "section"],
    "sidebar": ["aside", ".sidebar", ".side-panel"],
    "form": ["form", ".form"],
    "input": ["input", "textarea", ".input-field"],
    "modal": [".modal", ".dialog", ".popup"],
    "banner": [".banner", ".hero", "header"],
    "icon": ["i", ".icon", "svg"],
    "list": ["ul", "ol", ".list"],
    "table": ["table", ".table"],
}

# Action verbs -> where such edits usually land
ACTION_DEFAULTS = {
    "recolor": ["p", "h1", "h2", "h3", "span", "button", "a"],
    "change_color": ["p", "h1", "h2", "h3", "span", "button", "a"],
    "resize": ["div", "section", "img", ".container"],
    "add_element": ["main", "body", ".container"],
    "modify_layout": ["body", "main", ".container"],
    "add_animation": ["button", ".card", "a", "img"],
    "fix_bug": ["body"],
}

LAYOUT_SENSITIVE_ACTIONS = [
    "align", "resize", "rearrange", "reorder", "move", "position",
    "grid", "flex", "layout", "responsive", "stack", "distribute",
    "modify_layout", "center",
]

_LAYOUT_SENSITIVE_RE = keyword_pattern(LAYOUT_SENSITIVE_ACTIONS)

# Opening tag followed by its direct text, up to the next tag
_ELEMENT_TEXT = re.compile(r"<(?P<tag>[a-zA-Z][\w-]*)(?P<attrs>[^>]*)>(?P<text>[^<]*)")
_SKIP_TEXT_TAGS = {"script", "style"}
_SIMPLE_NAME = re.compile(r"^[\w-]+$")

Resolution = Tuple[str, Optional[str]]


def try_selection(intent: Intent) -> Optional[Resolution]:
    """
    Explicit selection widens the target to the whole body.

    The element list itself goes to the mutation prompt; the resolver only
    checks that it holds at least one element descriptor.
    """
    if not intent.has_selection or not intent.selection_context:
        return None

    context = intent.selection_context
    start, end = context.find("["), context.rfind("]")
    if start == -1 or end <= start:
        return None

    try:
        elements = json.loads(context[start:end + 1])
    except ValueError as e:
        logger.warning(f"Failed to parse selection context: {e}")
        return None

    if not isinstance(elements, list) or not elements:
        return None
    return "body", "body"


def try_direct_selector(target_hint: Optional[str], html: str) -> Optional[Resolution]:
    """The hint already is a selector (or a hyphenated class/id token) present in the HTML"""
    if not target_hint:
        return None
    hint = target_hint.strip()

    if build_selector_pattern(hint) and selector_exists(html, hint):
        # Bare tag names are case-insensitive; class and id names are not
        selector = hint.lower() if _SIMPLE_NAME.match(hint) else hint
        return selector, tag_for_selector(html, selector)

    if "-" in hint and _SIMPLE_NAME.match(hint):
        if re.search(class_attr_pattern(hint), html, re.IGNORECASE):
            return f".{hint}", tag_for_selector(html, f".{hint}")
        if re.search(id_attr_pattern(hint), html, re.IGNORECASE):
            return f"#{hint}", tag_for_selector(html, f"#{hint}")

    return None


def try_visual_synonyms(target_hint: Optional[str], html: str) -> Optional[Resolution]:
    if not target_hint:
        return None

    for candidate in VISUAL_SYNONYMS.get(target_hint.strip().lower(), []):
        if selector_exists(html, candidate):
            return candidate, tag_for_selector(html, candidate)
    return None


def try_text_search(target_hint: Optional[str], html: str) -> Optional[Resolution]:
    """First element whose direct text contains the hint: its id, else first class, else tag"""
    if not target_hint or len(target_hint.strip()) < 2:
        return None
    needle = target_hint.strip().lower()

    for m in _ELEMENT_TEXT.finditer(html):
        tag = m.group("tag").lower()
        if tag in _SKIP_TEXT_TAGS or needle not in m.group("text").lower():
            continue

        attrs = m.group("attrs")
        id_match = re.search(r"(?<![\w-])id\s*=\s*[\"']([^\"']+)[\"']", attrs, re.IGNORECASE)
        if id_match and _SIMPLE_NAME.match(id_match.group(1)):
            return f"#{id_match.group(1)}", tag

        class_match = re.search(r"(?<![\w-])class\s*=\s*[\"']([^\"']+)[\"']", attrs, re.IGNORECASE)
        if class_match:
            first_class = class_match.group(1).split()[0]
            if _SIMPLE_NAME.match(first_class):
                return f".{first_class}", tag

        return tag, tag

    return None


def normalize_action(action: Optional[str]) -> str:
    return re.sub(r"[\s-]+", "_", (action or "").strip().lower())


def try_action_fallback(action: Optional[str], html: str) -> Optional[Resolution]:
    for candidate in ACTION_DEFAULTS.get(normalize_action(action), []):
        if selector_exists(html, candidate):
            return candidate, tag_for_selector(html, candidate)
    return None


def elevate_tier(tier: Tier, action: Optional[str], message: Optional[str]) -> Tier:
    """simple -> medium when layout-sensitive vocabulary shows up; never lowers a tier"""
    if tier is not Tier.SIMPLE:
        return tier
    for text in (normalize_action(action), (message or "").lower()):
        if text and _LAYOUT_SENSITIVE_RE.search(text):
            logger.info(f"Strategy elevated: simple -> medium (layout-sensitive: {action})")
            return tier.escalate(Tier.MEDIUM)
    return tier


def extract_surrounding_html(html: str, selector: str) -> str:
    """Matched element through its balanced close tag, or the whole document"""
    if not html or not selector:
        return html
    return extract_element_html(html, selector) or html


def extract_surrounding_css(css: str, selector: str, matched_tag: Optional[str]) -> str:
    """
    Rules whose selector text contains the resolved selector, or the matched
    tag as a standalone token; the whole stylesheet when nothing matches.
    """
    if not css:
        return ""

    tag_re = None
    if matched_tag:
        tag_re = re.compile(r"(?<![\w.#-])" + re.escape(matched_tag) + r"(?![\w-])", re.IGNORECASE)

    relevant: List[str] = []
    for rule in extract_css_rules(css):
        if selector and selector in rule.selector:
            relevant.append(rule.full)
        elif tag_re and tag_re.search(rule.selector):
            relevant.append(rule.full)

    return "\n\n".join(relevant) if relevant else css


class ContextResolver:
    """Resolves an Intent against the current document"""

    def resolve(self, intent: Intent, document: DocumentState) -> ResolvedContext:
        html = document.html or ""
        css = document.css or ""
        strategy = intent.strategy

        resolved = try_selection(intent)
        resolved_by = "selection"
        if resolved:
            # A fragment merged at body would wipe unselected siblings
            strategy = strategy.escalate(Tier.FULL)
        else:
            for name, attempt in (
                ("direct", lambda: try_direct_selector(intent.target_hint, html)),
                ("synonym", lambda: try_visual_synonyms(intent.target_hint, html)),
                ("text-search", lambda: try_text_search(intent.target_hint, html)),
                ("action-fallback", lambda: try_action_fallback(intent.action, html)),
            ):
                resolved = attempt()
                if resolved:
                    resolved_by = name
                    break

        if not resolved:
            resolved = ("body", "body")
            resolved_by = "absolute-fallback"

        selector, matched_tag = resolved
        strategy = elevate_tier(strategy, intent.action, intent.normalized_message)

        context = ResolvedContext(
            selector=selector,
            matched_tag=matched_tag,
            surrounding_html=extract_surrounding_html(html, selector),
            surrounding_css=extract_surrounding_css(css, selector, matched_tag),
            strategy=strategy,
            resolved_by=resolved_by,
        )

        logger.info(
            f"Context: selector={selector}, resolvedBy={resolved_by}, strategy={strategy.value}",
            matched_tag=matched_tag,
        )
        return context
