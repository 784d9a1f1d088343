"""
Regex-based structure matching for HTML and flat CSS.

This is an approximation of a DOM, not a parser: it locates the first element
matching a simple selector and balances open/close tags of one tag name.
Callers go through find_element / find_matching_close / splice_region (and the
small CSS helpers below) so the regex layer can be swapped for a real parser
without touching them.

Supported selectors: #id, .class, tag, tag.class, tag#id. Anything else is a
soft miss (None / -1), never an exception.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})

_TAG_NAME = r"[a-zA-Z][\w-]*"
_SIMPLE_SELECTOR = re.compile(
    r"^(?P<tag>[a-zA-Z][\w-]*)?(?:(?P<kind>[.#])(?P<name>[\w-]+))?$"
)
_ANY_OPEN_TAG = re.compile(r"<(" + _TAG_NAME + r")")


@dataclass
class SelectorPattern:
    tag_regex: "re.Pattern[str]"
    tag_name: Optional[str]  # None when the tag is captured from the match


@dataclass
class ElementMatch:
    """Location of a matched element; close_start is -1 when unbounded"""
    tag_name: str
    start: int
    open_end: int
    close_start: int = -1
    close_end: int = -1

    @property
    def bounded(self) -> bool:
        return self.close_start != -1


@dataclass
class CSSRule:
    selector: str
    body: str
    full: str
    start: int
    end: int


def class_attr_pattern(class_name: str) -> str:
    """Regex fragment matching a class attribute that holds class_name as a whole token"""
    return (
        r"(?<![\w-])class\s*=\s*[\"'](?:[^\"']*\s)?"
        + re.escape(class_name)
        + r"(?:\s[^\"']*)?[\"']"
    )


def id_attr_pattern(element_id: str) -> str:
    return r"(?<![\w-])id\s*=\s*[\"']" + re.escape(element_id) + r"[\"']"


def build_selector_pattern(selector: str) -> Optional[SelectorPattern]:
    """Compile a simple selector into an opening-tag regex, or None if unsupported"""
    if not selector:
        return None

    match = _SIMPLE_SELECTOR.match(selector.strip())
    if not match or not (match.group("tag") or match.group("kind")):
        return None

    tag = match.group("tag")
    kind = match.group("kind")
    name = match.group("name")

    tag_part = re.escape(tag) if tag else _TAG_NAME
    attr_part = ""
    if kind == ".":
        attr_part = r"[^>]*?" + class_attr_pattern(name)
    elif kind == "#":
        attr_part = r"[^>]*?" + id_attr_pattern(name)

    regex = re.compile(
        r"<(?P<tag>" + tag_part + r")(?=[\s/>])" + attr_part + r"[^>]*>",
        re.IGNORECASE,
    )
    return SelectorPattern(tag_regex=regex, tag_name=tag.lower() if tag else None)


def _matching_close_span(html: str, tag_name: str, start_index: int) -> Optional[Tuple[int, int]]:
    tag_name = tag_name.lower()
    if tag_name in VOID_ELEMENTS:
        return None

    token = re.compile(
        r"<(?P<close>/?)" + re.escape(tag_name) + r"(?=[\s/>])[^>]*>",
        re.IGNORECASE,
    )

    depth = 0
    for m in token.finditer(html, start_index):
        if m.group("close"):
            depth -= 1
            if depth == 0:
                return m.start(), m.end()
            if depth < 0:
                return None
        elif m.group(0).endswith("/>"):
            if depth == 0:
                # The element itself is self-closing
                return None
        else:
            if depth == 0 and m.start() != start_index:
                # start_index was not sitting on an opening tag of this name
                return None
            depth += 1

    return None


def find_matching_close(html: str, tag_name: Optional[str], start_index: int) -> int:
    """
    Find the closing tag that balances the opening tag at start_index.

    Every later opening tag of the same name increments the depth, every
    closing tag decrements it; the close that brings depth back to zero wins.

    Returns:
        Index of the closing tag, or -1 when the element never balances
    """
    if not tag_name:
        open_match = _ANY_OPEN_TAG.search(html, start_index)
        if not open_match:
            return -1
        tag_name = open_match.group(1)
        start_index = open_match.start()

    span = _matching_close_span(html, tag_name, start_index)
    return span[0] if span else -1


def find_element(html: str, selector: str, start: int = 0) -> Optional[ElementMatch]:
    """Locate the first element matching selector, with its close tag when balanced"""
    if not html:
        return None

    pattern = build_selector_pattern(selector)
    if pattern is None:
        return None

    m = pattern.tag_regex.search(html, start)
    if not m:
        return None

    tag_name = (pattern.tag_name or m.group("tag")).lower()
    element = ElementMatch(tag_name=tag_name, start=m.start(), open_end=m.end())

    if not m.group(0).endswith("/>"):
        span = _matching_close_span(html, tag_name, m.start())
        if span:
            element.close_start, element.close_end = span

    return element


def splice_region(html: str, start: int, end: int, replacement: str) -> str:
    """Replace html[start:end] with replacement, leaving everything else byte-identical"""
    if not 0 <= start <= end <= len(html):
        raise ValueError(f"Invalid splice region [{start}:{end}] for document of length {len(html)}")
    return html[:start] + replacement + html[end:]


def selector_exists(html: str, selector: str) -> bool:
    return find_element(html, selector) is not None


def tag_for_selector(html: str, selector: str) -> str:
    """Tag name of the element a selector points at ('div' when unknown)"""
    element = find_element(html, selector)
    if element:
        return element.tag_name

    match = _SIMPLE_SELECTOR.match(selector.strip()) if selector else None
    if match and match.group("tag"):
        return match.group("tag").lower()
    return "div"


def extract_element_html(html: str, selector: str) -> Optional[str]:
    """Outer HTML of the first matching element, or None if it is not bounded"""
    element = find_element(html, selector)
    if not element or not element.bounded:
        return None
    return html[element.start:element.close_end]


# ---------------------------------------------------------------------------
# Flat CSS rules
# ---------------------------------------------------------------------------

def normalize_selector(selector: str) -> str:
    return " ".join(selector.split())


def _comment_end(css: str, index: int) -> int:
    end = css.find("*/", index + 2)
    return len(css) if end == -1 else end + 2


def _css_block_end(css: str, open_index: int) -> Tuple[int, bool]:
    """Index of the brace closing the block at open_index, and whether it nests"""
    depth = 0
    nested = False
    i = open_index
    while i < len(css):
        if css.startswith("/*", i):
            i = _comment_end(css, i)
            continue
        ch = css[i]
        if ch == "{":
            depth += 1
            nested = nested or depth > 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i, nested
        i += 1
    return -1, nested


def extract_css_rules(css: str) -> List[CSSRule]:
    """
    Split CSS into top-level `selector { declarations }` rules.

    At-rules (@media, @font-face, @import ...) and any block with nested
    braces are opaque: neither they nor the rules inside them are returned.
    """
    rules: List[CSSRule] = []
    if not css:
        return rules

    segment_start = 0
    i = 0
    while i < len(css):
        if css.startswith("/*", i):
            # Comments before the selector are not part of the rule
            i = segment_start = _comment_end(css, i)
            continue

        ch = css[i]
        if ch in ";}":
            segment_start = i + 1
        elif ch == "{":
            close, nested = _css_block_end(css, i)
            if close == -1:
                break
            prelude = css[segment_start:i]
            selector = normalize_selector(prelude)
            if selector and not nested and not selector.startswith("@"):
                start = segment_start + len(prelude) - len(prelude.lstrip())
                rules.append(CSSRule(
                    selector=selector,
                    body=css[i + 1:close].strip(),
                    full=css[start:close + 1],
                    start=start,
                    end=close + 1,
                ))
            i = segment_start = close + 1
            continue
        i += 1

    return rules


def find_css_rules(css: str, selector: str) -> List[CSSRule]:
    """All rules whose selector text is exactly selector (whitespace-normalised)"""
    wanted = normalize_selector(selector)
    return [rule for rule in extract_css_rules(css) if rule.selector == wanted]
