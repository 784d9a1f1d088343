"""
Intent Classifier - turns a free-text edit request into a structured Intent.

A cheap keyword heuristic and an LLM classification each propose a tier;
the cheaper of the two wins. Thai UI vocabulary is normalised to English
first so the keyword sets work for both languages.
"""
import re
from typing import Dict, Optional, Tuple

from config import settings
from logging_config import logger
from models import Intent, Tier, TokenUsage
from services.llm_client import LLMClient, get_llm_client
from services.llm_response_handler import LLMResponseHandler
from services.mutation_prompts import build_file_intent_prompt, build_intent_prompt

SELECTION_MARKER = "=== SELECTED AREAS ==="

THAI_NORMALIZATION = {
    # UI elements
    "ปุ่ม": "button", "ข้อความ": "text", "รูปภาพ": "image", "รูป": "image",
    "ส่วนหัว": "header", "ส่วนท้าย": "footer", "แถบเมนู": "navbar",
    "แถบข้าง": "sidebar", "การ์ด": "card", "แบบฟอร์ม": "form",
    "ช่องกรอก": "input", "รายการเลือก": "dropdown", "หน้าต่างเด้ง": "modal",
    "รายการ": "list", "ไอคอน": "icon", "ลิงก์": "link",
    "หน้าเว็บ": "page", "เมนู": "menu", "แท็บ": "tab", "พื้นที่": "area",

    # Actions
    "เปลี่ยน": "change", "แก้ไข": "edit", "เพิ่ม": "add", "ลบ": "remove",
    "สร้าง": "create", "ทำ": "make", "ใส่": "put", "ย้าย": "move",
    "ซ่อน": "hide", "แสดง": "show", "จัดวาง": "align", "จัดกลาง": "center",
    "ปรับ": "adjust", "ออกแบบ": "design", "ตกแต่ง": "decorate",

    # Properties
    "สี": "color", "ขนาด": "size", "ฟอนต์": "font", "ตัวหนังสือ": "font",
    "พื้นหลัง": "background", "เส้นขอบ": "border", "มุมมน": "rounded",
    "เงา": "shadow", "ระยะห่าง": "spacing", "ช่องว่าง": "gap",
    "กว้าง": "width", "สูง": "height", "ใหญ่": "big", "เล็ก": "small",
    "โปร่งใส": "transparent", "เบลอ": "blur", "ไล่สี": "gradient",

    # Colors
    "แดง": "red", "น้ำเงิน": "blue", "เขียว": "green", "เหลือง": "yellow",
    "ขาว": "white", "ดำ": "black", "ส้ม": "orange", "ม่วง": "purple",
    "ชมพู": "pink", "เทา": "gray",

    # Layout ("ตาราง" is read as grid, not table)
    "แถว": "row", "คอลัมน์": "column", "ตาราง": "grid",
    "ยืดหยุ่น": "flex", "ซ้อน": "stack", "เลื่อน": "scroll",
}

# Longest keys first so compound words are not split by their prefixes
_THAI_KEYS = sorted(THAI_NORMALIZATION, key=len, reverse=True)

LAYOUT_KEYWORDS = [
    "align", "resize", "grid", "flex", "flexbox", "layout", "arrange", "reorder",
    "responsive", "stack", "position", "row", "column", "center",
]

COMPLEX_KEYWORDS = [
    "redesign", "rebuild", "build a", "generate a", "add section", "new page",
    "overhaul", "create a section", "create a page", "make a section",
    "make a page", "design a",
]

SIMPLE_KEYWORDS = [
    "color", "colour", "recolor", "font-size", "size", "opacity", "shadow", "border",
    "radius", "background", "margin", "padding", "text", "bold", "italic",
    "underline", "font", "spacing", "gap", "rounded", "transparent", "gradient",
    "bigger", "smaller", "larger", "big", "small",
    "red", "blue", "green", "white", "black", "yellow", "purple", "pink",
    "orange", "gray", "grey",
]

IMAGE_EMBED_KEYWORDS = [
    "paste", "embed", "insert", "put this image", "add this image",
    "use this image", "place this", "set as background", "as background",
    "as banner", "as hero", "as logo", "as icon", "placeholder",
    "แปะ", "วาง", "ใส่รูป", "ใช้รูป", "วางรูป", "เป็นพื้นหลัง",
]

IMAGE_REFERENCE_KEYWORDS = [
    "like this", "look like", "based on", "reference", "design like",
    "copy this", "replicate", "match this", "same as", "follow this",
    "recreate", "clone", "mimic", "inspired by", "similar to",
    "from this image", "from the image", "ref",
    "ตามนี้", "แบบนี้", "ตามรูป", "ทำตาม", "เหมือน", "อ้างอิง", "ทำแบบ",
]

ALL_FILES = {"html": True, "css": True, "js": True}


def keyword_pattern(keywords) -> "re.Pattern[str]":
    # Word-bounded, tolerant of common inflections ("aligned", "rows", "colors")
    alternatives = "|".join(
        r"\s+".join(re.escape(word) for word in keyword.split())
        for keyword in sorted(keywords, key=len, reverse=True)
    )
    return re.compile(r"(?<![a-z])(?:" + alternatives + r")(?:s|es|d|ed|ing|er)?(?![a-z])")


_SIMPLE_RE = keyword_pattern(SIMPLE_KEYWORDS)
_COMPLEX_RE = keyword_pattern(COMPLEX_KEYWORDS)
_LAYOUT_RE = keyword_pattern(LAYOUT_KEYWORDS)


def has_layout_vocabulary(text: Optional[str]) -> bool:
    return bool(text) and bool(_LAYOUT_RE.search(text.lower()))


def normalize_message(message: str) -> str:
    """Map known Thai vocabulary to space-separated English words"""
    normalized = message
    changed = False
    for thai in _THAI_KEYS:
        if thai in normalized:
            normalized = normalized.replace(thai, f" {THAI_NORMALIZATION[thai]} ")
            changed = True

    if changed:
        normalized = re.sub(r"[ \t]{2,}", " ", normalized).strip()
    return normalized


def strip_selection_context(message: str) -> Tuple[str, bool, Optional[str]]:
    """
    Split off the selected-areas block the UI appends to a message.

    Returns:
        (natural-language part, has_selection, selection context verbatim)
    """
    if SELECTION_MARKER not in message:
        return message, False, None

    text, selection = message.split(SELECTION_MARKER, 1)
    return text.strip(), True, selection.strip()


def local_tier(normalized_message: str) -> Tier:
    """
    Keyword heuristic for the cost tier.

    A complex phrase wins outright. A simple keyword gives SIMPLE unless layout
    vocabulary is also present; layout vocabulary alone gives MEDIUM.
    """
    text = (normalized_message or "").lower()
    has_layout = bool(_LAYOUT_RE.search(text))

    if _COMPLEX_RE.search(text):
        return Tier.FULL
    if _SIMPLE_RE.search(text) and not has_layout:
        return Tier.SIMPLE
    # Layout vocabulary and "no match at all" both land on medium
    return Tier.MEDIUM


def reconcile_tiers(local: Tier, llm_tier) -> Tier:
    """The cheaper tier wins; an unknown LLM tier counts as MEDIUM"""
    llm = Tier.parse(llm_tier, Tier.MEDIUM)
    return local if local.rank <= llm.rank else llm


def detect_image_mode(message: Optional[str]) -> str:
    """'embed' when the user wants their image placed in the page, else 'reference'"""
    text = (message or "").lower()
    if any(keyword in text for keyword in IMAGE_EMBED_KEYWORDS):
        return "embed"
    if any(keyword in text for keyword in IMAGE_REFERENCE_KEYWORDS):
        return "reference"
    # An image with no clear instruction shows what the page should look like
    return "reference"


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


class IntentClassifier:
    """Classifies edit requests into Intents"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = get_llm_client()
        return self._llm_client

    async def classify(self, message: str, has_image: bool = False) -> Intent:
        text, has_selection, selection_context = strip_selection_context(message or "")
        normalized = normalize_message(text)
        tier = local_tier(normalized)

        usage = TokenUsage()
        parsed = None
        try:
            response = await self.llm_client.complete(
                system_prompt=None,
                messages=[{
                    "role": "user",
                    "content": build_intent_prompt(normalized, has_selection, selection_context),
                }],
                model=settings.INTENT_MODEL,
                max_tokens=settings.INTENT_MAX_TOKENS,
                temperature=0,
            )
            usage.add(response.usage)
            parsed = LLMResponseHandler.parse_json_response(response.text)
        except Exception as e:
            logger.warning(f"Intent classification call failed, using local analysis: {e}")

        if not parsed:
            logger.info(f"Intent from local analysis: strategy={tier.value}", has_selection=has_selection)
            return Intent(
                action="modify",
                target_hint="body",
                scope="local" if has_selection else "global",
                strategy=Tier.FULL if has_image else tier,
                has_selection=has_selection,
                selection_context=selection_context,
                normalized_message=normalized,
                has_image=has_image,
                usage=usage,
            )

        final_tier = reconcile_tiers(tier, parsed.get("complexity"))
        intent = Intent(
            action=_optional_str(parsed.get("action")) or "modify",
            target_hint=_optional_str(parsed.get("targetHint")) or "body",
            scope=_optional_str(parsed.get("scope")) or "global",
            property=_optional_str(parsed.get("property")),
            value=_optional_str(parsed.get("value")),
            strategy=Tier.FULL if has_image else final_tier,
            has_selection=has_selection,
            selection_context=selection_context,
            normalized_message=normalized,
            has_image=has_image,
            usage=usage,
        )

        logger.info(
            f"Intent: action={intent.action}, target={intent.target_hint}, strategy={intent.strategy.value}",
            local_strategy=tier.value,
            llm_strategy=parsed.get("complexity"),
            has_image=has_image,
            has_selection=has_selection,
        )
        return intent

    async def detect_required_files(self, message: str) -> Dict[str, bool]:
        """Ask the intent model which of html/css/js a request needs; all True on any failure"""
        try:
            response = await self.llm_client.complete(
                system_prompt=None,
                messages=[{"role": "user", "content": build_file_intent_prompt(message or "")}],
                model=settings.INTENT_MODEL,
                max_tokens=settings.FILE_INTENT_MAX_TOKENS,
                temperature=0,
            )
        except Exception as e:
            logger.warning(f"File intent detection failed: {e}")
            return dict(ALL_FILES)

        parsed = LLMResponseHandler.parse_json_response(response.text)
        files = parsed.get("intent") if parsed else None
        if not isinstance(files, dict):
            logger.warning("File intent response unusable, requesting all files")
            return dict(ALL_FILES)

        return {key: bool(files.get(key, True)) for key in ("html", "css", "js")}
