"""
LLM Response Handler - text extraction and tolerant JSON parsing of LLM output
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Fields that carry code; a parse only counts if one of these was recovered
CODE_FIELDS = ("html", "css", "javascript", "htmlFragment", "cssFragment", "jsFragment")

# Fields the regex fallback tries to recover, in order
EXTRACTABLE_FIELDS = ("message", "html", "css", "javascript", "js",
                      "htmlFragment", "cssFragment", "jsFragment", "mergeMode")

_CODE_FENCE = re.compile(r"```(?:json|html)?\s*([\s\S]*?)\s*```")


class LLMResponseHandler:
    """
    Handle LLM responses: filter non-text parts and recover JSON payloads
    """

    # List of non-text component types to filter
    EXCLUDED_PARTS = [
        'thought_signature',
        'thought',
        'thinking',
        'redacted_thinking',
        'reasoning',
        'metadata',
    ]

    @staticmethod
    def filter_response(response: Union[str, List, Dict]) -> str:
        """
        Filter non-text parts from LLM response

        Args:
            response: LLM response (string, list of content parts, or dict)

        Returns:
            Filtered text response
        """
        if isinstance(response, str):
            return response

        if isinstance(response, dict):
            if response.get("type") in LLMResponseHandler.EXCLUDED_PARTS:
                return ""
            text = response.get("text")
            return text if isinstance(text, str) else ""

        if isinstance(response, list):
            parts = [LLMResponseHandler.filter_response(item) for item in response]
            return "".join(part for part in parts if part)

        return str(response)

    @staticmethod
    def handle_response(response: Any, log_warnings: bool = True) -> str:
        """
        Main entry point for turning raw provider content into text

        Args:
            response: Raw LLM content
            log_warnings: Whether to log warnings about filtered components

        Returns:
            Cleaned text response
        """
        if not response:
            return ""

        if log_warnings and isinstance(response, list):
            skipped = {
                item.get("type") for item in response
                if isinstance(item, dict) and item.get("type") in LLMResponseHandler.EXCLUDED_PARTS
            }
            if skipped:
                logger.warning(f"Detected non-text parts in LLM response: {sorted(skipped)}. These will be filtered out.")

        filtered_text = LLMResponseHandler.filter_response(response)

        if not filtered_text.strip():
            logger.warning("After filtering, response contains no text content")
            return ""

        return filtered_text.strip()

    @staticmethod
    def strip_code_fences(text: str) -> str:
        """Return the body of the first markdown code block, or the text unchanged"""
        text = text.strip()
        match = _CODE_FENCE.search(text)
        if match:
            return match.group(1).strip()
        return text

    @staticmethod
    def extract_json_candidate(text: str) -> str:
        """Trim anything outside the outermost braces"""
        if text.startswith("{"):
            return text
        first = text.find("{")
        last = text.rfind("}")
        if first != -1 and last > first:
            return text[first:last + 1]
        return text

    @staticmethod
    def _loads(text: str) -> Optional[Dict[str, Any]]:
        try:
            # strict=False tolerates raw newlines inside strings
            parsed = json.loads(text, strict=False)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None

    @staticmethod
    def _unescape(raw: str) -> str:
        try:
            return json.loads(f'"{raw}"', strict=False)
        except ValueError:
            return (raw.replace("\\n", "\n")
                       .replace("\\t", "\t")
                       .replace('\\"', '"')
                       .replace("\\\\", "\\"))

    @staticmethod
    def extract_field(text: str, field: str) -> Optional[str]:
        """
        Pull one string field out of almost-JSON.

        The value runs until a quote that is followed by a comma or closing
        brace, so unescaped quotes inside markup do not end it early.
        """
        pattern = re.compile(
            r'"' + re.escape(field) + r'"\s*:\s*"([\s\S]*?)(?<!\\)"\s*(?=[,}])'
        )
        match = pattern.search(text)
        if not match:
            return None
        return LLMResponseHandler._unescape(match.group(1))

    @staticmethod
    def parse_json_response(text: str) -> Optional[Dict[str, Any]]:
        """
        Parse a (possibly malformed) JSON response from the model.

        Tries, in order: the raw text, the text with markdown fences stripped,
        the text trimmed to its outermost braces, and finally field-by-field
        regex extraction.

        Returns:
            Parsed dict, or None when no code field could be recovered
        """
        if not text or not text.strip():
            return None

        parsed = LLMResponseHandler._loads(text.strip())
        if parsed is not None:
            return parsed

        cleaned = LLMResponseHandler.strip_code_fences(text)
        parsed = LLMResponseHandler._loads(cleaned)
        if parsed is not None:
            return parsed

        cleaned = LLMResponseHandler.extract_json_candidate(cleaned)
        parsed = LLMResponseHandler._loads(cleaned)
        if parsed is not None:
            return parsed

        logger.warning("JSON parse failed, falling back to field extraction")
        recovered = {}
        for field in EXTRACTABLE_FIELDS:
            value = LLMResponseHandler.extract_field(cleaned, field)
            if value is not None:
                recovered[field] = value

        if "javascript" not in recovered and "js" in recovered:
            recovered["javascript"] = recovered.pop("js")

        if any(recovered.get(field) for field in CODE_FIELDS):
            logger.info(f"Partial JSON extraction recovered fields: {sorted(recovered)}")
            return recovered

        return None

    @staticmethod
    def code_fields(parsed: Dict[str, Any]) -> Dict[str, Optional[str]]:
        """
        Full-document fields of a parsed response.

        Missing and null fields both map to None ('unchanged'); 'js' is
        accepted as an alias for 'javascript'.
        """
        javascript = parsed.get("javascript")
        if javascript is None:
            javascript = parsed.get("js")
        return {
            "html": parsed.get("html"),
            "css": parsed.get("css"),
            "javascript": javascript,
        }
