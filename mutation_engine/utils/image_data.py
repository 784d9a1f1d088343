"""
Helpers for user-attached images sent as data URLs.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict

_DATA_URL = re.compile(r"^data:(image/[a-zA-Z+.-]+);base64,(.+)$", re.DOTALL)

# Leading base64 characters of each format's magic bytes
_MAGIC_PREFIXES = (
    ("iVBOR", "image/png"),
    ("/9j/", "image/jpeg"),
    ("UklG", "image/webp"),
    ("R0lG", "image/gif"),
)


@dataclass
class ImageData:
    media_type: str
    data: str  # base64 payload, no whitespace


def parse_image_data_url(image: str) -> ImageData:
    """
    Split a data URL (or bare base64 string) into media type and payload.

    The declared media type is overridden by the payload's magic bytes, since
    browsers sometimes label pasted images incorrectly.
    """
    media_type = "image/jpeg"
    data = image or ""

    match = _DATA_URL.match(data.strip())
    if match:
        media_type, data = match.group(1), match.group(2)
    elif ";base64," in data:
        data = data.split(";base64,", 1)[1]

    data = re.sub(r"\s", "", data)
    for prefix, detected in _MAGIC_PREFIXES:
        if data.startswith(prefix):
            media_type = detected
            break

    return ImageData(media_type=media_type, data=data)


def build_image_block(image: str) -> Dict[str, Any]:
    """Anthropic-style base64 image content block for a data URL"""
    parsed = parse_image_data_url(image)
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": parsed.media_type,
            "data": parsed.data,
        },
    }
