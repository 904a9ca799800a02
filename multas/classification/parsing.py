"""Parsing of free-form model replies.

Models answer in loosely formatted text, so every parser here is lenient:
labels may use half- or full-width colons (or none), and English labels
are accepted alongside the Japanese ones.
"""

import re
from typing import List, Tuple

from .categories import is_valid_category

_CATEGORY_RE = re.compile(r"(?:カテゴリー?|category)[：:]?\s*(\d+)", re.IGNORECASE)
_REASON_RE = re.compile(r"(?:理由|reason)[：:]?\s*(.+)", re.IGNORECASE)
_ELEMENT_RE = re.compile(r"(?:要素|element\s*)\d+[：:]?\s*(.+)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(\d+)")


def parse_classification(content: str, default: int) -> Tuple[int, str]:
    """Extract ``(category, reason)`` from a classification reply.

    A missing or out-of-range category becomes ``default``; a missing
    reason becomes an empty string.
    """
    content = content or ""
    category = default
    match = _CATEGORY_RE.search(content)
    if match:
        value = int(match.group(1))
        if is_valid_category(value):
            category = value

    reason_match = _REASON_RE.search(content)
    reason = reason_match.group(1).strip() if reason_match else ""
    return category, reason


def parse_elements(content: str, limit: int = 5, min_length: int = 10) -> List[str]:
    """Element texts from a decomposition reply, in order.

    Elements of ``min_length`` characters or fewer are discarded, and at
    most ``limit`` are returned.
    """
    elements = []
    for match in _ELEMENT_RE.finditer(content or ""):
        text = match.group(1).strip()
        if len(text) > min_length:
            elements.append(text)
        if len(elements) >= limit:
            break
    return elements


def extract_first_number(content: str, default: int) -> int:
    """First integer in ``content`` if it is a valid category, else ``default``."""
    match = _NUMBER_RE.search(content or "")
    if not match:
        return default
    value = int(match.group(1))
    return value if is_valid_category(value) else default
