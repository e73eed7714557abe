"""
LLM Output Parsing

Pulls JSON out of free-form model replies:
1. Fenced ```json blocks
2. The first bare JSON array/object in the text
3. Quoted-string extraction as a last resort

Callers decide what a usable shape is; every helper here returns None
(or an empty list) instead of raising.
"""

import json
import logging
import re
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_QUOTED_PATTERN = re.compile(r'"([^"\\]*(?:\\.[^"\\]*)*)"')


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the text itself."""
    if not text:
        return ""
    match = _FENCE_PATTERN.search(text)
    return match.group(1).strip() if match else text.strip()


def extract_json(text: str) -> Optional[Any]:
    """
    Parse the first JSON document found in a model reply.

    Returns:
        Parsed list/dict, or None when nothing parses
    """
    if not text:
        return None

    candidates = [strip_code_fences(text), text.strip()]

    # Bare array or object somewhere in the prose
    for opener, closer in (("[", "]"), ("{", "}")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue

    logger.debug(f"No valid JSON found in reply ({len(text)} chars)")
    return None


def extract_quoted_strings(text: str, min_length: int = 2) -> List[str]:
    """
    Collect double-quoted strings from malformed JSON.

    Used when a reply looks like JSON but does not parse, e.g. a
    truncated array.
    """
    if not text:
        return []

    values = []
    for raw in _QUOTED_PATTERN.findall(text):
        value = raw.strip()
        if len(value) >= min_length:
            values.append(value)
    return values


def clean_string_list(values: Any, limit: Optional[int] = None) -> List[str]:
    """Trim, drop empties and case-insensitive duplicates, then cap."""
    if not isinstance(values, list):
        return []

    cleaned = []
    seen = set()
    for value in values:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        cleaned.append(value)

    return cleaned[:limit] if limit is not None else cleaned
