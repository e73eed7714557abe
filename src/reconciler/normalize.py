"""
Field Normalization

Pulls share-of-voice numbers, prompt text and response text out of
analysis documents whose field names were never consistent. Sessions
written by the current pipeline carry typed response content and take
the fast path; everything else goes through the layered fallbacks.
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


PROMPT_TEXT_FIELDS = (
    "promptText", "text", "question", "prompt", "content", "query", "description", "title",
)

RESPONSE_TEXT_FIELDS = (
    "responseText", "aiResponseText", "response", "content", "message", "text", "data",
)

MIN_PROMPT_LENGTH = 10
LONG_RESPONSE_LENGTH = 1000
EMERGENCY_RESPONSE_LENGTH = 500
# A legacy candidate must be this much longer than the prompt it answers
RESPONSE_LENGTH_MARGIN = 20

_OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


# =============================================================================
# SHARE OF VOICE
# =============================================================================

def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def coerce_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings; None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(float(value))
    if isinstance(value, str):
        try:
            return _finite(float(value.strip()))
        except ValueError:
            return None
    return None


def _parse_percentage(value: Any) -> Optional[float]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text.endswith("%"):
        return None
    return coerce_number(text[:-1])


def normalize_share(
    value: Any,
    mentions: Optional[Any] = None,
    total_mentions: Optional[Any] = None,
) -> float:
    """
    Normalize one share-of-voice value.

    Tries, in order: numeric coercion, "42%" parsing, then
    mentions / total * 100. Falls back to 0.

    Returns:
        Non-negative percentage rounded to 2 decimals
    """
    share = coerce_number(value)
    if share is None:
        share = _parse_percentage(value)
    if share is None:
        count = coerce_number(mentions)
        total = coerce_number(total_mentions)
        if count is not None and total:
            share = count / total * 100
    if share is None:
        share = 0.0
    return round(max(share, 0.0), 2)


def build_share_rows(
    share_of_voice: Optional[Dict[str, Any]],
    mention_counts: Optional[Dict[str, Any]],
    total_mentions: Any,
    brand_name: Optional[str] = None,
) -> list:
    """
    One row per tracked brand, sorted by share descending.

    Brands that only appear in mention_counts still get a row.
    """
    share_of_voice = share_of_voice or {}
    mention_counts = mention_counts or {}

    total = coerce_number(total_mentions)
    if not total:
        total = sum(coerce_number(v) or 0 for v in mention_counts.values())

    names = list(share_of_voice)
    names.extend(name for name in mention_counts if name not in share_of_voice)

    brand_key = (brand_name or "").strip().lower()
    rows = []
    for name in names:
        mentions = mention_counts.get(name)
        rows.append({
            "name": name,
            "share": normalize_share(share_of_voice.get(name), mentions, total),
            "mentions": int(coerce_number(mentions) or 0),
            "isBrand": bool(brand_key) and name.strip().lower() == brand_key,
        })

    rows.sort(key=lambda row: row["share"], reverse=True)
    return rows


# =============================================================================
# PROMPT TEXT
# =============================================================================

def identifier_of(item: Any) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    for key in ("_id", "id", "promptId"):
        value = item.get(key)
        if isinstance(value, dict):
            value = value.get("_id") or value.get("id")
        if value:
            return str(value)
    return None


def looks_like_identifier(value: str) -> bool:
    return bool(_OBJECT_ID_PATTERN.match(value.strip()))


def is_usable_prompt_text(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    return len(text) >= MIN_PROMPT_LENGTH and not looks_like_identifier(text)


def prompt_placeholder(identifier: Optional[str], index: Optional[int] = None) -> str:
    if identifier:
        return f"Prompt text unavailable (ref ...{identifier[-6:]})"
    if index is not None:
        return f"Prompt text unavailable (#{index + 1})"
    return "Prompt text unavailable"


def extract_prompt_text(prompt: Any, index: Optional[int] = None) -> str:
    """
    First usable text across the known prompt fields.

    Never returns None: prompts without usable text get a placeholder
    naming the end of their identifier.
    """
    if isinstance(prompt, str):
        return prompt.strip() if is_usable_prompt_text(prompt) else prompt_placeholder(None, index)

    if isinstance(prompt, dict):
        for field in PROMPT_TEXT_FIELDS:
            value = prompt.get(field)
            if is_usable_prompt_text(value):
                return value.strip()

    return prompt_placeholder(identifier_of(prompt), index)


# =============================================================================
# RESPONSE TEXT
# =============================================================================

def typed_response_text(source: Any) -> Optional[str]:
    """Value of {"kind": "text", "value": ...} content, if present."""
    if not isinstance(source, dict):
        return None
    for container in (source, source.get("aiResponse")):
        if not isinstance(container, dict):
            continue
        content = container.get("content")
        if isinstance(content, dict) and content.get("kind") == "text":
            value = content.get("value")
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _is_flagged_response(container: Dict[str, Any]) -> bool:
    validation = container.get("_dataValidation")
    if isinstance(validation, dict) and validation.get("isValidResponse") is True:
        return True
    return container.get("isValidResponse") is True


def accepts_as_response(candidate: str, prompt_text: str, flagged: bool = False) -> bool:
    """
    Decide whether a legacy field holds the response rather than the prompt.

    Accepted when flagged upstream, when very long, or when it differs
    from the prompt and is longer than it by RESPONSE_LENGTH_MARGIN.
    """
    text = candidate.strip()
    if not text:
        return False
    if flagged or len(text) > LONG_RESPONSE_LENGTH:
        return True
    prompt = (prompt_text or "").strip()
    return text != prompt and len(text) >= len(prompt) + RESPONSE_LENGTH_MARGIN


def _containers(source: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    yield source
    nested = source.get("aiResponse")
    if isinstance(nested, dict):
        yield nested


def response_placeholder(source: Any) -> str:
    fields = sorted(source) if isinstance(source, dict) else []
    return f"Response content could not be extracted (fields: {', '.join(fields) or 'none'})"


def extract_response_text(source: Any, prompt_text: str = "") -> str:
    """
    Response text of a prompt or response document.

    Typed content is trusted. Legacy documents are searched field by
    field with the prompt/response disambiguation, then any long string
    field is taken, then a diagnostic placeholder is returned.
    """
    typed = typed_response_text(source)
    if typed is not None:
        return typed

    if isinstance(source, str):
        return source.strip() if source.strip() else response_placeholder(None)
    if not isinstance(source, dict):
        return response_placeholder(None)

    for container in _containers(source):
        flagged = _is_flagged_response(container)
        for field in RESPONSE_TEXT_FIELDS:
            value = container.get(field)
            if isinstance(value, str) and accepts_as_response(value, prompt_text, flagged):
                return value.strip()

    prompt = (prompt_text or "").strip()
    for container in _containers(source):
        for key, value in container.items():
            if (
                isinstance(value, str)
                and len(value.strip()) > EMERGENCY_RESPONSE_LENGTH
                and value.strip() != prompt
            ):
                logger.warning(f"Using emergency response fallback from field '{key}'")
                return value.strip()

    logger.warning(f"No response text found for prompt '{prompt[:50]}'")
    return response_placeholder(source)
