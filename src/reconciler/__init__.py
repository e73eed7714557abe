"""
Result Reconciler

Normalizes an analysis document into a consistent view-model:
- Share-of-voice values from numbers, numeric strings or "42%" strings
- Prompt and response text from typed content or legacy field names
- Prompts grouped under their categories
"""

from .normalize import (
    normalize_share,
    build_share_rows,
    extract_prompt_text,
    extract_response_text,
    accepts_as_response,
    PROMPT_TEXT_FIELDS,
    RESPONSE_TEXT_FIELDS,
)
from .view_model import (
    build_view_model,
    build_response_map,
    distribute_prompts,
    NO_RESPONSE,
)

__all__ = [
    "normalize_share",
    "build_share_rows",
    "extract_prompt_text",
    "extract_response_text",
    "accepts_as_response",
    "PROMPT_TEXT_FIELDS",
    "RESPONSE_TEXT_FIELDS",
    "build_view_model",
    "build_response_map",
    "distribute_prompts",
    "NO_RESPONSE",
]
