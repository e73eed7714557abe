"""
Analysis View-Model

Turns one analysis document (as returned by GET /{analysisId}) plus an
optional responses list into the shape the report and the UI render:

    {brand, shareOfVoice, categories, competitors, prompts, responses}
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .normalize import (
    RESPONSE_TEXT_FIELDS,
    accepts_as_response,
    build_share_rows,
    coerce_number,
    extract_prompt_text,
    extract_response_text,
    identifier_of,
    normalize_share,
)

NO_RESPONSE = "No response available"
UNCATEGORIZED = "Uncategorized"


def distribute_prompts(
    prompts: Sequence[Any],
    categories: Sequence[str],
) -> List[Tuple[str, List[Any]]]:
    """
    Split a flat prompt list across categories in order.

    Each category takes ceil(P / C) prompts; the last one takes whatever
    remains. Every prompt lands in exactly one category.
    """
    prompts = list(prompts)
    categories = list(categories) or [UNCATEGORIZED]

    per_category = math.ceil(len(prompts) / len(categories)) if prompts else 0

    buckets = []
    for index, category in enumerate(categories):
        start = index * per_category
        if index == len(categories) - 1:
            chunk = prompts[start:]
        else:
            chunk = prompts[start:start + per_category]
        buckets.append((category, chunk))
    return buckets


def build_response_map(responses: Optional[Sequence[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """Responses keyed by promptId._id (or a bare promptId)."""
    response_map = {}
    for response in responses or []:
        if not isinstance(response, dict):
            continue
        prompt_ref = response.get("promptId")
        if isinstance(prompt_ref, dict):
            prompt_ref = prompt_ref.get("_id") or prompt_ref.get("id")
        if prompt_ref:
            response_map.setdefault(str(prompt_ref), response)
    return response_map


def category_names(document: Dict[str, Any]) -> List[str]:
    """Categories from step2Data, else from analysisResults."""
    raw = (document.get("step2Data") or {}).get("categories")
    if not raw:
        raw = (document.get("analysisResults") or {}).get("categories")

    names = []
    for item in raw or []:
        if isinstance(item, dict):
            item = item.get("name") or item.get("categoryName")
        if isinstance(item, str) and item.strip():
            names.append(item.strip())
    return names


def competitor_names(document: Dict[str, Any]) -> List[str]:
    raw = (document.get("step3Data") or {}).get("competitors")
    if not raw:
        raw = (document.get("analysisResults") or {}).get("competitors")
    return [c.strip() for c in raw or [] if isinstance(c, str) and c.strip()]


def flat_prompts(document: Dict[str, Any]) -> List[Any]:
    """Prompt list from step4Data, else from analysisResults."""
    prompts = (document.get("step4Data") or {}).get("prompts")
    if not prompts:
        prompts = (document.get("analysisResults") or {}).get("prompts")
    return list(prompts or [])


def _carries_response(prompt: Any, prompt_text: str) -> bool:
    """Legacy prompts may hold their answer directly under a response field."""
    if not isinstance(prompt, dict):
        return False
    return any(
        isinstance(prompt.get(field), str) and accepts_as_response(prompt[field], prompt_text)
        for field in RESPONSE_TEXT_FIELDS
    )


def _prompt_entry(
    prompt: Any,
    index: int,
    category: str,
    response_map: Dict[str, Dict[str, Any]],
) -> Dict[str, Any]:
    prompt_id = identifier_of(prompt)
    prompt_text = extract_prompt_text(prompt, index)

    source = prompt.get("aiResponse") if isinstance(prompt, dict) else None
    if not source and prompt_id:
        source = response_map.get(prompt_id)
    if not source and _carries_response(prompt, prompt_text):
        source = prompt

    response_text = extract_response_text(source, prompt_text) if source else NO_RESPONSE

    return {
        "id": prompt_id,
        "promptText": prompt_text,
        "responseText": response_text,
        "categoryName": category,
    }


def build_categories(
    document: Dict[str, Any],
    response_map: Dict[str, Dict[str, Any]],
) -> List[Dict[str, Any]]:
    populated = document.get("populatedCategories") or []
    if populated:
        categories = []
        index = 0
        for category in populated:
            name = category.get("categoryName") or category.get("name") or UNCATEGORIZED
            entries = []
            for prompt in category.get("prompts") or []:
                entries.append(_prompt_entry(prompt, index, name, response_map))
                index += 1
            categories.append({"name": name, "prompts": entries})
        return categories

    categories = []
    index = 0
    for name, prompts in distribute_prompts(flat_prompts(document), category_names(document)):
        entries = []
        for prompt in prompts:
            entries.append(_prompt_entry(prompt, index, name, response_map))
            index += 1
        categories.append({"name": name, "prompts": entries})
    return categories


def build_view_model(
    document: Dict[str, Any],
    responses: Optional[Sequence[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Reconcile an analysis document into a render-ready view-model.

    Args:
        document: Analysis document (camelCase keys)
        responses: Optional responses list from GET /{analysisId}/responses

    Returns:
        Dict with brand, shareOfVoice, categories, competitors, prompts, responses
    """
    results = document.get("analysisResults") or {}
    step1 = document.get("step1Data") or {}
    brand_name = document.get("brandName") or step1.get("brandName") or document.get("domain") or ""

    rows = build_share_rows(
        results.get("shareOfVoice"),
        results.get("mentionCounts"),
        results.get("totalMentions"),
        brand_name,
    )
    brand_row = next((row for row in rows if row["isBrand"]), None)

    response_map = build_response_map(responses)
    categories = build_categories(document, response_map)
    prompts = [entry for category in categories for entry in category["prompts"]]

    if results.get("brandShare") is None and brand_row:
        brand_share = brand_row["share"]
    else:
        brand_share = normalize_share(results.get("brandShare"))

    brand = {
        "name": brand_name,
        "domain": document.get("domain") or step1.get("domain"),
        "description": document.get("brandInformation") or step1.get("description") or "",
        "brandShare": brand_share,
        "aiVisibilityScore": normalize_share(results.get("aiVisibilityScore")),
        "totalMentions": int(coerce_number(results.get("totalMentions")) or sum(row["mentions"] for row in rows)),
    }

    return {
        "brand": brand,
        "shareOfVoice": rows,
        "categories": categories,
        "competitors": competitor_names(document),
        "prompts": prompts,
        "responses": [
            {
                "promptId": entry["id"],
                "promptText": entry["promptText"],
                "responseText": entry["responseText"],
                "categoryName": entry["categoryName"],
            }
            for entry in prompts
            if entry["responseText"] != NO_RESPONSE
        ],
    }
