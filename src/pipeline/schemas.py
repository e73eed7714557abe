"""
Step Payload Schemas

Pydantic models for everything the gateway writes onto an AnalysisSession.
Payloads are validated here, at write time, and stored in their camelCase
wire form so clients see the same keys they send.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _clean_names(values: Any) -> List[str]:
    """Trim names and drop empties and case-insensitive duplicates."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]

    cleaned = []
    seen = set()
    for value in values:
        if isinstance(value, dict):
            value = value.get("name") or value.get("categoryName") or ""
        value = str(value).strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            cleaned.append(value)
    return cleaned


# =============================================================================
# TYPED RESPONSE CONTENT
# =============================================================================

class MalformedResponseError(ValueError):
    """An AI response that must not be persisted."""
    pass


class ResponseContent(WireModel):
    """The only shape an AI response is stored in."""
    kind: Literal["text"] = "text"
    value: str = Field(..., min_length=1)


def build_response_content(prompt_text: str, raw_text: Optional[str]) -> ResponseContent:
    """
    Validate a provider reply before it is written.

    Raises:
        MalformedResponseError: empty reply, or a reply that only repeats the prompt
    """
    value = (raw_text or "").strip()
    if not value:
        raise MalformedResponseError("AI response is empty")
    if value.casefold() == (prompt_text or "").strip().casefold():
        raise MalformedResponseError("AI response repeats the prompt text")
    return ResponseContent(value=value)


# =============================================================================
# STEP PAYLOADS
# =============================================================================

class Step1Data(WireModel):
    domain: str
    brand_name: str
    description: str = ""
    is_local_brand: bool = False
    location: Optional[str] = None
    completed: bool = True


class Step2Data(WireModel):
    categories: List[str] = Field(default_factory=list)
    completed: bool = True

    @field_validator("categories", mode="before")
    @classmethod
    def _clean(cls, value):
        return _clean_names(value)


class Step3Data(WireModel):
    competitors: List[str] = Field(default_factory=list)
    completed: bool = True

    @field_validator("competitors", mode="before")
    @classmethod
    def _clean(cls, value):
        return _clean_names(value)


class PromptEntry(WireModel):
    prompt_text: str = Field(..., min_length=1)
    category_name: Optional[str] = None


def flatten_prompt_input(raw: Any) -> List[Dict[str, Any]]:
    """
    Accept the prompt shapes clients send and flatten them.

    Supported items: plain strings, {"promptText": ...}, {"text": ...},
    and grouped {"categoryName": ..., "prompts": [...]}.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raw = [raw]

    flat = []
    for item in raw:
        if isinstance(item, str):
            flat.append({"promptText": item})
        elif isinstance(item, dict) and isinstance(item.get("prompts"), list):
            for nested in item["prompts"]:
                for entry in flatten_prompt_input([nested]):
                    entry["categoryName"] = entry.get("categoryName") or item.get("categoryName")
                    flat.append(entry)
        elif isinstance(item, dict):
            text = item.get("promptText") or item.get("prompt_text") or item.get("text") or ""
            flat.append({"promptText": text, "categoryName": item.get("categoryName")})

    return [entry for entry in flat if str(entry.get("promptText") or "").strip()]


class Step4Data(WireModel):
    prompts: List[PromptEntry] = Field(default_factory=list)
    completed: bool = True

    @field_validator("prompts", mode="before")
    @classmethod
    def _flatten(cls, value):
        return flatten_prompt_input(value)


class MentionRecord(WireModel):
    company_name: str
    prompt_text: str = ""
    response_text: str = ""
    category_name: Optional[str] = None
    occurrences: int = 1
    confidence: float = 1.0
    created_at: Optional[datetime] = None


class Step5Data(WireModel):
    mentions: List[MentionRecord] = Field(default_factory=list)
    total_mentions: int = 0
    completed: bool = True
    completed_at: Optional[datetime] = None


class ShareOfVoiceResult(WireModel):
    share_of_voice: Dict[str, float] = Field(default_factory=dict)
    mention_counts: Dict[str, int] = Field(default_factory=dict)
    total_mentions: int = 0
    brand_share: float = 0.0
    ai_visibility_score: float = 0.0
    competitors: List[str] = Field(default_factory=list)


class Step6Data(WireModel):
    share_of_voice: ShareOfVoiceResult = Field(default_factory=ShareOfVoiceResult)
    completed: bool = True
    completed_at: Optional[datetime] = None


class CategorySummary(WireModel):
    name: str
    prompts: List[str] = Field(default_factory=list)


class AnalysisResults(WireModel):
    brand_id: Optional[str] = None
    session_id: Optional[str] = None
    categories: List[CategorySummary] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)
    prompts: List[Dict[str, Any]] = Field(default_factory=list)
    share_of_voice: Dict[str, float] = Field(default_factory=dict)
    mention_counts: Dict[str, int] = Field(default_factory=dict)
    total_mentions: int = 0
    brand_share: float = 0.0
    ai_visibility_score: float = 0.0
    analysis_steps: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("categories", mode="before")
    @classmethod
    def _categories(cls, value):
        if not value:
            return []
        return [{"name": item} if isinstance(item, str) else item for item in value]
