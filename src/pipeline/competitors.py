"""
Competitor Extraction

Two Claude calls:
1. A short brand description used as context
2. Five direct competitors as a JSON array of exact company names

Replies are parsed leniently (bare array, nested "competitors" key,
quoted strings) and the result is capped at `limit`.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from src.analyzer.client import ClaudeClient
from .parsing import extract_json, extract_quoted_strings, clean_string_list

logger = logging.getLogger(__name__)


# =============================================================================
# PROMPTS
# =============================================================================

DESCRIPTION_PROMPT = """Analyze this brand and provide a brief overview of what they do:

Brand: {brand_name}
Domain: {domain}

Provide a concise description of their business, products/services, and target market. Focus on what would help identify competitors.

Respond with only the description, no additional formatting."""

COMPETITOR_SYSTEM_PROMPT = (
    "You are a helpful assistant that returns only valid JSON arrays when requested. "
    "Do not include any explanations, formatting, or additional text outside of the "
    "requested JSON structure."
)

COMPETITOR_PROMPT = """Variables to Extract:
- Brand Name: {brand_name}
- Domain: {domain}
- Brand Context: {brand_context}
- Target Company Size: find out
- Primary ICP Segment: find out
- Business Model Type: find out (e.g., SaaS, consulting, services, hybrid)

Task:

Identify {limit} real, direct competitors for the given brand, filtered by ICP company size, ICP alignment, and business model type.

Final Output:

Respond with only a valid JSON array of the final {limit} competitor brand names, using exact company names as they appear online:

[{placeholders}]"""

FALLBACK_COMPETITORS = [
    "Competitor A",
    "Competitor B",
    "Competitor C",
    "Competitor D",
    "Competitor E",
]


@dataclass
class CompetitorResult:
    """Competitors plus the description they were derived from."""
    competitors: List[str] = field(default_factory=list)
    brand_description: str = ""
    used_fallback: bool = False


def fallback_description(brand_name: str, domain: str) -> str:
    return f"{brand_name} is a business operating at {domain}"


def parse_competitors(content: str, limit: int = 5) -> List[str]:
    """
    Read competitor names from a reply.

    Accepts ["A", "B"], [{"competitors": [...]}] and {"competitors": [...]};
    anything else falls back to quoted strings in the raw text.
    """
    parsed: Any = extract_json(content)
    names: Any = None

    if isinstance(parsed, list):
        if all(isinstance(item, str) for item in parsed):
            names = parsed
        elif parsed and isinstance(parsed[0], dict) and isinstance(parsed[0].get("competitors"), list):
            names = parsed[0]["competitors"]
    elif isinstance(parsed, dict) and isinstance(parsed.get("competitors"), list):
        names = parsed["competitors"]

    if names is None:
        logger.warning("Competitor reply was not valid JSON, extracting quoted names")
        names = extract_quoted_strings(content)

    return clean_string_list(names, limit=limit)


class CompetitorExtractor:
    """Extracts direct competitors for step 3."""

    def __init__(self, llm: Optional[ClaudeClient], limit: int = 5):
        self.llm = llm
        self.limit = limit

    async def describe_brand(self, brand_name: str, domain: str) -> str:
        """Short description used as competitor-search context."""
        if self.llm is None:
            return fallback_description(brand_name, domain)

        response = await self.llm.analyze_with_retry(
            DESCRIPTION_PROMPT.format(brand_name=brand_name, domain=domain),
            max_tokens=400,
        )
        if not response.success or not response.content.strip():
            logger.warning(f"Brand description failed for {domain}: {response.error}")
            return fallback_description(brand_name, domain)

        return response.content.strip()

    async def extract(
        self,
        brand_name: str,
        domain: str,
        brand_description: Optional[str] = None,
    ) -> CompetitorResult:
        """
        Extract up to `limit` competitors.

        Args:
            brand_name: Brand being analysed
            domain: Brand domain
            brand_description: Known description; generated when omitted

        Returns:
            CompetitorResult, never empty
        """
        description = brand_description or await self.describe_brand(brand_name, domain)

        if self.llm is None:
            logger.warning("No Claude client configured, using placeholder competitors")
            return CompetitorResult(
                competitors=FALLBACK_COMPETITORS[:self.limit],
                brand_description=description,
                used_fallback=True,
            )

        placeholders = ", ".join(
            f'"Exact Company Name {i + 1}"' for i in range(self.limit)
        )
        prompt = COMPETITOR_PROMPT.format(
            brand_name=brand_name,
            domain=domain,
            brand_context=description,
            limit=self.limit,
            placeholders=placeholders,
        )

        response = await self.llm.analyze_with_retry(
            prompt,
            system=COMPETITOR_SYSTEM_PROMPT,
            max_tokens=600,
        )

        competitors = parse_competitors(response.content, self.limit) if response.success else []

        if not competitors:
            logger.warning(f"No competitors found for {brand_name}, using placeholders")
            return CompetitorResult(
                competitors=FALLBACK_COMPETITORS[:self.limit],
                brand_description=description,
                used_fallback=True,
            )

        logger.info(f"Extracted {len(competitors)} competitors for {brand_name}: {competitors}")
        return CompetitorResult(competitors=competitors, brand_description=description)
