"""
Category Extraction

Asks Claude for the content categories that best define a brand.
Always returns exactly `count` categories: short replies are padded
and failures fall back to a generic list.
"""

import logging
from typing import List, Optional

from src.analyzer.client import ClaudeClient
from .parsing import extract_json, clean_string_list

logger = logging.getLogger(__name__)


CATEGORY_SYSTEM_PROMPT = (
    "You are a brand categorization expert. Always respond with valid JSON only, "
    "no explanations or markdown formatting."
)

CATEGORY_USER_PROMPT = """Analyze the brand domain {domain} and identify {count} content categories that best define the brand.

Domain information: {domain_info}

Respond ONLY with valid JSON in this exact format (no explanations, no markdown):

{{
  "categories": [{placeholders}]
}}"""

DEFAULT_CATEGORIES = [
    "Business Solutions",
    "Digital Services",
    "Technology Platform",
    "Professional Services",
]

PADDING_SUFFIXES = ["Solutions", "Services", "Platform", "Tools"]


def pad_categories(categories: List[str], domain: str, count: int) -> List[str]:
    """Trim to `count` and pad with "{domain} {suffix}" entries."""
    final = list(categories[:count])
    while len(final) < count:
        index = len(final)
        suffix = PADDING_SUFFIXES[index] if index < len(PADDING_SUFFIXES) else "Category"
        final.append(f"{domain} {suffix}")
    return final


def parse_categories(content: str) -> List[str]:
    """Read {"categories": [...]} (or a bare array) from a reply."""
    parsed = extract_json(content)
    if isinstance(parsed, dict):
        parsed = parsed.get("categories")
    return clean_string_list(parsed)


class CategoryExtractor:
    """Extracts brand categories for step 2."""

    def __init__(self, llm: Optional[ClaudeClient], count: int = 4):
        self.llm = llm
        self.count = count

    async def extract(self, domain: str, domain_info: str = "") -> List[str]:
        """
        Extract categories for a domain.

        Args:
            domain: Analysed domain
            domain_info: Overview text from the domain lookup

        Returns:
            Exactly `count` category names
        """
        if self.llm is None:
            logger.warning("No Claude client configured, using default categories")
            return pad_categories(DEFAULT_CATEGORIES, domain, self.count)

        placeholders = ", ".join(f'"Category {i + 1}"' for i in range(self.count))
        prompt = CATEGORY_USER_PROMPT.format(
            domain=domain,
            count=self.count,
            domain_info=domain_info or f"{domain} is a business website.",
            placeholders=placeholders,
        )

        response = await self.llm.analyze_with_retry(
            prompt,
            system=CATEGORY_SYSTEM_PROMPT,
            max_tokens=500,
            temperature=0.3,
        )

        if not response.success:
            logger.error(f"Category extraction failed for {domain}: {response.error}")
            return pad_categories(DEFAULT_CATEGORIES, domain, self.count)

        categories = parse_categories(response.content)
        if len(categories) < self.count:
            logger.warning(
                f"Only {len(categories)} categories extracted for {domain}, padding"
            )

        return pad_categories(categories, domain, self.count)
