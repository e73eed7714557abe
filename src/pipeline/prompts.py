"""
Search Prompt Generation

Per category, two Claude calls:
1. Long-tail keywords for the category (optionally location-specific)
2. Natural, user-like questions built from those keywords that
   should lead an assistant to mention brands without naming ours

Each call falls back to templated text built on the category name, so
every category always yields prompts.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.analyzer.client import ClaudeClient
from .parsing import extract_json, extract_quoted_strings, clean_string_list

logger = logging.getLogger(__name__)


# =============================================================================
# PROMPTS
# =============================================================================

KEYWORD_PROMPT = """Generate {count} long-tail keywords for {domain} in the {category} category. These should be specific search terms that users might use when looking for services like what {domain} offers.

Return ONLY a JSON array of {count} keyword strings.

Focus on:
- Specific, long-tail search terms
- User intent-based keywords
- Terms that would naturally lead to brand mentions
- Current, relevant search patterns"""

LOCAL_KEYWORD_PROMPT = """Generate {count} long-tail keywords for local {category} services in {location}. These should be specific search terms that users might use when looking for {category} services in {location}.

Return ONLY a JSON array of {count} keyword strings.

Focus on:
- Location-specific, long-tail search terms for {location}
- Local search intent ("near me", "in {location}", "best in {location}")
- Geographic modifiers and local search patterns
- Terms that would naturally lead to local business mentions"""

QUESTION_PROMPT = """You are helping a digital marketing researcher generate realistic, user-like questions that people typically ask AI assistants about {category} services.

Long-tail keywords for {domain} in {category}: {keywords}

Popular competitors include: {competitors}.

Generate {count} natural, conversational questions that users typically ask about these keywords. These questions should be framed so that responses would naturally mention {brand_name} but should NOT explicitly name it.

Guidelines:
- Do NOT mention {brand_name} in the questions
- Use the provided keywords as inspiration for question topics
- Use natural, conversational phrasing (e.g., "What are the best...", "Which platforms...", "How do I choose...")
- Cover themes like comparisons, alternatives, recommendations, trending tools, and value-for-money
- Create questions that lead naturally to mentioning brands in answers

Format: Output only a JSON array of {count} strings."""

LOCAL_QUESTION_PROMPT = """You are helping a digital marketing researcher generate realistic, user-like questions that people typically ask AI assistants about {category} services in {location}.

Long-tail keywords for local {category} services in {location}: {keywords}

Popular competitors include: {competitors}.

Generate {count} natural, conversational questions that users typically ask about local {category} services. These questions should be framed so that responses would naturally mention {brand_name} but should NOT explicitly name it.

Guidelines:
- Do NOT mention {brand_name} in the questions
- Focus on local search intent and geo-specific needs
- Use phrases like "in {location}", "near {location}", "best {location} {category}"
- Include "near me" and local comparison patterns
- Create questions that lead naturally to mentioning local businesses in answers

Format: Output only a JSON array of {count} strings."""

PLACEHOLDER_COMPETITORS = [f"competitor{i}" for i in range(1, 6)]


@dataclass
class CategoryPrompts:
    """Keywords and prompts generated for one category."""
    category: str
    keywords: List[str] = field(default_factory=list)
    prompts: List[str] = field(default_factory=list)


def fallback_keywords(category: str) -> List[str]:
    return [
        f"{category} solutions",
        f"best {category} services",
        f"{category} comparison",
        f"{category} alternatives",
        f"{category} reviews",
    ]


def fallback_prompts(category: str, count: int = 5) -> List[str]:
    templates = [
        f"What are the best {category} services available?",
        f"How do I choose between different {category} providers?",
        f"Which companies offer the most reliable {category}?",
        f"What should I look for in a {category} service?",
        f"Are there any affordable {category} options?",
    ]
    return templates[:count]


def parse_string_array(content: str, limit: int) -> List[str]:
    """Read a JSON array of strings, or quoted strings when it does not parse."""
    parsed = extract_json(content)
    if isinstance(parsed, dict):
        # {"prompts": [...]} / {"keywords": [...]}
        parsed = next((v for v in parsed.values() if isinstance(v, list)), None)
    if isinstance(parsed, list):
        parsed = [item.get("query") if isinstance(item, dict) else item for item in parsed]
        values = clean_string_list(parsed, limit=limit)
        if values:
            return values
    return clean_string_list(extract_quoted_strings(content, min_length=3), limit=limit)


class PromptGenerator:
    """Generates search prompts for step 4."""

    def __init__(
        self,
        llm: Optional[ClaudeClient],
        prompts_per_category: int = 5,
        keywords_per_category: int = 10,
    ):
        self.llm = llm
        self.prompts_per_category = prompts_per_category
        self.keywords_per_category = keywords_per_category

    async def generate_keywords(
        self,
        category: str,
        domain: str,
        location: Optional[str] = None,
    ) -> List[str]:
        if self.llm is None:
            return fallback_keywords(category)

        template = LOCAL_KEYWORD_PROMPT if location else KEYWORD_PROMPT
        prompt = template.format(
            count=self.keywords_per_category,
            domain=domain,
            category=category,
            location=location,
        )
        response = await self.llm.analyze_with_retry(prompt, max_tokens=300, temperature=0.1)

        keywords = parse_string_array(response.content, self.keywords_per_category) if response.success else []
        if not keywords:
            logger.warning(f"Keyword generation failed for '{category}', using templates")
            return fallback_keywords(category)
        return keywords

    async def generate_for_category(
        self,
        category: str,
        domain: str,
        brand_name: str,
        competitors: Optional[List[str]] = None,
        location: Optional[str] = None,
    ) -> CategoryPrompts:
        """
        Generate keywords and prompts for one category.

        Args:
            category: Category name
            domain: Brand domain
            brand_name: Brand that must not appear in the prompts
            competitors: Known competitors used as context
            location: Set for local brands

        Returns:
            CategoryPrompts with at most `prompts_per_category` prompts
        """
        keywords = await self.generate_keywords(category, domain, location)

        if self.llm is None:
            return CategoryPrompts(
                category=category,
                keywords=keywords,
                prompts=fallback_prompts(category, self.prompts_per_category),
            )

        template = LOCAL_QUESTION_PROMPT if location else QUESTION_PROMPT
        prompt = template.format(
            category=category,
            domain=domain,
            brand_name=brand_name,
            location=location,
            keywords=", ".join(keywords),
            competitors=", ".join(competitors or PLACEHOLDER_COMPETITORS),
            count=self.prompts_per_category,
        )
        response = await self.llm.analyze_with_retry(prompt, max_tokens=500, temperature=0.7)

        prompts = parse_string_array(response.content, self.prompts_per_category) if response.success else []
        if not prompts:
            logger.warning(f"Prompt generation failed for '{category}', using templates")
            prompts = fallback_prompts(category, self.prompts_per_category)

        logger.info(f"Generated {len(prompts)} prompts for category '{category}'")
        return CategoryPrompts(category=category, keywords=keywords, prompts=prompts)

    async def generate(
        self,
        categories: List[str],
        domain: str,
        brand_name: str,
        competitors: Optional[List[str]] = None,
        location: Optional[str] = None,
    ) -> Dict[str, CategoryPrompts]:
        """Generate prompts for every category, in category order."""
        results = {}
        for category in categories:
            results[category] = await self.generate_for_category(
                category, domain, brand_name, competitors, location
            )
        return results
