"""
Mention Extraction

Finds which tracked companies (the analysed brand and its competitors)
an AI response names. Matching is case-insensitive on word boundaries,
so "Acme" matches "acme's tools" but not "Acmeville".
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

_pattern_cache: Dict[str, re.Pattern] = {}


@dataclass
class Mention:
    """One company named in one response."""
    company_name: str
    occurrences: int
    confidence: float = 1.0


def _pattern_for(name: str) -> re.Pattern:
    pattern = _pattern_cache.get(name)
    if pattern is None:
        pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)
        _pattern_cache[name] = pattern
    return pattern


def count_occurrences(text: str, name: str) -> int:
    if not text or not name or not name.strip():
        return 0
    return len(_pattern_for(name.strip()).findall(text))


def tracked_companies(brand_name: str, competitors: Optional[Iterable[str]]) -> List[str]:
    """Brand first, then competitors; case-insensitive duplicates removed."""
    companies = []
    seen = set()
    for name in [brand_name, *(competitors or [])]:
        name = (name or "").strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            companies.append(name)
    return companies


def extract_mentions(text: str, companies: Iterable[str]) -> List[Mention]:
    """
    Find tracked companies named in a response.

    Returns:
        One Mention per company with at least one occurrence, in
        `companies` order
    """
    mentions = []
    for company in companies:
        occurrences = count_occurrences(text, company)
        if occurrences:
            mentions.append(Mention(company_name=company, occurrences=occurrences))
    return mentions
