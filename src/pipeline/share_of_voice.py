"""
Share of Voice

A company's share of voice is the number of AI responses that mention it
divided by the mentions of all tracked companies, as a percentage. The
brand's AI visibility score is the share of responses that mention the
brand at all.
"""

from typing import Iterable, List

from .mentions import tracked_companies
from .schemas import ShareOfVoiceResult


def percentage(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(max(part, 0) / whole * 100, 2)


def calculate_share_of_voice(
    brand_name: str,
    competitors: Iterable[str],
    response_mentions: List[Iterable[str]],
) -> ShareOfVoiceResult:
    """
    Compute share of voice from per-response mention sets.

    Args:
        brand_name: Analysed brand
        competitors: Competitor names
        response_mentions: For each collected response, the company names
            it mentions (responses with no mentions included as empty)

    Returns:
        ShareOfVoiceResult whose mention counts sum to total_mentions
    """
    competitors = list(competitors or [])
    companies = tracked_companies(brand_name, competitors)
    lookup = {name.lower(): name for name in companies}

    counts = {name: 0 for name in companies}
    for names in response_mentions:
        # A response counts once per company however often it repeats the name
        seen = {lookup[n.lower()] for n in names if n and n.lower() in lookup}
        for name in seen:
            counts[name] += 1

    total = sum(counts.values())
    shares = {name: percentage(count, total) for name, count in counts.items()}

    brand_key = companies[0] if companies else brand_name
    brand_responses = counts.get(brand_key, 0)

    return ShareOfVoiceResult(
        share_of_voice=shares,
        mention_counts=counts,
        total_mentions=total,
        brand_share=shares.get(brand_key, 0.0),
        ai_visibility_score=percentage(brand_responses, len(response_mentions)),
        competitors=[name for name in companies if name != brand_key],
    )
