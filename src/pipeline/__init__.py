"""
Snowball Visibility - Analysis Pipeline

Generation and scoring steps of the Super User analysis:
- Categories, competitors and search prompts (Claude)
- AI response collection in rate-limited batches
- Mention extraction and share of voice

The HTTP-facing AnalysisGateway lives in src.pipeline.gateway and
competitor synchronisation in src.pipeline.sync; both depend on
src.database and are imported from there directly.
"""

from .categories import CategoryExtractor, DEFAULT_CATEGORIES, pad_categories
from .competitors import CompetitorExtractor, CompetitorResult, FALLBACK_COMPETITORS
from .prompts import PromptGenerator, CategoryPrompts
from .responses import ResponseCollector, ResponseCollectionError, PromptJob, CollectedResponse
from .mentions import Mention, extract_mentions, tracked_companies
from .share_of_voice import calculate_share_of_voice

__all__ = [
    "CategoryExtractor",
    "DEFAULT_CATEGORIES",
    "pad_categories",
    "CompetitorExtractor",
    "CompetitorResult",
    "FALLBACK_COMPETITORS",
    "PromptGenerator",
    "CategoryPrompts",
    "ResponseCollector",
    "ResponseCollectionError",
    "PromptJob",
    "CollectedResponse",
    "Mention",
    "extract_mentions",
    "tracked_companies",
    "calculate_share_of_voice",
]
