"""
External API Integrations

- Perplexity: AI-powered web search describing the analysed domain
- Config: credentials and client factory
"""

from .perplexity import (
    PerplexityClient,
    PerplexityError,
    PerplexityResult,
    RetryConfig,
    DomainInfo,
    get_domain_info,
    fallback_domain_info,
    parse_domain_info,
)
from .config import ExternalAPIConfig, create_perplexity_client

__all__ = [
    # Perplexity
    "PerplexityClient",
    "PerplexityError",
    "PerplexityResult",
    "RetryConfig",
    "DomainInfo",
    "get_domain_info",
    "fallback_domain_info",
    "parse_domain_info",
    # Config
    "ExternalAPIConfig",
    "create_perplexity_client",
]
