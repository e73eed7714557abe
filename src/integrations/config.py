"""
External API Configuration

Configuration and factory functions for external API clients.
Loads credentials from environment variables.

Optional environment variables:
- PERPLEXITY_API_KEY: Perplexity API key
- PERPLEXITY_MODEL: Model to use (default: sonar)
- PERPLEXITY_ENABLED: Enable Perplexity (default: true)
"""

import os
import logging
from typing import Optional

from .perplexity import PerplexityClient

logger = logging.getLogger(__name__)


def get_env_bool(key: str, default: bool = True) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("false", "0", "no", "off"):
        return False
    if val in ("true", "1", "yes", "on"):
        return True
    return default


class ExternalAPIConfig:
    """Configuration for external APIs."""

    def __init__(
        self,
        perplexity_api_key: Optional[str] = None,
        perplexity_model: Optional[str] = None,
        perplexity_enabled: bool = True,
    ):
        self.perplexity_api_key = perplexity_api_key or os.environ.get("PERPLEXITY_API_KEY")
        self.perplexity_model = perplexity_model or os.environ.get("PERPLEXITY_MODEL", "sonar")
        self.perplexity_enabled = perplexity_enabled and get_env_bool("PERPLEXITY_ENABLED", True)

    @property
    def has_perplexity(self) -> bool:
        """Check if Perplexity is configured and enabled."""
        return self.perplexity_enabled and bool(self.perplexity_api_key)


def create_perplexity_client(
    config: Optional[ExternalAPIConfig] = None,
) -> Optional[PerplexityClient]:
    """
    Create a Perplexity client.

    Returns:
        PerplexityClient or None if not configured
    """
    config = config or ExternalAPIConfig()
    if not config.has_perplexity:
        logger.warning("Perplexity API key not configured")
        return None

    return PerplexityClient(
        api_key=config.perplexity_api_key,
        default_model=config.perplexity_model,
    )
