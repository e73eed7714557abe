"""
Snowball Visibility - Claude access

Thin async wrapper around the Anthropic Messages API shared by all
generation steps.
"""

from .client import ClaudeClient, AnalysisResponse, TokenUsage, create_claude_client

__all__ = [
    "ClaudeClient",
    "AnalysisResponse",
    "TokenUsage",
    "create_claude_client",
]
