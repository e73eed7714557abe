"""
Pytest Configuration and Shared Fixtures

Provides a throwaway SQLite database, a scripted Claude client and an
API test client wired to both.
"""

import json
import pytest
from typing import Callable, Optional
from unittest.mock import MagicMock, AsyncMock
from uuid import uuid4

from src.analyzer.client import AnalysisResponse, TokenUsage
from src.auth.config import get_auth_config
from src.auth.models import User, UserRole
from src.database import get_db_context, init_db, reset_engine
from src.utils.config import Settings


# ============================================================================
# Scripted Claude Replies
# ============================================================================

PIPELINE_QUESTIONS = [
    "What are the best project tools for small teams?",
    "Which vendors offer reliable project tools?",
]


def pipeline_reply(prompt: str) -> str:
    """
    Canned replies keyed on the pipeline's prompt templates.

    Answers to the "small teams" question name Example and Rival One;
    every other answer names Rival Two only.
    """
    if "content categories that best define the brand" in prompt:
        return '{"categories": ["Project Tools", "Team Software"]}'
    if "provide a brief overview of what they do" in prompt:
        return "Example sells project planning software to small businesses."
    if "Variables to Extract" in prompt:
        return '```json\n["Rival One", "Rival Two"]\n```'
    if "digital marketing researcher" in prompt:
        return json.dumps(PIPELINE_QUESTIONS)
    if "long-tail keywords for" in prompt:
        return '["project tools for teams", "simple planning software"]'
    if "small teams" in prompt:
        return "Example leads the market for small teams, ahead of Rival One."
    return "Rival Two is the most reliable option for most buyers."


def claude_response(content: str, success: bool = True, error: Optional[str] = None) -> AnalysisResponse:
    return AnalysisResponse(
        content=content,
        usage=TokenUsage(input_tokens=12, output_tokens=34),
        model="claude-test",
        stop_reason="end_turn" if success else "error",
        success=success,
        error=error,
    )


def make_claude_client(reply: Callable[[str], str] = pipeline_reply):
    """Mock Claude client answering every prompt through `reply`."""
    client = MagicMock()
    client.analyze_with_retry = AsyncMock(
        side_effect=lambda prompt, **kwargs: claude_response(reply(prompt))
    )
    return client


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def database(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'snowball_test.db'}")
    reset_engine()
    init_db()
    yield
    reset_engine()


@pytest.fixture
def superuser(database) -> User:
    """A stored Super User."""
    with get_db_context() as db:
        user = User(
            id=uuid4(),
            email="super@test.com",
            full_name="Super User",
            role=UserRole.SUPERUSER,
            is_active=True,
        )
        db.add(user)
    return user


# ============================================================================
# Pipeline
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Small, fast pipeline: two prompts per category, no batch pause."""
    return Settings(
        ANTHROPIC_API_KEY=None,
        PROMPTS_PER_CATEGORY=2,
        KEYWORDS_PER_CATEGORY=2,
        PROMPT_BATCH_SIZE=3,
        PROMPT_BATCH_DELAY=0,
    )


@pytest.fixture
def mock_claude_client():
    """Mock Claude API client with scripted pipeline replies."""
    return make_claude_client()


@pytest.fixture
def gateway(database, mock_claude_client, test_settings):
    from src.pipeline.gateway import AnalysisGateway

    return AnalysisGateway(llm=mock_claude_client, perplexity=None, settings=test_settings)


# ============================================================================
# API Client
# ============================================================================

@pytest.fixture
def api_client(gateway, monkeypatch):
    """
    TestClient for the app with auth disabled.

    The development user created in that mode holds the Super User role.
    """
    from fastapi.testclient import TestClient
    from api.analyze import app
    from api.super_user import get_gateway

    monkeypatch.setenv("AUTH_ENABLED", "false")
    get_auth_config.cache_clear()
    app.dependency_overrides[get_gateway] = lambda: gateway

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_auth_config.cache_clear()


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that run the full API flow"
    )
