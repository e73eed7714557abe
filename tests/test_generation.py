"""
Tests for the Claude-backed generation steps:
categories, competitors, search prompts and AI response collection.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.pipeline.categories import (
    CategoryExtractor,
    DEFAULT_CATEGORIES,
    pad_categories,
    parse_categories,
)
from src.pipeline.competitors import (
    CompetitorExtractor,
    FALLBACK_COMPETITORS,
    parse_competitors,
)
from src.pipeline.prompts import (
    PromptGenerator,
    fallback_keywords,
    fallback_prompts,
    parse_string_array,
)
from src.pipeline.responses import (
    BRAND_MENTION_SUFFIX,
    PromptJob,
    ResponseCollectionError,
    ResponseCollector,
    build_enhanced_prompt,
)
from tests.conftest import claude_response, make_claude_client


def failing_client(error: str = "Max retries exceeded. Last error: overloaded"):
    client = MagicMock()
    client.analyze_with_retry = AsyncMock(return_value=claude_response("", success=False, error=error))
    return client


# =============================================================================
# CATEGORIES
# =============================================================================

class TestCategories:
    """Tests for category extraction."""

    def test_pad_uses_suffix_at_current_length(self):
        assert pad_categories(["Tools"], "example.com", 4) == [
            "Tools",
            "example.com Services",
            "example.com Platform",
            "example.com Tools",
        ]

    def test_pad_beyond_suffixes(self):
        padded = pad_categories([], "example.com", 6)
        assert padded[4:] == ["example.com Category", "example.com Category"]

    def test_trim(self):
        assert pad_categories(["a", "b", "c", "d", "e"], "example.com", 4) == ["a", "b", "c", "d"]

    def test_parse_bare_array(self):
        assert parse_categories('["Tools", "Services"]') == ["Tools", "Services"]

    @pytest.mark.asyncio
    async def test_extract_pads_short_reply(self, mock_claude_client):
        """Two categories from Claude are padded to four."""
        extractor = CategoryExtractor(mock_claude_client, count=4)

        categories = await extractor.extract("example.com", "Project software")

        assert categories == [
            "Project Tools",
            "Team Software",
            "example.com Platform",
            "example.com Tools",
        ]
        prompt = mock_claude_client.analyze_with_retry.call_args[0][0]
        assert "Project software" in prompt

    @pytest.mark.asyncio
    async def test_extract_without_client(self):
        categories = await CategoryExtractor(None).extract("example.com")
        assert categories == DEFAULT_CATEGORIES

    @pytest.mark.asyncio
    async def test_extract_on_failure(self):
        categories = await CategoryExtractor(failing_client()).extract("example.com")
        assert categories == DEFAULT_CATEGORIES


# =============================================================================
# COMPETITORS
# =============================================================================

class TestCompetitors:
    """Tests for competitor extraction."""

    @pytest.mark.parametrize("reply", [
        '["Rival One", "Rival Two"]',
        '[{"competitors": ["Rival One", "Rival Two"]}]',
        '{"competitors": ["Rival One", "Rival Two"]}',
        'Sure! ["Rival One", "Rival Two"',
    ])
    def test_parse_shapes(self, reply):
        assert parse_competitors(reply) == ["Rival One", "Rival Two"]

    def test_parse_caps_at_limit(self):
        reply = '["A1", "B2", "C3", "D4", "E5", "F6", "G7"]'
        assert parse_competitors(reply, limit=5) == ["A1", "B2", "C3", "D4", "E5"]

    @pytest.mark.asyncio
    async def test_extract_describes_brand_first(self, mock_claude_client):
        """Without a known description, a description call comes first."""
        extractor = CompetitorExtractor(mock_claude_client, limit=5)

        result = await extractor.extract("Example", "example.com")

        assert result.competitors == ["Rival One", "Rival Two"]
        assert result.used_fallback is False
        assert result.brand_description.startswith("Example sells project planning software")
        assert mock_claude_client.analyze_with_retry.call_count == 2

    @pytest.mark.asyncio
    async def test_extract_with_known_description(self, mock_claude_client):
        extractor = CompetitorExtractor(mock_claude_client)

        result = await extractor.extract("Example", "example.com", "Known description")

        assert result.brand_description == "Known description"
        assert mock_claude_client.analyze_with_retry.call_count == 1
        prompt = mock_claude_client.analyze_with_retry.call_args[0][0]
        assert "Known description" in prompt

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back(self):
        client = make_claude_client(lambda prompt: "I am not sure who competes with them.")

        result = await CompetitorExtractor(client).extract("Example", "example.com", "Desc")

        assert result.competitors == FALLBACK_COMPETITORS
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_extract_without_client(self):
        result = await CompetitorExtractor(None, limit=3).extract("Example", "example.com")

        assert result.competitors == FALLBACK_COMPETITORS[:3]
        assert result.brand_description == "Example is a business operating at example.com"


# =============================================================================
# SEARCH PROMPTS
# =============================================================================

class TestPromptGeneration:
    """Tests for keyword and question generation."""

    def test_parse_object_with_list(self):
        assert parse_string_array('{"prompts": ["Which CRM is best?"]}', 5) == ["Which CRM is best?"]

    def test_parse_query_objects(self):
        reply = '[{"query": "Which CRM is best?"}, {"query": "Is there a cheap CRM?"}]'
        assert parse_string_array(reply, 5) == ["Which CRM is best?", "Is there a cheap CRM?"]

    @pytest.mark.asyncio
    async def test_two_calls_per_category(self, mock_claude_client):
        generator = PromptGenerator(mock_claude_client, prompts_per_category=2, keywords_per_category=2)

        result = await generator.generate_for_category(
            "Project Tools", "example.com", "Example", competitors=["Rival One"],
        )

        assert result.keywords == ["project tools for teams", "simple planning software"]
        assert result.prompts == [
            "What are the best project tools for small teams?",
            "Which vendors offer reliable project tools?",
        ]
        keyword_prompt, question_prompt = [
            call.args[0] for call in mock_claude_client.analyze_with_retry.call_args_list
        ]
        assert "Generate 2 long-tail keywords for example.com" in keyword_prompt
        assert "project tools for teams, simple planning software" in question_prompt
        assert "Rival One" in question_prompt

    @pytest.mark.asyncio
    async def test_local_brand_templates(self, mock_claude_client):
        generator = PromptGenerator(mock_claude_client, prompts_per_category=2)

        await generator.generate_for_category(
            "Dentists", "smile.se", "Smile", location="Stockholm",
        )

        keyword_prompt, question_prompt = [
            call.args[0] for call in mock_claude_client.analyze_with_retry.call_args_list
        ]
        assert "local Dentists services in Stockholm" in keyword_prompt
        assert "in Stockholm" in question_prompt
        assert "competitor1" in question_prompt

    @pytest.mark.asyncio
    async def test_failed_calls_use_templates(self):
        generator = PromptGenerator(failing_client(), prompts_per_category=3)

        result = await generator.generate_for_category("CRM", "example.com", "Example")

        assert result.keywords == fallback_keywords("CRM")
        assert result.prompts == fallback_prompts("CRM", 3)

    @pytest.mark.asyncio
    async def test_generate_keeps_category_order(self):
        generator = PromptGenerator(None, prompts_per_category=1)

        results = await generator.generate(["B", "A"], "example.com", "Example")

        assert list(results) == ["B", "A"]
        assert results["A"].prompts == ["What are the best A services available?"]


# =============================================================================
# AI RESPONSE COLLECTION
# =============================================================================

def _jobs(count: int):
    return [PromptJob(f"p{i}", f"Question number {i} about tools?", "Tools") for i in range(count)]


class TestResponseCollector:
    """Tests for batched AI response collection."""

    def test_enhanced_prompt(self):
        assert build_enhanced_prompt("Which CRM?") == f"Which CRM?\n\n{BRAND_MENTION_SUFFIX}"

    @pytest.mark.asyncio
    async def test_collects_in_batches(self):
        client = make_claude_client(lambda prompt: "Answer: " + prompt.split("\n\n")[0])
        collector = ResponseCollector(client, batch_size=3, batch_delay=1.0)

        with patch("src.pipeline.responses.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            collected = await collector.collect(_jobs(7))

        assert [c.prompt_id for c in collected] == [f"p{i}" for i in range(7)]
        assert collected[0].content.value == "Answer: Question number 0 about tools?"
        assert collected[0].usage.output_tokens == 34
        # Pauses between batches only, not after the last one
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_malformed_replies_are_skipped(self):
        def reply(prompt):
            question = prompt.split("\n\n")[0]
            if "number 1 " in question:
                return ""
            if "number 2 " in question:
                return question
            return "Acme is a good choice."

        collector = ResponseCollector(make_claude_client(reply), batch_size=5, batch_delay=0)

        collected = await collector.collect(_jobs(4))

        assert [c.prompt_id for c in collected] == ["p0", "p3"]
        assert collector.skipped == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_provider_failure_raises(self):
        collector = ResponseCollector(failing_client("rate limited"), batch_delay=0)

        with pytest.raises(ResponseCollectionError, match="rate limited"):
            await collector.collect(_jobs(2))

    @pytest.mark.asyncio
    async def test_failure_cancels_rest_of_batch(self):
        """No provider call keeps running once a job in the batch has failed."""
        finished = []

        async def reply(prompt, **kwargs):
            if prompt.startswith("fail"):
                return claude_response("", success=False, error="overloaded")
            await asyncio.sleep(0.2)
            finished.append("slow")
            return claude_response("Acme is a good choice.")

        client = MagicMock()
        client.analyze_with_retry = AsyncMock(side_effect=reply)
        collector = ResponseCollector(client, batch_size=5, batch_delay=0)
        jobs = [PromptJob("p0", "fail prompt", "Tools"), PromptJob("p1", "slow prompt", "Tools")]

        with pytest.raises(ResponseCollectionError, match="overloaded"):
            await collector.collect(jobs)
        await asyncio.sleep(0.4)

        assert finished == []

    @pytest.mark.asyncio
    async def test_missing_client(self):
        with pytest.raises(ResponseCollectionError, match="ANTHROPIC_API_KEY is not configured"):
            await ResponseCollector(None).collect(_jobs(1))

    @pytest.mark.asyncio
    async def test_no_jobs(self):
        assert await ResponseCollector(None).collect([]) == []
