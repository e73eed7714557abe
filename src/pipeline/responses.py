"""
AI Response Collection

Runs every search prompt through Claude in batches of concurrent calls,
pausing between batches to stay under rate limits. Replies are validated
into typed ResponseContent before anyone can persist them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from src.analyzer.client import ClaudeClient, TokenUsage
from .schemas import ResponseContent, MalformedResponseError, build_response_content

logger = logging.getLogger(__name__)


BRAND_MENTION_SUFFIX = (
    "IMPORTANT: In your response, make sure to explicitly mention the brand names "
    "that are referenced in the question. If the question asks about specific brands, "
    "include those brand names in your answer. Be specific and mention the actual "
    "brand names rather than using generic terms."
)


class ResponseCollectionError(Exception):
    """The AI provider failed while collecting responses."""
    pass


@dataclass
class PromptJob:
    """One prompt waiting for an AI response."""
    prompt_id: str
    prompt_text: str
    category_name: Optional[str] = None


@dataclass
class CollectedResponse:
    """A validated response ready to be stored."""
    prompt_id: str
    content: ResponseContent
    model: str
    usage: TokenUsage


def build_enhanced_prompt(prompt_text: str) -> str:
    """Append the brand-mention instruction to a search prompt."""
    return f"{prompt_text}\n\n{BRAND_MENTION_SUFFIX}"


class ResponseCollector:
    """
    Collects AI responses for a list of prompts.

    Provider failures abort the collection with ResponseCollectionError.
    Malformed replies (empty, or echoing the prompt) are skipped and logged.
    """

    def __init__(
        self,
        llm: Optional[ClaudeClient],
        batch_size: int = 5,
        batch_delay: float = 1.0,
        max_tokens: int = 600,
    ):
        self.llm = llm
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.max_tokens = max_tokens
        self.skipped: List[str] = []

    async def _collect_one(self, job: PromptJob) -> Optional[CollectedResponse]:
        response = await self.llm.analyze_with_retry(
            build_enhanced_prompt(job.prompt_text),
            max_tokens=self.max_tokens,
            temperature=0.7,
        )
        if not response.success:
            raise ResponseCollectionError(response.error or "AI provider call failed")

        try:
            content = build_response_content(job.prompt_text, response.content)
        except MalformedResponseError as e:
            logger.warning(f"Skipping response for prompt {job.prompt_id}: {e}")
            self.skipped.append(job.prompt_id)
            return None

        return CollectedResponse(
            prompt_id=job.prompt_id,
            content=content,
            model=response.model,
            usage=response.usage,
        )

    async def collect(self, jobs: List[PromptJob]) -> List[CollectedResponse]:
        """
        Collect responses for all jobs, batch by batch.

        Returns:
            Validated responses in job order, malformed ones omitted
        """
        if not jobs:
            return []
        if self.llm is None:
            raise ResponseCollectionError("ANTHROPIC_API_KEY is not configured")

        self.skipped = []
        collected: List[CollectedResponse] = []
        total_batches = (len(jobs) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(jobs), self.batch_size):
            batch = jobs[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            logger.info(
                f"Processing batch {batch_number} of {total_batches} ({len(batch)} prompts)"
            )

            tasks = [asyncio.create_task(self._collect_one(job)) for job in batch]
            try:
                results = await asyncio.gather(*tasks)
            finally:
                # A failed job cancels its siblings before the error propagates
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            collected.extend(result for result in results if result is not None)

            if start + self.batch_size < len(jobs) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"Collected {len(collected)} responses, skipped {len(self.skipped)} malformed"
        )
        return collected
