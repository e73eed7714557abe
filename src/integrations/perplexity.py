"""
Perplexity API Client

AI-powered web search used to describe the analysed domain
before any categories or competitors are generated.

API: https://docs.perplexity.ai/
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class PerplexityError(Exception):
    """Custom exception for Perplexity API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


@dataclass
class PerplexityResult:
    """Result from a Perplexity query."""

    answer: str
    citations: List[str] = field(default_factory=list)
    query: str = ""
    model: str = ""
    tokens_used: int = 0


@dataclass
class DomainInfo:
    """What we know about a domain before the analysis starts."""

    domain: str
    overview: str
    description: str
    source: str = "perplexity"  # or "fallback"


class PerplexityClient:
    """
    Async client for Perplexity API.

    Usage:
        async with PerplexityClient(api_key="your_api_key") as client:
            result = await client.query("What does example.com sell?")
    """

    BASE_URL = "https://api.perplexity.ai"

    def __init__(
        self,
        api_key: str,
        retry_config: Optional[RetryConfig] = None,
        default_model: str = "sonar",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Perplexity client.

        Args:
            api_key: Perplexity API key
            retry_config: Retry configuration (optional)
            default_model: Default model to use (sonar, sonar-pro)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.api_key = api_key
        self.retry_config = retry_config or RetryConfig()
        self.default_model = default_model

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def query(
        self,
        question: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> PerplexityResult:
        """
        Query Perplexity with a question.

        Args:
            question: The question to ask
            system_prompt: Optional system prompt for context
            model: Model to use (overrides default)
            temperature: Response temperature (0-1)
            max_tokens: Maximum tokens in response

        Returns:
            PerplexityResult with answer and citations
        """
        if self._closed:
            raise PerplexityError("Client has been closed")

        model_name = model or self.default_model

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": question})

        payload = {
            "model": model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        response = await self._request_with_retry(payload)

        choices = response.get("choices", [])
        answer = choices[0].get("message", {}).get("content", "") if choices else ""

        return PerplexityResult(
            answer=answer,
            citations=response.get("citations", []),
            query=question,
            model=model_name,
            tokens_used=response.get("usage", {}).get("total_tokens", 0),
        )

    async def _request_with_retry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self._client.post("/chat/completions", json=payload)

                if response.status_code < 400:
                    return response.json()

                error_data = response.json() if response.content else {}

                if response.status_code not in config.retryable_status_codes:
                    raise PerplexityError(
                        f"API error: {error_data.get('error', {}).get('message', response.status_code)}",
                        status_code=response.status_code,
                        response=error_data,
                    )

                last_exception = PerplexityError(
                    f"API error: {response.status_code}",
                    status_code=response.status_code,
                    response=error_data,
                )

            except httpx.TimeoutException as e:
                last_exception = PerplexityError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = PerplexityError(f"Request failed: {e}")

            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Perplexity request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# =============================================================================
# DOMAIN INFORMATION
# =============================================================================

DOMAIN_INFO_PROMPT = """Analyze the domain "{domain}" and provide business insights based on the domain name, structure, and likely business type. Provide two things:

1. A comprehensive overview of what this company likely does, their probable primary services, products, and business offerings (for category analysis)
2. A concise brand description that summarizes their likely core value proposition and business focus
3. Don't give citations in the response

Format your response exactly as:
OVERVIEW: [detailed business overview and likely services for analysis]
DESCRIPTION: [concise brand description and value proposition]"""

MAX_DESCRIPTION_LENGTH = 200

_OVERVIEW_PATTERN = re.compile(r"OVERVIEW:\s*(.*?)(?=DESCRIPTION:|$)", re.DOTALL)
_DESCRIPTION_PATTERN = re.compile(r"DESCRIPTION:\s*(.*?)$", re.DOTALL)


def fallback_domain_info(domain: str) -> DomainInfo:
    """Generic description used when no lookup is possible."""
    return DomainInfo(
        domain=domain,
        overview=f"Information about {domain} - a business website offering various services and solutions.",
        description=f"{domain} is a business website that provides various services and solutions to its customers.",
        source="fallback",
    )


def shorten_description(description: str) -> str:
    """Keep a description to two sentences or 200 characters."""
    description = description.strip()
    if len(description) <= MAX_DESCRIPTION_LENGTH:
        return description

    sentences = [s.strip() for s in re.split(r"[.!?]+", description) if s.strip()]
    if len(sentences) >= 2:
        return ". ".join(sentences[:2]) + "."

    shortened = description[:MAX_DESCRIPTION_LENGTH].strip()
    return shortened if shortened.endswith(".") else shortened + "..."


def parse_domain_info(domain: str, answer: str) -> DomainInfo:
    """Split an OVERVIEW/DESCRIPTION reply into its two parts."""
    answer = (answer or "").strip()

    overview_match = _OVERVIEW_PATTERN.search(answer)
    overview = overview_match.group(1).strip() if overview_match else answer

    description_match = _DESCRIPTION_PATTERN.search(answer)
    if description_match:
        description = shorten_description(description_match.group(1))
    elif len(overview) > MAX_DESCRIPTION_LENGTH:
        description = overview[:MAX_DESCRIPTION_LENGTH].strip() + "..."
    else:
        description = overview

    return DomainInfo(domain=domain, overview=overview, description=description)


async def get_domain_info(
    domain: str,
    client: Optional[PerplexityClient],
) -> DomainInfo:
    """
    Describe a domain with one Perplexity query.

    Never raises: without a client, or on any API failure, the
    generic fallback description is returned.
    """
    if client is None:
        logger.warning(f"Perplexity not configured, using fallback info for {domain}")
        return fallback_domain_info(domain)

    try:
        result = await client.query(DOMAIN_INFO_PROMPT.format(domain=domain))
    except PerplexityError as e:
        logger.warning(f"Domain info lookup failed for {domain}: {e}")
        return fallback_domain_info(domain)

    if not result.answer.strip():
        return fallback_domain_info(domain)

    info = parse_domain_info(domain, result.answer)
    logger.info(f"Domain info for {domain}: {len(info.overview)} chars overview")
    return info
