"""
Snowball API Client

Async HTTP client for the Super User analysis endpoints. One call per
pipeline step; there is no retry, a failed step is reported to the user.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

ANALYSIS_PREFIX = "/api/v1/super-user/analysis"


class SnowballAPIError(Exception):
    """Non-success response from the Snowball API."""

    def __init__(self, message: str, status_code: int = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class SnowballAPIClient:
    """
    Async client for the Super User analysis API.

    Usage:
        async with SnowballAPIClient("https://api.example.com", token="...") as client:
            created = await client.create("example.com")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 60.0,
        complete_timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. https://api.example.com
            token: Bearer token of a Super User
            timeout: Timeout for ordinary step calls (seconds)
            complete_timeout: Timeout for the long complete call (seconds)
            transport: Custom httpx transport (tests)
        """
        self.complete_timeout = complete_timeout

        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + ANALYSIS_PREFIX,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout)

        logger.debug(f"{method} {path}")
        response = await self._client.request(method, path, **kwargs)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400 or (isinstance(payload, dict) and payload.get("success") is False):
            message = None
            if isinstance(payload, dict):
                message = payload.get("detail") or payload.get("message") or payload.get("error")
            raise SnowballAPIError(
                str(message or f"HTTP {response.status_code}"),
                status_code=response.status_code,
                payload=payload,
            )

        return payload if isinstance(payload, dict) else {}

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================

    async def create(
        self,
        domain: str,
        brand_name: Optional[str] = None,
        is_local_brand: bool = False,
        location: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"domain": domain, "isLocalBrand": is_local_brand}
        if brand_name:
            body["brandName"] = brand_name
        if location:
            body["location"] = location
        return await self._request("POST", "/create", json=body)

    async def update(self, analysis_id: str, step: int, step_data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/update", json={
            "analysisId": analysis_id,
            "step": step,
            "stepData": step_data,
        })

    async def generate_prompts(
        self,
        analysis_id: str,
        categories: Optional[List[str]] = None,
        competitors: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"analysisId": analysis_id}
        if categories:
            body["categories"] = categories
        if competitors:
            body["competitors"] = competitors
        return await self._request("POST", "/generate-prompts", json=body)

    async def complete(self, analysis_id: str, step4_data: Dict[str, Any]) -> Dict[str, Any]:
        """The long-running step; uses complete_timeout."""
        return await self._request(
            "POST",
            "/complete",
            json={"analysisId": analysis_id, "step4Data": step4_data},
            timeout=self.complete_timeout,
        )

    # =========================================================================
    # READ
    # =========================================================================

    async def progress(self, analysis_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/{analysis_id}/progress")

    async def get_analysis(self, analysis_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/{analysis_id}")

    async def responses(self, analysis_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/{analysis_id}/responses")

    async def history(self) -> Dict[str, Any]:
        return await self._request("GET", "/history")

    async def download_pdf(self, analysis_id: str) -> httpx.Response:
        """Raw response; the caller validates status, type and body."""
        return await self._client.get(f"/{analysis_id}/download-pdf")

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
