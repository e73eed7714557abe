"""
Step Orchestrator

Drives a full Super User analysis against the API:

    create -> categories -> competitors -> prompts -> complete

While the long `complete` call is in flight the orchestrator polls the
session's progress endpoint and reports every step event the server
records, so progress reflects real server state.
"""

import asyncio
import contextlib
import inspect
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from src.reconciler import build_view_model
from src.utils.domain import build_report_filename, is_valid_domain, normalize_domain
from .client import SnowballAPIClient, SnowballAPIError

logger = logging.getLogger(__name__)

LOGICAL_STEPS = [
    "Creating brand profile",
    "Extracting categories",
    "Discovering competitors",
    "Generating search prompts",
    "Running AI analysis",
    "Calculating Share of Voice",
]

INVALID_DOMAIN_MESSAGE = "Please enter a valid domain (e.g., example.com)"
TIMEOUT_MESSAGE = (
    "Analysis is taking longer than expected. This can happen with complex analyses. "
    "Please try again or contact support if the issue persists."
)

_FILENAME_PATTERN = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class StepProgress:
    """One progress entry shown to the user."""
    step: int
    name: str
    status: str  # started, completed, failed
    message: Optional[str] = None
    at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class StepFailure:
    """A step that failed, with the message shown to the user."""
    step: str
    message: str
    is_timeout: bool = False
    status_code: Optional[int] = None


@dataclass
class AnalysisOutcome:
    """Result of one orchestrated run."""
    domain: str
    success: bool
    analysis_id: Optional[str] = None
    elapsed_seconds: float = 0.0
    progress: List[StepProgress] = field(default_factory=list)
    results: Dict[str, Any] = field(default_factory=dict)
    document: Dict[str, Any] = field(default_factory=dict)
    view_model: Dict[str, Any] = field(default_factory=dict)
    failure: Optional[StepFailure] = None


@dataclass
class PdfDownload:
    filename: str
    content: bytes


class PdfDownloadError(Exception):
    """The PDF export did not return a usable PDF."""
    pass


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

def is_timeout_error(error: BaseException) -> bool:
    """Timeouts are recognised by exception type or a "timeout" substring."""
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return True
    return "timeout" in str(error).lower()


def failure_message(error: BaseException) -> str:
    if is_timeout_error(error):
        return TIMEOUT_MESSAGE
    if isinstance(error, SnowballAPIError):
        return f"Analysis failed: {error.message}"
    return f"Analysis failed: {error}"


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    match = _FILENAME_PATTERN.search(header)
    return match.group(1).strip() if match else None


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class StepOrchestrator:
    """
    Runs the analysis steps in order against the API.

    One call per step, no retry and no rollback: the first failing step
    ends the run with a StepFailure.
    """

    def __init__(
        self,
        client: SnowballAPIClient,
        poll_interval: float = 2.0,
        on_progress: Optional[Callable[[StepProgress], Any]] = None,
        on_analysis_complete: Optional[Callable[[AnalysisOutcome], Any]] = None,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.on_progress = on_progress
        self.on_analysis_complete = on_analysis_complete

        self.progress: List[StepProgress] = []
        self._seen_events = set()

    def _report(self, entry: StepProgress) -> None:
        self.progress.append(entry)
        logger.info(f"[{entry.step}/{len(LOGICAL_STEPS)}] {entry.name}: {entry.status}")
        if self.on_progress:
            self.on_progress(entry)

    def _report_local(self, step: int, status: str, message: Optional[str] = None) -> None:
        self._report(StepProgress(step=step, name=LOGICAL_STEPS[step - 1], status=status, message=message))

    async def _refresh_progress(self, analysis_id: str) -> None:
        """Report server step events not seen yet."""
        try:
            data = await self.client.progress(analysis_id)
        except (SnowballAPIError, httpx.HTTPError) as e:
            logger.warning(f"Progress poll failed for {analysis_id}: {e}")
            return

        for event in data.get("events", []):
            key = (event.get("step"), event.get("status"), event.get("createdAt"))
            if key in self._seen_events:
                continue
            self._seen_events.add(key)
            self._report(StepProgress(
                step=event.get("step", 0),
                name=event.get("name") or "",
                status=event.get("status") or "",
                message=event.get("message"),
            ))

    async def _poll_progress(self, analysis_id: str) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self._refresh_progress(analysis_id)

    async def _complete_with_progress(self, analysis_id: str, prompts: List[Dict[str, Any]]) -> Dict[str, Any]:
        poller = asyncio.create_task(self._poll_progress(analysis_id))
        try:
            return await self.client.complete(analysis_id, {"prompts": prompts})
        finally:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
            await self._refresh_progress(analysis_id)

    async def run(
        self,
        domain: str,
        brand_name: Optional[str] = None,
        categories: Optional[List[str]] = None,
        competitors: Optional[List[str]] = None,
    ) -> AnalysisOutcome:
        """
        Run a full analysis for a domain.

        Args:
            domain: Domain entered by the user (protocol and www. allowed)
            brand_name: Display name; derived from the domain when omitted
            categories: Known categories; extracted by the server when omitted
            competitors: Known competitors; extracted by the server when omitted

        Returns:
            AnalysisOutcome, with a StepFailure when a step failed
        """
        started = time.monotonic()
        self.progress = []
        self._seen_events = set()

        normalized = normalize_domain(domain)
        outcome = AnalysisOutcome(domain=normalized, success=False, progress=self.progress)

        if not is_valid_domain(normalized):
            outcome.failure = StepFailure(step="validation", message=INVALID_DOMAIN_MESSAGE)
            return outcome

        current = "create"
        try:
            self._report_local(1, "started")
            created = await self.client.create(normalized, brand_name=brand_name)
            outcome.analysis_id = created["analysisId"]
            self._report_local(1, "completed")

            current = "categories"
            self._report_local(2, "started")
            await self.client.update(outcome.analysis_id, 2, {"categories": categories or []})
            self._report_local(2, "completed")

            current = "competitors"
            self._report_local(3, "started")
            await self.client.update(outcome.analysis_id, 3, {"competitors": competitors or []})
            self._report_local(3, "completed")

            current = "prompts"
            self._report_local(4, "started")
            generated = await self.client.generate_prompts(outcome.analysis_id)
            self._report_local(4, "completed", f"{generated.get('promptsCount', 0)} prompts")

            current = "analysis"
            completed = await self._complete_with_progress(outcome.analysis_id, generated.get("prompts", []))
            outcome.results = completed.get("analysisResults") or {}

            current = "results"
            outcome.document = (await self.client.get_analysis(outcome.analysis_id)).get("analysis") or {}
            responses = (await self.client.responses(outcome.analysis_id)).get("responses") or []
        except (SnowballAPIError, httpx.HTTPError, asyncio.TimeoutError) as e:
            outcome.failure = StepFailure(
                step=current,
                message=failure_message(e),
                is_timeout=is_timeout_error(e),
                status_code=getattr(e, "status_code", None),
            )
            outcome.elapsed_seconds = time.monotonic() - started
            logger.error(f"Analysis of {normalized} failed at {current}: {e}")
            return outcome

        outcome.view_model = build_view_model(outcome.document, responses)
        outcome.success = True
        outcome.elapsed_seconds = time.monotonic() - started
        logger.info(f"Analysis of {normalized} finished in {outcome.elapsed_seconds:.1f}s")

        if self.on_analysis_complete:
            result = self.on_analysis_complete(outcome)
            if inspect.isawaitable(result):
                await result

        return outcome

    async def download_pdf(self, analysis_id: str, domain: Optional[str] = None) -> PdfDownload:
        """
        Download the PDF export.

        Raises:
            PdfDownloadError: wrong status, content type or an empty body
        """
        response = await self.client.download_pdf(analysis_id)

        if response.status_code != 200:
            raise PdfDownloadError(f"PDF download failed with status {response.status_code}")
        if "application/pdf" not in response.headers.get("content-type", ""):
            raise PdfDownloadError("Server did not return a PDF")
        if not response.content:
            raise PdfDownloadError("Downloaded PDF is empty")

        filename = filename_from_disposition(response.headers.get("content-disposition"))
        return PdfDownload(
            filename=filename or build_report_filename(domain or "analysis", analysis_id),
            content=response.content,
        )
