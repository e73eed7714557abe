"""
Tests for the Step Orchestrator

The API is replaced by an httpx.MockTransport, so every request the
orchestrator makes is answered from a route table.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.orchestrator import (
    LOGICAL_STEPS,
    TIMEOUT_MESSAGE,
    PdfDownloadError,
    SnowballAPIClient,
    SnowballAPIError,
    StepOrchestrator,
    is_timeout_error,
)
from src.orchestrator.client import ANALYSIS_PREFIX
from src.orchestrator.steps import INVALID_DOMAIN_MESSAGE, filename_from_disposition

ANALYSIS_ID = "SUA_test_1"

SERVER_EVENTS = [
    {"step": 5, "name": "Running AI analysis", "status": "started", "createdAt": "2024-03-05T10:00:00"},
    {"step": 5, "name": "Running AI analysis", "status": "completed", "createdAt": "2024-03-05T10:00:05"},
]

DOCUMENT = {
    "analysisId": ANALYSIS_ID,
    "domain": "example.com",
    "brandName": "Example",
    "analysisResults": {
        "competitors": ["Rival One"],
        "shareOfVoice": {"Example": 50.0, "Rival One": 50.0},
        "mentionCounts": {"Example": 1, "Rival One": 1},
        "totalMentions": 2,
        "brandShare": 50.0,
        "aiVisibilityScore": 100.0,
    },
    "populatedCategories": [],
}

ROUTES = {
    ("POST", "/create"): {"success": True, "analysisId": ANALYSIS_ID, "domain": "example.com"},
    ("POST", "/update"): {"success": True, "analysisId": ANALYSIS_ID},
    ("POST", "/generate-prompts"): {
        "success": True,
        "prompts": [{"promptText": "Which CRM is best?", "categoryName": "CRM"}],
        "promptsCount": 1,
    },
    ("POST", "/complete"): {"success": True, "analysisResults": DOCUMENT["analysisResults"]},
    ("GET", f"/{ANALYSIS_ID}/progress"): {"success": True, "status": "completed", "events": SERVER_EVENTS},
    ("GET", f"/{ANALYSIS_ID}"): {"success": True, "analysis": DOCUMENT},
    ("GET", f"/{ANALYSIS_ID}/responses"): {"success": True, "responses": []},
}


def make_client(overrides=None, calls=None):
    """SnowballAPIClient answering from ROUTES, with per-route overrides."""
    routes = {**ROUTES, **(overrides or {})}

    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path[len(ANALYSIS_PREFIX):])
        if calls is not None:
            calls.append(key)
        answer = routes.get(key)
        if answer is None:
            return httpx.Response(404, json={"detail": "Not found"})
        if callable(answer):
            return answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    return SnowballAPIClient("http://api.test", token="token", transport=httpx.MockTransport(handler))


@pytest.fixture
def orchestrator():
    # Long poll interval: only the final progress refresh runs
    return StepOrchestrator(make_client(), poll_interval=60)


# =============================================================================
# RUN
# =============================================================================

class TestRun:
    """Tests for a full orchestrated run."""

    @pytest.mark.asyncio
    async def test_successful_run(self, orchestrator):
        outcome = await orchestrator.run("https://www.Example.com")

        assert outcome.success is True
        assert outcome.failure is None
        assert outcome.domain == "example.com"
        assert outcome.analysis_id == ANALYSIS_ID
        assert outcome.results["brandShare"] == 50.0
        assert outcome.view_model["brand"]["name"] == "Example"
        assert outcome.view_model["competitors"] == ["Rival One"]

    @pytest.mark.asyncio
    async def test_steps_called_in_order(self):
        calls = []
        orchestrator = StepOrchestrator(make_client(calls=calls), poll_interval=60)

        await orchestrator.run("example.com")

        assert calls == [
            ("POST", "/create"),
            ("POST", "/update"),
            ("POST", "/update"),
            ("POST", "/generate-prompts"),
            ("POST", "/complete"),
            ("GET", f"/{ANALYSIS_ID}/progress"),
            ("GET", f"/{ANALYSIS_ID}"),
            ("GET", f"/{ANALYSIS_ID}/responses"),
        ]

    @pytest.mark.asyncio
    async def test_progress_entries(self, orchestrator):
        reported = []
        orchestrator.on_progress = reported.append

        outcome = await orchestrator.run("example.com")

        local = [(p.step, p.status) for p in outcome.progress[:8]]
        assert local == [
            (1, "started"), (1, "completed"),
            (2, "started"), (2, "completed"),
            (3, "started"), (3, "completed"),
            (4, "started"), (4, "completed"),
        ]
        assert outcome.progress[1].name == LOGICAL_STEPS[0]
        assert outcome.progress[7].message == "1 prompts"
        assert [(p.step, p.status) for p in outcome.progress[8:]] == [(5, "started"), (5, "completed")]
        assert reported == outcome.progress

    @pytest.mark.asyncio
    async def test_server_events_reported_once(self, orchestrator):
        outcome = await orchestrator.run("example.com")

        await orchestrator._refresh_progress(ANALYSIS_ID)

        assert len(outcome.progress) == 10

    @pytest.mark.asyncio
    async def test_on_analysis_complete(self):
        callback = AsyncMock()
        orchestrator = StepOrchestrator(make_client(), poll_interval=60, on_analysis_complete=callback)

        outcome = await orchestrator.run("example.com")

        callback.assert_awaited_once_with(outcome)

    @pytest.mark.asyncio
    async def test_sync_callback(self):
        callback = MagicMock(return_value=None)
        orchestrator = StepOrchestrator(make_client(), poll_interval=60, on_analysis_complete=callback)

        await orchestrator.run("example.com")

        callback.assert_called_once()


# =============================================================================
# FAILURES
# =============================================================================

class TestFailures:
    """Tests for how failed steps are reported."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("domain", ["", "not a domain", "localhost"])
    async def test_invalid_domain(self, domain):
        calls = []
        orchestrator = StepOrchestrator(make_client(calls=calls), poll_interval=60)

        outcome = await orchestrator.run(domain)

        assert outcome.success is False
        assert outcome.failure.step == "validation"
        assert outcome.failure.message == INVALID_DOMAIN_MESSAGE
        assert calls == []

    @pytest.mark.asyncio
    async def test_failed_step(self):
        client = make_client({
            ("POST", "/update"): httpx.Response(500, json={"detail": "Claude unavailable"}),
        })
        orchestrator = StepOrchestrator(client, poll_interval=60)

        outcome = await orchestrator.run("example.com")

        assert outcome.success is False
        assert outcome.analysis_id == ANALYSIS_ID
        assert outcome.failure.step == "categories"
        assert outcome.failure.message == "Analysis failed: Claude unavailable"
        assert outcome.failure.status_code == 500
        assert outcome.failure.is_timeout is False

    @pytest.mark.asyncio
    async def test_unsuccessful_payload(self):
        client = make_client({
            ("POST", "/generate-prompts"): {"success": False, "message": "Categories are required"},
        })
        orchestrator = StepOrchestrator(client, poll_interval=60)

        outcome = await orchestrator.run("example.com")

        assert outcome.failure.step == "prompts"
        assert outcome.failure.message == "Analysis failed: Categories are required"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        orchestrator = StepOrchestrator(make_client({("POST", "/complete"): slow}), poll_interval=60)

        outcome = await orchestrator.run("example.com")

        assert outcome.failure.step == "analysis"
        assert outcome.failure.is_timeout is True
        assert outcome.failure.message == TIMEOUT_MESSAGE

    @pytest.mark.parametrize("error,expected", [
        (httpx.ConnectTimeout("connect"), True),
        (SnowballAPIError("Gateway Timeout"), True),
        (SnowballAPIError("Invalid step number", status_code=400), False),
    ])
    def test_is_timeout_error(self, error, expected):
        assert is_timeout_error(error) is expected


# =============================================================================
# PDF DOWNLOAD
# =============================================================================

class TestPdfDownload:
    """Tests for PDF download validation."""

    @staticmethod
    def pdf_route(response):
        return {("GET", f"/{ANALYSIS_ID}/download-pdf"): response}

    @pytest.mark.asyncio
    async def test_download(self):
        response = httpx.Response(
            200,
            content=b"%PDF-1.4",
            headers={
                "content-type": "application/pdf",
                "content-disposition": 'attachment; filename="SuperUser_example_com_Analysis_x.pdf"',
            },
        )
        orchestrator = StepOrchestrator(make_client(self.pdf_route(response)))

        pdf = await orchestrator.download_pdf(ANALYSIS_ID, "example.com")

        assert pdf.filename == "SuperUser_example_com_Analysis_x.pdf"
        assert pdf.content == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_filename_fallback(self):
        response = httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})
        orchestrator = StepOrchestrator(make_client(self.pdf_route(response)))

        pdf = await orchestrator.download_pdf(ANALYSIS_ID, "example.com")

        assert pdf.filename.startswith(f"SuperUser_example_com_Analysis_{ANALYSIS_ID}_")
        assert pdf.filename.endswith(".pdf")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response,message", [
        (httpx.Response(500, json={"detail": "Failed to generate PDF"}), "status 500"),
        (httpx.Response(200, json={"success": True}), "did not return a PDF"),
        (httpx.Response(200, content=b"", headers={"content-type": "application/pdf"}), "empty"),
    ])
    async def test_invalid_download(self, response, message):
        orchestrator = StepOrchestrator(make_client(self.pdf_route(response)))

        with pytest.raises(PdfDownloadError, match=message):
            await orchestrator.download_pdf(ANALYSIS_ID)


class TestFilenameFromDisposition:
    """Tests for Content-Disposition parsing."""

    @pytest.mark.parametrize("header,expected", [
        ('attachment; filename="report.pdf"', "report.pdf"),
        ("attachment; filename=report.pdf", "report.pdf"),
        ("attachment; filename*=UTF-8''report.pdf", "report.pdf"),
        ("attachment", None),
        (None, None),
    ])
    def test_parse(self, header, expected):
        assert filename_from_disposition(header) == expected
