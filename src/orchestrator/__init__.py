"""
Snowball Visibility - Step Orchestrator

Client side of the Super User analysis: runs the steps against the
HTTP API, follows server progress and downloads the PDF export.
"""

from .client import SnowballAPIClient, SnowballAPIError
from .steps import (
    StepOrchestrator,
    StepProgress,
    StepFailure,
    AnalysisOutcome,
    PdfDownload,
    PdfDownloadError,
    LOGICAL_STEPS,
    TIMEOUT_MESSAGE,
    is_timeout_error,
)

__all__ = [
    "SnowballAPIClient",
    "SnowballAPIError",
    "StepOrchestrator",
    "StepProgress",
    "StepFailure",
    "AnalysisOutcome",
    "PdfDownload",
    "PdfDownloadError",
    "LOGICAL_STEPS",
    "TIMEOUT_MESSAGE",
    "is_timeout_error",
]
