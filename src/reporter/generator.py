"""
Report Generator - Main orchestrator for PDF generation.

Reconciles an analysis document, builds the HTML report and renders it
to PDF with WeasyPrint.
"""

import logging
import os
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from weasyprint import HTML

from src.reconciler import build_view_model
from src.utils.domain import build_report_filename
from .report import ReportBuilder

logger = logging.getLogger(__name__)


@dataclass
class GeneratedReport:
    """A generated PDF report."""
    filename: str
    pdf_bytes: bytes
    page_count: int
    generated_at: datetime


def group_mentions_by_brand(mentions: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Mention documents keyed by company name, in first-seen order."""
    grouped = defaultdict(list)
    for mention in mentions:
        name = mention.get("companyName")
        if name:
            grouped[name].append(mention)
    return dict(grouped)


class ReportGenerator:
    """Main report generator coordinating PDF creation."""

    def __init__(self):
        self.builder = ReportBuilder()

    def build_html(
        self,
        document: Dict[str, Any],
        responses: Optional[List[Dict[str, Any]]] = None,
        mentions: Optional[List[Dict[str, Any]]] = None,
        generated_at: Optional[datetime] = None,
    ) -> str:
        view_model = build_view_model(document, responses)
        return self.builder.build(
            view_model,
            mentions_by_brand=group_mentions_by_brand(mentions or []),
            generated_at=generated_at,
        )

    def generate(
        self,
        document: Dict[str, Any],
        responses: Optional[List[Dict[str, Any]]] = None,
        mentions: Optional[List[Dict[str, Any]]] = None,
    ) -> GeneratedReport:
        """
        Generate the PDF report for one analysis.

        Args:
            document: Analysis document with populatedCategories
            responses: Responses of the analysis
            mentions: Mentions of the analysis

        Returns:
            GeneratedReport with PDF bytes and filename
        """
        generated_at = datetime.utcnow()
        html_content = self.build_html(document, responses, mentions, generated_at)
        pdf_bytes = self._html_to_pdf(html_content)

        filename = build_report_filename(
            document.get("domain") or "analysis",
            document.get("analysisId") or "unknown",
            generated_at,
        )

        return GeneratedReport(
            filename=filename,
            pdf_bytes=pdf_bytes,
            page_count=self._estimate_pages(len(pdf_bytes)),
            generated_at=generated_at,
        )

    def _html_to_pdf(self, html_content: str) -> bytes:
        """
        Convert HTML to PDF using WeasyPrint.

        Args:
            html_content: Complete HTML document

        Returns:
            PDF as bytes
        """
        try:
            pdf_bytes = HTML(string=html_content).write_pdf()
        except Exception as e:
            logger.error(f"PDF generation failed: {e}")
            raise

        logger.info(f"Generated PDF: {len(pdf_bytes)} bytes")
        return pdf_bytes

    def _estimate_pages(self, pdf_size: int) -> int:
        """Estimate page count from PDF size."""
        # Rough estimate: ~50KB per page
        return max(1, pdf_size // 50000)

    def save_report(self, report: GeneratedReport, output_dir: str) -> str:
        """
        Save report to disk.

        Returns:
            Full path to saved file
        """
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, report.filename)

        with open(filepath, "wb") as f:
            f.write(report.pdf_bytes)

        logger.info(f"Saved report: {filepath}")
        return filepath
