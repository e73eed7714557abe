"""
Brand Visibility Report Builder

HTML document rendered to PDF for one analysis:
- Cover with headline metrics
- Share of voice chart and table
- Competitors
- Categories with each prompt and its AI response
- Mentions grouped by brand
- Methodology
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
import html

from .charts import ChartGenerator

logger = logging.getLogger(__name__)

# Long AI answers are cut in the PDF; the API keeps the full text
MAX_RESPONSE_CHARS = 1500
MAX_MENTIONS_PER_BRAND = 10

REPORT_CSS = """
@page { size: A4; margin: 18mm 16mm; }
body { font-family: "Helvetica Neue", Arial, sans-serif; color: #1f2937; font-size: 11px; line-height: 1.5; }
.page { page-break-after: always; }
.page:last-child { page-break-after: auto; }
.cover { text-align: center; padding-top: 120px; }
.cover .logo { font-size: 14px; letter-spacing: 6px; color: #4361ee; font-weight: 700; }
.cover .domain-title { font-size: 34px; font-weight: 700; margin: 24px 0 8px; }
.cover .report-type { font-size: 16px; color: #6b7280; }
.cover-meta { margin-top: 60px; }
.meta-item { display: inline-block; margin: 0 18px; }
.meta-label { font-size: 10px; color: #6b7280; text-transform: uppercase; }
.meta-value { font-size: 18px; font-weight: 700; }
.section-header h1 { font-size: 20px; border-bottom: 2px solid #4361ee; padding-bottom: 6px; }
.section-number { color: #4361ee; margin-right: 10px; }
.metric-grid { margin: 12px 0; }
.metric-card { display: inline-block; width: 22%; margin-right: 2%; padding: 10px; background: #f3f4f6; border-radius: 6px; text-align: center; }
.metric-card .value { font-size: 20px; font-weight: 700; }
.metric-card .label { font-size: 10px; color: #6b7280; }
table { width: 100%; border-collapse: collapse; margin: 10px 0; }
th, td { text-align: left; padding: 6px 8px; border-bottom: 1px solid #e5e7eb; }
th { background: #f9fafb; font-size: 10px; text-transform: uppercase; color: #6b7280; }
tr.brand-row td { font-weight: 700; color: #b5179e; }
.category { margin-bottom: 18px; }
.prompt { margin: 8px 0 12px; padding: 8px 10px; border-left: 3px solid #4361ee; background: #f9fafb; }
.prompt .question { font-weight: 700; }
.prompt .answer { white-space: pre-wrap; margin-top: 4px; color: #374151; }
.mention { margin: 6px 0; padding: 6px 8px; background: #f3f4f6; border-radius: 4px; }
.muted { color: #9ca3af; }
"""


class ReportBuilder:
    """Builds the brand visibility report from a reconciled view-model."""

    def __init__(self):
        self.charts = ChartGenerator()
        self.section_num = 0

    def build(
        self,
        view_model: Dict[str, Any],
        mentions_by_brand: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        generated_at: Optional[datetime] = None,
    ) -> str:
        """
        Build the complete HTML report.

        Args:
            view_model: Output of build_view_model()
            mentions_by_brand: Mention documents grouped by company name
            generated_at: Report date (defaults to now)

        Returns:
            HTML document
        """
        self.section_num = 0
        generated_at = generated_at or datetime.utcnow()
        brand = view_model.get("brand", {})

        sections = [
            self._build_cover(view_model, generated_at),
            self._build_share_of_voice(view_model),
            self._build_categories(view_model),
            self._build_mentions(mentions_by_brand or {}),
            self._build_methodology(),
        ]

        logger.info(
            f"Built report for {brand.get('domain')}: "
            f"{len(view_model.get('prompts', []))} prompts, "
            f"{len(view_model.get('shareOfVoice', []))} SOV rows"
        )

        return self._wrap_html(sections, brand.get("domain") or brand.get("name") or "Analysis")

    def _wrap_html(self, sections: list, title: str) -> str:
        """Wrap sections in HTML document."""
        content = "\n".join(sections)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{html.escape(title)} - Brand Visibility Report</title>
    <style>{REPORT_CSS}</style>
</head>
<body>
    {content}
</body>
</html>"""

    def _next_section(self) -> int:
        self.section_num += 1
        return self.section_num

    def _section_header(self, title: str) -> str:
        num = self._next_section()
        return f'''
        <div class="section-header">
            <h1><span class="section-number">{num}</span>{html.escape(title)}</h1>
        </div>
        '''

    # =========================================================================
    # COVER PAGE
    # =========================================================================

    def _build_cover(self, view_model: Dict[str, Any], generated_at: datetime) -> str:
        brand = view_model.get("brand", {})
        name = brand.get("name") or brand.get("domain") or "Unknown Brand"

        return f"""
        <div class="page cover">
            <div class="logo">SNOWBALL</div>
            <div class="domain-title">{html.escape(name)}</div>
            <div class="report-type">AI Brand Visibility Report &middot; {html.escape(brand.get("domain") or "N/A")}</div>

            <div class="cover-meta">
                <div class="meta-item">
                    <div class="meta-label">Date</div>
                    <div class="meta-value">{generated_at.strftime("%B %d, %Y")}</div>
                </div>
                <div class="meta-item">
                    <div class="meta-label">AI Visibility</div>
                    <div class="meta-value">{round(brand.get("aiVisibilityScore") or 0)}%</div>
                </div>
                <div class="meta-item">
                    <div class="meta-label">Share of Voice</div>
                    <div class="meta-value">{round(brand.get("brandShare") or 0)}%</div>
                </div>
                <div class="meta-item">
                    <div class="meta-label">Competitors</div>
                    <div class="meta-value">{len(view_model.get("competitors", []))}</div>
                </div>
            </div>

            <p style="margin-top: 60px;">{html.escape(brand.get("description") or "")}</p>
        </div>
        """

    # =========================================================================
    # SHARE OF VOICE
    # =========================================================================

    def _build_share_of_voice(self, view_model: Dict[str, Any]) -> str:
        brand = view_model.get("brand", {})
        rows = view_model.get("shareOfVoice", [])

        chart = self.charts.generate_bar_chart(
            rows,
            label_key="name",
            value_key="share",
            highlight_key="isBrand",
            value_suffix="%",
        )
        pie = self.charts.generate_pie_chart(rows, label_key="name", value_key="share", size=220)

        table_rows = "".join(
            f'<tr class="{"brand-row" if row["isBrand"] else ""}">'
            f'<td>{html.escape(row["name"])}</td>'
            f'<td>{row["mentions"]}</td>'
            f'<td>{row["share"]:.2f}%</td></tr>'
            for row in rows
        )
        competitors = ", ".join(html.escape(c) for c in view_model.get("competitors", [])) or "None"

        return f"""
        <div class="page">
            {self._section_header("Share of Voice")}

            <div class="metric-grid">
                <div class="metric-card">
                    <div class="value">{brand.get("brandShare", 0):.2f}%</div>
                    <div class="label">Brand Share</div>
                </div>
                <div class="metric-card">
                    <div class="value">{brand.get("aiVisibilityScore", 0):.2f}%</div>
                    <div class="label">AI Visibility Score</div>
                </div>
                <div class="metric-card">
                    <div class="value">{brand.get("totalMentions", 0)}</div>
                    <div class="label">Total Mentions</div>
                </div>
                <div class="metric-card">
                    <div class="value">{len(view_model.get("prompts", []))}</div>
                    <div class="label">Prompts Analysed</div>
                </div>
            </div>

            {chart}
            {pie}

            <table>
                <thead><tr><th>Brand</th><th>Mentions</th><th>Share of Voice</th></tr></thead>
                <tbody>{table_rows or '<tr><td colspan="3" class="muted">No share of voice data</td></tr>'}</tbody>
            </table>

            <h2>Competitors</h2>
            <p>{competitors}</p>
        </div>
        """

    # =========================================================================
    # CATEGORIES, PROMPTS AND RESPONSES
    # =========================================================================

    def _build_categories(self, view_model: Dict[str, Any]) -> str:
        blocks = []
        for category in view_model.get("categories", []):
            prompts = "".join(
                f'''
                <div class="prompt">
                    <div class="question">{html.escape(entry["promptText"])}</div>
                    <div class="answer">{html.escape(self._truncate(entry["responseText"]))}</div>
                </div>
                '''
                for entry in category.get("prompts", [])
            )
            blocks.append(f'''
            <div class="category">
                <h2>{html.escape(category.get("name", ""))}</h2>
                {prompts or '<p class="muted">No prompts in this category.</p>'}
            </div>
            ''')

        return f"""
        <div class="page">
            {self._section_header("Categories and AI Responses")}
            {"".join(blocks) or '<p class="muted">No categories available.</p>'}
        </div>
        """

    def _truncate(self, text: str) -> str:
        if len(text) <= MAX_RESPONSE_CHARS:
            return text
        return text[:MAX_RESPONSE_CHARS].rstrip() + "..."

    # =========================================================================
    # MENTIONS
    # =========================================================================

    def _build_mentions(self, mentions_by_brand: Dict[str, List[Dict[str, Any]]]) -> str:
        blocks = []
        for brand_name, mentions in mentions_by_brand.items():
            items = "".join(
                f'''
                <div class="mention">
                    <strong>{html.escape((m.get("categoryId") or {}).get("categoryName") or "")}</strong>:
                    {html.escape((m.get("promptId") or {}).get("promptText") or "")}
                </div>
                '''
                for m in mentions[:MAX_MENTIONS_PER_BRAND]
            )
            blocks.append(f'''
            <h2>{html.escape(brand_name)} <span class="muted">({len(mentions)} mentions)</span></h2>
            {items}
            ''')

        return f"""
        <div class="page">
            {self._section_header("Mentions by Brand")}
            {"".join(blocks) or '<p class="muted">No mentions were recorded.</p>'}
        </div>
        """

    # =========================================================================
    # METHODOLOGY
    # =========================================================================

    def _build_methodology(self) -> str:
        return f"""
        <div class="page">
            {self._section_header("Methodology")}
            <p>Search prompts were generated per business category and sent to an AI
            assistant. Each response was scanned for the analysed brand and its
            competitors using case-insensitive whole-word matching.</p>
            <p><strong>Share of voice</strong> is the number of responses mentioning a
            brand divided by the mentions of all tracked brands.
            <strong>AI visibility score</strong> is the percentage of responses that
            mention the analysed brand at least once.</p>
        </div>
        """
