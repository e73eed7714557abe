"""
Snowball Visibility - Report Generation

PDF export of one analysis:
- HTML report built from the reconciled view-model
- Inline SVG share-of-voice charts
- WeasyPrint rendering
"""

from .report import ReportBuilder
from .charts import ChartGenerator
from .generator import ReportGenerator, GeneratedReport, group_mentions_by_brand

__all__ = [
    "ReportBuilder",
    "ChartGenerator",
    "ReportGenerator",
    "GeneratedReport",
    "group_mentions_by_brand",
]
