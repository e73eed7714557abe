"""
Chart Generator for Reports

Generates inline SVG charts for the PDF export.
"""

import html
import logging
import math
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_COLORS = ["#4361ee", "#3f37c9", "#4895ef", "#4cc9f0", "#f72585", "#b5179e"]
BRAND_COLOR = "#f72585"


class ChartGenerator:
    """
    Generates charts for reports.

    Uses inline SVG for PDF compatibility.
    """

    @staticmethod
    def generate_bar_chart(
        data: List[Dict[str, Any]],
        label_key: str = "label",
        value_key: str = "value",
        width: int = 600,
        height: int = 300,
        color: str = "#4361ee",
        highlight_key: Optional[str] = None,
        value_suffix: str = "",
    ) -> str:
        """
        Generate a horizontal bar chart as SVG.

        Args:
            data: List of {label_key: label, value_key: value} dicts
            label_key: Key for labels
            value_key: Key for values
            width: Chart width
            height: Chart height
            color: Bar color
            highlight_key: Boolean key marking bars drawn in BRAND_COLOR
            value_suffix: Appended to the value labels (e.g. "%")

        Returns:
            SVG string
        """
        if not data:
            return "<p>No data available for chart.</p>"

        data = data[:10]  # Limit to 10 bars
        max_val = max(d.get(value_key, 0) for d in data) or 1

        margin = {"left": 150, "right": 60, "top": 20, "bottom": 20}
        chart_width = width - margin["left"] - margin["right"]
        bar_height = (height - margin["top"] - margin["bottom"]) / len(data) * 0.8
        bar_gap = (height - margin["top"] - margin["bottom"]) / len(data) * 0.2

        bars = ""
        for i, d in enumerate(data):
            label = html.escape(str(d.get(label_key, ""))[:20])
            value = d.get(value_key, 0)
            bar_width = (value / max_val) * chart_width
            fill = BRAND_COLOR if highlight_key and d.get(highlight_key) else color

            y = margin["top"] + i * (bar_height + bar_gap)

            bars += f"""
            <text x="{margin["left"] - 10}" y="{y + bar_height / 2 + 4}" text-anchor="end" font-size="10" fill="#333">{label}</text>
            <rect x="{margin["left"]}" y="{y}" width="{bar_width}" height="{bar_height}" fill="{fill}" rx="2"/>
            <text x="{margin["left"] + bar_width + 5}" y="{y + bar_height / 2 + 4}" font-size="10" fill="#666">{value:,.2f}{value_suffix}</text>
            """

        svg = f"""
        <svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">
            <rect width="{width}" height="{height}" fill="white"/>
            {bars}
        </svg>
        """

        return svg

    @staticmethod
    def generate_pie_chart(
        data: List[Dict[str, Any]],
        label_key: str = "label",
        value_key: str = "value",
        size: int = 300,
        colors: Optional[List[str]] = None,
    ) -> str:
        """
        Generate a pie chart with a legend as SVG.

        Args:
            data: List of {label_key: label, value_key: value} dicts
            label_key: Key for labels
            value_key: Key for values
            size: Pie diameter plus padding
            colors: List of colors to use

        Returns:
            SVG string
        """
        data = [d for d in data if d.get(value_key, 0) > 0][:6]
        if not data:
            return "<p>No data available for chart.</p>"

        colors = colors or DEFAULT_COLORS

        total = sum(d.get(value_key, 0) for d in data)
        cx, cy = size / 2, size / 2
        r = size / 2 - 20

        paths = ""
        legend = ""
        start_angle = 0

        for i, d in enumerate(data):
            value = d.get(value_key, 0)
            angle = (value / total) * 360
            color = colors[i % len(colors)]

            if angle >= 360:
                # A single slice cannot be drawn as an arc
                paths += f'<circle cx="{cx}" cy="{cy}" r="{r}" fill="{color}"/>'
            else:
                end_angle = start_angle + angle
                large_arc = 1 if angle > 180 else 0

                x1 = cx + r * math.cos(math.radians(start_angle - 90))
                y1 = cy + r * math.sin(math.radians(start_angle - 90))
                x2 = cx + r * math.cos(math.radians(end_angle - 90))
                y2 = cy + r * math.sin(math.radians(end_angle - 90))

                paths += f'<path d="M {cx} {cy} L {x1} {y1} A {r} {r} 0 {large_arc} 1 {x2} {y2} Z" fill="{color}"/>'
                start_angle = end_angle

            label = html.escape(str(d.get(label_key, ""))[:24])
            legend_y = 20 + i * 18
            legend += f"""
            <rect x="{size + 10}" y="{legend_y - 9}" width="10" height="10" fill="{color}"/>
            <text x="{size + 26}" y="{legend_y}" font-size="10" fill="#333">{label} ({value:,.1f}%)</text>
            """

        svg = f"""
        <svg width="{size + 200}" height="{size}" xmlns="http://www.w3.org/2000/svg">
            <rect width="{size + 200}" height="{size}" fill="white"/>
            {paths}
            {legend}
        </svg>
        """

        return svg
