#!/usr/bin/env python3
"""
Super User Analysis Runner

Runs a complete brand visibility analysis against a deployed API:
1. Brand profile (create)
2. Categories and competitors (update)
3. Search prompts (generate-prompts)
4. AI responses, mentions and share of voice (complete)
5. PDF export (download-pdf)

Usage:
    # Set environment variables first:
    export SNOWBALL_API_URL=https://api.example.com
    export SNOWBALL_API_TOKEN=your_super_user_jwt

    # Run analysis:
    python scripts/run_analysis.py example.com

    # With options:
    python scripts/run_analysis.py example.com \
        --brand "Example" \
        --competitors "Rival One" "Rival Two" \
        --output ./reports
"""

import asyncio
import argparse
import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from src.orchestrator import (
    SnowballAPIClient,
    StepOrchestrator,
    StepProgress,
    PdfDownloadError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def print_progress(entry: StepProgress):
    marker = {"completed": "✓", "failed": "✗"}.get(entry.status, "…")
    suffix = f" ({entry.message})" if entry.message else ""
    print(f"  {marker} {entry.name}{suffix}")


async def run_analysis(
    domain: str,
    brand_name: str = None,
    competitors: list = None,
    output_dir: str = "reports",
    skip_pdf: bool = False,
):
    """Run the analysis and optionally save the PDF."""

    load_dotenv()

    base_url = os.getenv("SNOWBALL_API_URL", "http://localhost:8000")
    token = os.getenv("SNOWBALL_API_TOKEN")
    if not token:
        logger.warning("SNOWBALL_API_TOKEN not set - only works against a server with AUTH_ENABLED=false")

    print("\n" + "=" * 70)
    print(f"SUPER USER ANALYSIS: {domain}")
    print("=" * 70)

    async with SnowballAPIClient(
        base_url,
        token=token,
        timeout=float(os.getenv("API_TIMEOUT", "60")),
        complete_timeout=float(os.getenv("COMPLETE_TIMEOUT", "600")),
    ) as client:
        orchestrator = StepOrchestrator(client, on_progress=print_progress)
        outcome = await orchestrator.run(domain, brand_name=brand_name, competitors=competitors)

        if not outcome.success:
            print(f"\n✗ {outcome.failure.message}")
            return None

        brand = outcome.view_model["brand"]
        print("\n" + "-" * 70)
        print(f"Brand share:        {brand['brandShare']:.2f}%")
        print(f"AI visibility:      {brand['aiVisibilityScore']:.2f}%")
        print(f"Total mentions:     {brand['totalMentions']}")
        print("-" * 70)
        for row in outcome.view_model["shareOfVoice"]:
            print(f"  {row['name']:<30} {row['mentions']:>4}  {row['share']:>6.2f}%")

        pdf_path = None
        if not skip_pdf:
            try:
                download = await orchestrator.download_pdf(outcome.analysis_id, outcome.domain)
            except PdfDownloadError as e:
                print(f"\n✗ PDF download failed: {e}")
            else:
                Path(output_dir).mkdir(parents=True, exist_ok=True)
                pdf_path = Path(output_dir) / download.filename
                pdf_path.write_bytes(download.content)
                print(f"\n✓ PDF saved: {pdf_path} ({len(download.content):,} bytes)")

    print("\n" + "=" * 70)
    print("ANALYSIS COMPLETE")
    print("=" * 70)
    print(f"Duration: {outcome.elapsed_seconds:.1f} seconds")
    print(f"Analysis ID: {outcome.analysis_id}")
    print("=" * 70 + "\n")

    return {
        "success": True,
        "analysis_id": outcome.analysis_id,
        "pdf_path": str(pdf_path) if pdf_path else None,
        "duration": outcome.elapsed_seconds,
    }


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run a Super User brand visibility analysis against the API"
    )
    parser.add_argument(
        "domain",
        help="Domain to analyze (e.g., example.com)"
    )
    parser.add_argument(
        "--brand",
        default=None,
        help="Brand name (default: derived from the domain)"
    )
    parser.add_argument(
        "--competitors",
        nargs="*",
        default=None,
        help="Known competitors (default: discovered by the server)"
    )
    parser.add_argument(
        "--output",
        default="reports",
        help="Directory for the PDF report (default: reports)"
    )
    parser.add_argument(
        "--skip-pdf",
        action="store_true",
        help="Skip the PDF download"
    )

    args = parser.parse_args()

    result = asyncio.run(run_analysis(
        domain=args.domain,
        brand_name=args.brand,
        competitors=args.competitors,
        output_dir=args.output,
        skip_pdf=args.skip_pdf,
    ))

    if not result:
        sys.exit(1)


if __name__ == "__main__":
    main()
