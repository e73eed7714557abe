"""
Domain Utilities

Shared domain handling used by the API, the pipeline and the client:
- Normalization (strip protocol, www., paths)
- Hostname validation before an analysis is submitted
- Brand name derivation from a domain
- Safe filenames for exported reports
"""

import re
import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


# Simple hostname check: one label, a dot, a TLD of 2+ letters
DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}$")

_PROTOCOL_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def normalize_domain(domain: Optional[str]) -> str:
    """
    Normalize user input to a bare hostname.

    "https://www.Example.com/pricing" -> "example.com"
    """
    if not domain:
        return ""

    value = domain.strip().lower()
    value = _PROTOCOL_PATTERN.sub("", value)

    if value.startswith("www."):
        value = value[4:]

    # Drop path, query and port
    value = re.split(r"[/?#:]", value, maxsplit=1)[0]

    return value.strip(".")


def is_valid_domain(domain: Optional[str]) -> bool:
    """
    Check a domain against the hostname pattern.

    The input is normalized first, so "https://www.example.com" is accepted.
    """
    normalized = normalize_domain(domain)
    if not normalized:
        return False
    return bool(DOMAIN_PATTERN.match(normalized))


def extract_brand_name(domain: Optional[str]) -> str:
    """
    Derive a display brand name from a domain.

    Takes the first hostname label and capitalizes it:
    "https://www.snowball.example.com" -> "Snowball"
    """
    normalized = normalize_domain(domain)
    if not normalized:
        return ""

    label = normalized.split(".")[0]
    if not label:
        return ""

    return label[0].upper() + label[1:]


def safe_filename_part(value: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return re.sub(r"[^a-zA-Z0-9]", "_", value or "")


def build_report_filename(
    domain: str,
    analysis_id: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Build the download filename for an analysis PDF.

    Format: SuperUser_{domain}_Analysis_{analysis_id}_{YYYY-MM-DD}.pdf
    """
    generated_at = generated_at or datetime.utcnow()
    return (
        f"SuperUser_{safe_filename_part(domain)}_Analysis_"
        f"{analysis_id}_{generated_at.strftime('%Y-%m-%d')}.pdf"
    )
