"""Utility modules for Snowball Visibility."""

from .config import Settings, get_settings
from .domain import (
    DOMAIN_PATTERN,
    normalize_domain,
    is_valid_domain,
    extract_brand_name,
    safe_filename_part,
    build_report_filename,
)

__all__ = [
    "Settings",
    "get_settings",
    # Domain handling
    "DOMAIN_PATTERN",
    "normalize_domain",
    "is_valid_domain",
    "extract_brand_name",
    "safe_filename_part",
    "build_report_filename",
]
