"""Utility modules for the application."""

from insight_studio.utils.text_extraction import (
    TextExtractionError,
    UnsupportedFileTypeError,
    extract_text,
)
from insight_studio.utils.url import (
    InvalidWebsiteURLError,
    normalize_url,
    same_site,
    validate_website_url,
)

__all__ = [
    "InvalidWebsiteURLError",
    "TextExtractionError",
    "UnsupportedFileTypeError",
    "extract_text",
    "normalize_url",
    "same_site",
    "validate_website_url",
]
