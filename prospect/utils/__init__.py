"""
Shared utility functions.
"""

from prospect.utils.config_helpers import merge_configs, parse_overrides
from prospect.utils.text_processing import (
    contains_any,
    find_phrase,
    clean_scraped_text,
    looks_like_email,
    looks_like_person_name,
    looks_like_job_title,
    looks_like_website,
    clean_domain,
    normalize_website,
)

__all__ = [
    # Text processing
    "contains_any",
    "find_phrase",
    "clean_scraped_text",
    "looks_like_email",
    "looks_like_person_name",
    "looks_like_job_title",
    "looks_like_website",
    "clean_domain",
    "normalize_website",
    # Configuration utilities
    "merge_configs",
    "parse_overrides",
]
