"""
Text processing utilities for prospect.

Contains small parsing/cleaning helpers for text scraped off rendered pages,
plus the well-formedness checks the extraction policies plug into their predicates.
"""

from typing import Iterable, Optional

import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBSITE_PATTERN = re.compile(r"^https?://(www\.)?[a-zA-Z0-9-]+\.[a-zA-Z]{2,}")


def contains_any(text: Optional[str], vocabulary: Iterable[str]) -> Optional[str]:
    """
    Return the first vocabulary entry found in text (case-insensitive), or None.

    Args:
        text: The string to search
        vocabulary: Phrases to look for (e.g., ["loading", "searching"])

    Returns:
        The matching vocabulary entry as given, or None if nothing matched
    """
    if not text:
        return None

    lowered = text.lower()
    for phrase in vocabulary:
        if phrase and phrase.lower() in lowered:
            return phrase
    return None


def find_phrase(text: Optional[str], phrases: Iterable[str]) -> Optional[str]:
    """
    Like contains_any, but a phrase only counts as a whole word sequence.

    "0 results" matches "Showing 0 results" but not "10 results".
    """
    if not text:
        return None

    for phrase in phrases:
        if not phrase:
            continue
        pattern = r"(?<!\w)" + re.escape(phrase) + r"(?!\w)"
        if re.search(pattern, text, flags=re.IGNORECASE):
            return phrase
    return None


def clean_scraped_text(text: Optional[str]) -> str:
    """
    Flatten element text to a single line.

    Separators that card layouts put between name parts (bullets, pipes,
    dashes) become spaces, and runs of whitespace collapse to one space.
    """
    if not text:
        return ""
    text = re.sub(r"[\n\r\t•|–—]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def looks_like_email(text: Optional[str]) -> bool:
    """True if text is a single address shaped like local@domain.tld."""
    if not text:
        return False
    text = text.strip()
    return len(text) > 5 and EMAIL_PATTERN.match(text) is not None


def looks_like_person_name(text: Optional[str], blocked_substrings: Iterable[str] = ()) -> bool:
    """
    Check if text reads like a person's "First Last" name.

    People lists on company pages are interleaved with headings, buttons and
    ads, so anything containing a blocked substring is rejected. The blocklist
    over-rejects some legitimate names; it lives in config so it can be tuned.

    Args:
        text: Candidate name
        blocked_substrings: Case-insensitive substrings that disqualify a name

    Returns:
        True if the text passes length, shape and blocklist checks
    """
    if not text:
        return False

    clean_name = text.strip()
    if len(clean_name) < 3 or len(clean_name) > 50:
        return False

    # Must have at least a first and last part
    if " " not in clean_name or len(clean_name.split()) < 2:
        return False

    if re.search(r"[0-9]", clean_name):
        return False

    return contains_any(clean_name, blocked_substrings) is None


def looks_like_job_title(text: Optional[str]) -> bool:
    if not text:
        return False
    return 2 <= len(text.strip()) <= 200


def looks_like_website(url: Optional[str], excluded_domains: Iterable[str] = ()) -> bool:
    """
    Check if url is an outbound company website link.

    Args:
        url: Candidate link (must include the http(s) scheme)
        excluded_domains: Domains that never count as a company's own site
            (search engines, social networks, job boards)

    Returns:
        True if url is an http(s) link to a non-excluded domain
    """
    if not url:
        return False
    url = url.strip()
    if WEBSITE_PATTERN.match(url) is None:
        return False
    return contains_any(url, excluded_domains) is None


def clean_domain(domain: str) -> str:
    """
    Reduce a website or URL to its bare domain.

    Example:
        >>> clean_domain("https://www.acme.com/careers")
        "acme.com"
    """
    domain = domain.strip()
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"^www\.", "", domain)
    return domain.split("/")[0].lower()


def normalize_website(url: str) -> str:
    """Prefix a missing scheme and drop the trailing slash."""
    url = url.strip()
    if not url.startswith("http"):
        url = f"https://{url}"
    return url.rstrip("/")
