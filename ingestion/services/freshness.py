"""URL legitimacy and publish-date policy checks.

Date *extraction* lives in :mod:`ingestion.services.extractor`; this module
only decides whether an already-resolved value is acceptable.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

PLACEHOLDER_TOKENS = ("example.com", "localhost", "test.com", "placeholder")
BLANK_URLS = frozenset({"#", "about:blank"})
SCRIPT_SCHEMES = ("javascript:", "vbscript:", "data:")
HTTP_SCHEMES = frozenset({"http", "https"})


def is_valid_url(url: Optional[str]) -> bool:
    """Return False for empty, placeholder, sandbox or script URLs."""
    if not url:
        return False
    candidate = url.strip()
    if not candidate:
        return False
    lowered = candidate.lower()
    if lowered in BLANK_URLS:
        return False
    if lowered.startswith(SCRIPT_SCHEMES):
        return False
    return not any(token in lowered for token in PLACEHOLDER_TOKENS)


def has_http_scheme(url: Optional[str]) -> bool:
    """True only for absolute http(s) URLs; mailto:, tel:, ftp: and relative paths fail."""
    if not url:
        return False
    try:
        return urlsplit(url.strip()).scheme.lower() in HTTP_SCHEMES
    except ValueError:
        return False


class DateVerdict(str, Enum):
    ACCEPTED = "accepted"
    FUTURE = "future"
    IMPLAUSIBLE = "implausible"
    STALE = "stale"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def evaluate_publish_date(
    publish_date: datetime,
    *,
    now: Optional[datetime] = None,
    freshness_days: int = 60,
    max_age_days: int = 365,
) -> DateVerdict:
    """Classify a resolved publish date.

    FUTURE and IMPLAUSIBLE point at clock skew or a bad parse; STALE is a
    well-formed date outside the product's freshness window.
    """
    current = as_utc(now) if now is not None else datetime.now(timezone.utc)
    published = as_utc(publish_date)
    if published > current:
        return DateVerdict.FUTURE
    age = current - published
    if age > timedelta(days=max_age_days):
        return DateVerdict.IMPLAUSIBLE
    if age > timedelta(days=freshness_days):
        return DateVerdict.STALE
    return DateVerdict.ACCEPTED


def has_image(image_url: Optional[str]) -> bool:
    return bool(image_url and image_url.strip())
