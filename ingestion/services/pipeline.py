"""Candidate validation: URL pre-check, detail fetch, date policy, final gate.

The URL check runs before any network call and again in :func:`final_gate`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

from ingestion.models.domain import ArticleCandidate, CandidateItem, ExtractedDetail
from ingestion.services.freshness import (
    DateVerdict,
    evaluate_publish_date,
    has_http_scheme,
    has_image,
    is_valid_url,
)
from ingestion.settings import Settings
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


class DetailSource(Protocol):
    def fetch(self, url: str) -> Optional[ExtractedDetail]: ...  # noqa: D401


@dataclass(frozen=True)
class FreshnessPolicy:
    freshness_days: int = 60
    max_age_days: int = 365

    @classmethod
    def from_settings(cls, settings: Settings) -> "FreshnessPolicy":
        return cls(freshness_days=settings.freshness_window_days, max_age_days=settings.max_article_age_days)


def validate_candidate(
    candidate: CandidateItem,
    details: DetailSource,
    *,
    policy: FreshnessPolicy,
    now: datetime,
) -> Optional[ArticleCandidate]:
    """Run one candidate through the filter chain; None means dropped."""
    url = candidate.url
    if not is_valid_url(url):
        logger.info("filter.invalid_url", extra={"url": url, "source": candidate.source_name})
        return None

    detail = candidate.detail or details.fetch(url)
    if detail is None:
        return None

    verdict = evaluate_publish_date(
        detail.publish_date,
        now=now,
        freshness_days=policy.freshness_days,
        max_age_days=policy.max_age_days,
    )
    if verdict is not DateVerdict.ACCEPTED:
        logger.info(
            "filter.date_rejected",
            extra={"url": url, "verdict": verdict.value, "publish_date": detail.publish_date.isoformat()},
        )
        return None
    return ArticleCandidate.from_candidate(candidate, detail)


def final_gate(items: Iterable[ArticleCandidate]) -> List[ArticleCandidate]:
    """Last check before persistence: legitimate URL and an image.

    Runs after dedup so an image-bearing duplicate can still displace an
    image-less one.
    """
    passed: List[ArticleCandidate] = []
    for item in items:
        if not is_valid_url(item.url) or not has_http_scheme(item.url):
            logger.warning("filter.invalid_url", extra={"url": item.url, "source": item.source, "stage": "final"})
            continue
        if not has_image(item.image_url):
            logger.info("filter.no_image", extra={"url": item.url})
            continue
        passed.append(item)
    return passed


def validate_candidates(
    candidates: Iterable[CandidateItem],
    details: DetailSource,
    *,
    policy: Optional[FreshnessPolicy] = None,
    now: Optional[datetime] = None,
) -> List[ArticleCandidate]:
    """Validate candidates sequentially, preserving discovery order."""
    policy = policy or FreshnessPolicy()
    current = now or datetime.now(timezone.utc)
    validated: List[ArticleCandidate] = []
    for candidate in candidates:
        item = validate_candidate(candidate, details, policy=policy, now=current)
        if item is not None:
            validated.append(item)
    return validated
