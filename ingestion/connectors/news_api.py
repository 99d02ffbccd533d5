"""NewsAPI connector (provider-injected for tests/offline)."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx

from ingestion.models.domain import CandidateItem, ExtractedDetail
from ingestion.services.extractor import clean_summary, parse_timestamp
from ingestion.settings import Settings, get_settings

from .base import PermanentError, TransientError, call_with_retries, raise_for_status

ProviderFn = Callable[[str, int], List[Dict[str, Any]]]

SOURCE_NAME = "NewsAPI"
REMOVED_MARKER = "[Removed]"
QUERY = '(Lagos OR Nigeria OR "Gidi" OR Nigerian) AND (entertainment OR music OR nightlife OR events OR culture)'


class NewsAPIConnector:
    """Keyed news search returning candidates with pre-resolved metadata.

    - provider injected: offline mode, the callable returns raw article dicts
    - no provider: real HTTP call against ``NEWS_API_ENDPOINT``
    """

    def __init__(
        self,
        provider: Optional[ProviderFn] = None,
        settings: Optional[Settings] = None,
        *,
        summary_max_length: int = 150,
    ):
        self._provider = provider
        self._settings = settings
        self._summary_max_length = summary_max_length

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def fetch(self, category: str, limit: int, *, max_attempts: int = 1) -> List[CandidateItem]:
        raw = call_with_retries(lambda: self._fetch_raw(category, limit), max_attempts=max_attempts)
        return self.normalize(raw, category)

    def _fetch_raw(self, category: str, limit: int) -> List[Dict[str, Any]]:
        if self._provider is not None:
            return self._provider(category, limit)

        cfg = self.settings
        if not cfg.news_api_key:
            raise PermanentError("NEWS_API_KEY is not configured.")

        params = {
            "q": QUERY,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": min(int(limit), 100),
            "domains": ",".join(cfg.news_api_domain_list),
        }
        try:
            resp = httpx.get(
                cfg.news_api_endpoint,
                headers={"X-Api-Key": cfg.news_api_key.get_secret_value()},
                params=params,
                timeout=cfg.http_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise TransientError("NewsAPI timeout") from exc
        except httpx.HTTPError as exc:
            raise TransientError("NewsAPI request failed") from exc
        raise_for_status(resp, "NewsAPI")
        return resp.json().get("articles") or []

    def normalize(self, items: List[Dict[str, Any]], category: str) -> List[CandidateItem]:
        candidates: List[CandidateItem] = []
        for item in items:
            title = str(item.get("title") or "").strip()
            summary = str(item.get("description") or "").strip()
            url = str(item.get("url") or "").strip()
            if not title or title == REMOVED_MARKER or not summary or summary == REMOVED_MARKER:
                continue
            published = parse_timestamp(str(item.get("publishedAt") or "")) if item.get("publishedAt") else None
            # undated rows fall back to fetching the article page
            detail = None
            if published is not None:
                detail = ExtractedDetail(
                    image_url=item.get("urlToImage") or None,
                    publish_date=published,
                    summary=clean_summary(summary, self._summary_max_length),
                )
            source = (item.get("source") or {}).get("name") or SOURCE_NAME
            candidates.append(
                CandidateItem(
                    source_name=source,
                    url=url,
                    title_text=title,
                    category=category if category not in ("", "all") else "general",
                    detail=detail,
                )
            )
        return candidates
