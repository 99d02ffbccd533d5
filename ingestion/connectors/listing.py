"""Listing-page connector: discovers candidate article links per source."""

from __future__ import annotations

import re
import time
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from ingestion.connectors.base import ConnectorError, FetchFn, call_with_retries
from ingestion.models.domain import CandidateItem, SourceConfig, SourceKind
from ingestion.services.freshness import has_http_scheme, is_valid_url
from ingestion.settings import Settings
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

# Generic structural selectors, in priority order.
HEADLINE_SELECTORS: Tuple[str, ...] = (
    "h1 a[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".entry-title a[href]",
    ".post-title a[href]",
    "article a[href]",
)

ALL_CATEGORIES = frozenset({"", "all", "general"})

_WS_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def source_origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/"


def resolve_href(href: str, source: SourceConfig) -> str:
    """Absolute, fragment-free URL for a listing href; ValueError when malformed."""
    if href.startswith("/"):
        href = urljoin(source_origin(source.url), href)
    elif not urlsplit(href).scheme:
        href = urljoin(source.url, href)
    return href.split("#")[0]


def parse_listing(html: str, source: SourceConfig) -> List[Tuple[str, str]]:
    """Return ``(absolute_url, title)`` pairs in document order, first href wins."""
    soup = BeautifulSoup(html, "lxml")
    seen: set[str] = set()
    links: List[Tuple[str, str]] = []
    for selector in HEADLINE_SELECTORS:
        for anchor in soup.select(selector):
            href = (anchor.get("href") or "").strip()
            title = collapse_whitespace(anchor.get_text(" ", strip=True))
            if not title or not is_valid_url(href) or href.startswith("#"):
                continue
            try:
                href = resolve_href(href, source)
            except ValueError:
                logger.debug("fetch.bad_href", extra={"source": source.name, "url": href})
                continue
            if not has_http_scheme(href):
                continue
            if href in seen:
                continue
            seen.add(href)
            links.append((href, title))
    return links


def is_relevant(title: str, source: SourceConfig, *, city: str, min_title_length: int) -> bool:
    """General-news titles must name the city; entertainment titles just need length."""
    if source.kind is SourceKind.ENTERTAINMENT:
        return len(title) > min_title_length
    return city.lower() in title.lower()


def select_sources(sources: Iterable[SourceConfig], category: Optional[str]) -> List[SourceConfig]:
    wanted = (category or "").strip().lower()
    if wanted in ALL_CATEGORIES:
        return list(sources)
    return [s for s in sources if s.category == wanted]


class SourceFetcher:
    """Walks the source registry sequentially and collects candidates.

    A failing source is logged and skipped. Sources are paced with a fixed
    delay rather than fetched concurrently.
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        city: str = "Lagos",
        min_title_length: int = 20,
        per_source_cap: int = 3,
        total_cap: int = 15,
        delay_seconds: float = 2.0,
        max_attempts: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._city = city
        self._min_title_length = min_title_length
        self._per_source_cap = per_source_cap
        self._total_cap = total_cap
        self._delay = delay_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    @classmethod
    def from_settings(cls, fetch: FetchFn, settings: Settings, **overrides) -> "SourceFetcher":
        params = dict(
            city=settings.target_city,
            min_title_length=settings.entertainment_min_title_length,
            per_source_cap=settings.max_candidates_per_source,
            total_cap=settings.max_candidates,
            delay_seconds=settings.source_delay_seconds,
            max_attempts=settings.http_max_attempts,
        )
        params.update(overrides)
        return cls(fetch, **params)

    def discover(self, sources: Sequence[SourceConfig], category: Optional[str] = None) -> List[CandidateItem]:
        candidates: List[CandidateItem] = []
        for index, source in enumerate(select_sources(sources, category)):
            if len(candidates) >= self._total_cap:
                break
            if index > 0 and self._delay > 0:
                self._sleep(self._delay)
            remaining = self._total_cap - len(candidates)
            try:
                found = self._discover_source(source, limit=min(self._per_source_cap, remaining))
            except ConnectorError as exc:
                logger.warning("fetch.source_failed", extra={"source": source.name, "error": str(exc)})
                continue
            except Exception as exc:  # parse failures must not abort the run
                logger.exception("fetch.source_failed", extra={"source": source.name, "error": str(exc)})
                continue
            logger.info("fetch.source_done", extra={"source": source.name, "candidates": len(found)})
            candidates.extend(found)
        return candidates

    def _discover_source(self, source: SourceConfig, *, limit: int) -> List[CandidateItem]:
        html = call_with_retries(lambda: self._fetch(source.url), max_attempts=self._max_attempts)
        found: List[CandidateItem] = []
        for url, title in parse_listing(html, source):
            if len(found) >= limit:
                break
            if not is_valid_url(url):
                continue
            if not is_relevant(title, source, city=self._city, min_title_length=self._min_title_length):
                continue
            found.append(
                CandidateItem(source_name=source.name, url=url, title_text=title, category=source.category)
            )
        return found
