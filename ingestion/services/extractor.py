"""Article detail extraction.

Each field is resolved by an ordered tuple of strategies. A strategy is a pure
function ``(soup, page_url) -> str | None``; the first non-empty result wins.
Parsing is kept separate from fetching so the chains can be tested on static
HTML.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from ingestion.connectors.base import ConnectorError, FetchFn
from ingestion.models.domain import ExtractedDetail
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

Strategy = Callable[[BeautifulSoup, str], Optional[str]]

ARTICLE_CONTAINERS = "article, .article-content, .entry-content, .post-content, .article-body"
CONTENT_CONTAINERS = "main, .content, #content, .story-body"

URL_DATE_RE = re.compile(r"/(\d{4})/(\d{1,2})/(\d{1,2})(?:/|$)")
_WS_RE = re.compile(r"\s+")


def first_match(strategies: Iterable[Strategy], soup: BeautifulSoup, page_url: str) -> Optional[str]:
    for strategy in strategies:
        value = strategy(soup, page_url)
        if value and value.strip():
            return value.strip()
    return None


def _meta(soup: BeautifulSoup, *, prop: Optional[str] = None, name: Optional[str] = None) -> Optional[str]:
    attrs = {"property": prop} if prop else {"name": name}
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    return content.strip() if content else None


def meta_property(prop: str) -> Strategy:
    def strategy(soup: BeautifulSoup, _url: str) -> Optional[str]:
        return _meta(soup, prop=prop)

    strategy.__name__ = f"meta_property[{prop}]"
    return strategy


def meta_name(name: str) -> Strategy:
    def strategy(soup: BeautifulSoup, _url: str) -> Optional[str]:
        return _meta(soup, name=name)

    strategy.__name__ = f"meta_name[{name}]"
    return strategy


# --- images -----------------------------------------------------------------

def first_article_image(soup: BeautifulSoup, _url: str) -> Optional[str]:
    for container in soup.select(ARTICLE_CONTAINERS):
        img = container.find("img", src=True)
        if img is not None:
            return img["src"]
    return None


IMAGE_STRATEGIES: Tuple[Strategy, ...] = (
    meta_property("og:image"),
    meta_name("twitter:image"),
    first_article_image,
)


def absolutize(url: str, page_url: str) -> str:
    """Rewrite a relative or protocol-relative path against the page's scheme/host."""
    if urlsplit(url).scheme in ("http", "https"):
        return url
    parts = urlsplit(page_url)
    return urljoin(f"{parts.scheme}://{parts.netloc}/", url) if url.startswith("/") else urljoin(page_url, url)


# --- dates ------------------------------------------------------------------

def time_element(soup: BeautifulSoup, _url: str) -> Optional[str]:
    tag = soup.find("time", attrs={"datetime": True})
    return tag["datetime"] if tag is not None else None


def url_path_date(_soup: BeautifulSoup, page_url: str) -> Optional[str]:
    match = URL_DATE_RE.search(urlsplit(page_url).path)
    if not match:
        return None
    year, month, day = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


DATE_STRATEGIES: Tuple[Strategy, ...] = (
    meta_property("article:published_time"),
    meta_name("publish-date"),
    meta_name("pubdate"),
    meta_name("date"),
    time_element,
    url_path_date,
)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a metadata timestamp; naive values are taken as UTC."""
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_publish_date(soup: BeautifulSoup, page_url: str) -> Optional[datetime]:
    # An unparseable value does not stop the chain
    for strategy in DATE_STRATEGIES:
        raw = strategy(soup, page_url)
        if not raw or not raw.strip():
            continue
        parsed = parse_timestamp(raw.strip())
        if parsed is not None:
            return parsed
    return None


# --- summaries --------------------------------------------------------------

def _first_paragraph(soup: BeautifulSoup, containers: str) -> Optional[str]:
    for container in soup.select(containers):
        for p in container.find_all("p"):
            text = p.get_text(" ", strip=True)
            if text:
                return text
    return None


def article_paragraph(soup: BeautifulSoup, _url: str) -> Optional[str]:
    return _first_paragraph(soup, ARTICLE_CONTAINERS)


def content_paragraph(soup: BeautifulSoup, _url: str) -> Optional[str]:
    return _first_paragraph(soup, CONTENT_CONTAINERS)


SUMMARY_STRATEGIES: Tuple[Strategy, ...] = (
    meta_property("og:description"),
    meta_name("description"),
    article_paragraph,
    content_paragraph,
)


def clean_summary(text: str, max_length: int = 150) -> str:
    collapsed = _WS_RE.sub(" ", text).strip()
    if len(collapsed) <= max_length:
        return collapsed
    return collapsed[:max_length].rstrip() + "..."


# --- entry points -----------------------------------------------------------

def extract_detail(html: str, page_url: str, *, summary_max_length: int = 150) -> Optional[ExtractedDetail]:
    """Parse a fetched page. Returns None when no publish date resolves."""
    soup = BeautifulSoup(html, "lxml")
    publish_date = resolve_publish_date(soup, page_url)
    if publish_date is None:
        return None
    image = first_match(IMAGE_STRATEGIES, soup, page_url)
    summary = first_match(SUMMARY_STRATEGIES, soup, page_url)
    return ExtractedDetail(
        image_url=absolutize(image, page_url) if image else None,
        publish_date=publish_date,
        summary=clean_summary(summary, summary_max_length) if summary else None,
    )


class ArticleDetailExtractor:
    """Fetches a candidate page and extracts its detail record."""

    def __init__(self, fetch: FetchFn, *, summary_max_length: int = 150) -> None:
        self._fetch = fetch
        self._summary_max_length = summary_max_length

    def fetch(self, url: str) -> Optional[ExtractedDetail]:
        try:
            html = self._fetch(url)
        except ConnectorError as exc:
            logger.warning("extract.fetch_failed", extra={"url": url, "error": str(exc)})
            return None
        except Exception as exc:  # an unexpected fetch error only drops its own candidate
            logger.exception("extract.fetch_failed", extra={"url": url, "error": str(exc)})
            return None
        try:
            detail = extract_detail(html, url, summary_max_length=self._summary_max_length)
        except Exception as exc:  # a broken page only drops its own candidate
            logger.warning("extract.parse_failed", extra={"url": url, "error": str(exc)})
            return None
        if detail is None:
            logger.info("extract.no_date", extra={"url": url})
        return detail
