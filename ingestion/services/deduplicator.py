"""Exact-URL and fuzzy-title deduplication with explicit run state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from ingestion.models.domain import ArticleCandidate
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.7
MIN_SIGNIFICANT_WORD_LENGTH = 4

_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Lowercase, turn punctuation into spaces and collapse whitespace."""
    return _WS_RE.sub(" ", _PUNCT_RE.sub(" ", title.lower())).strip()


def significant_words(normalized_title: str) -> FrozenSet[str]:
    """Words longer than three characters; short connectors are noise."""
    return frozenset(w for w in normalized_title.split(" ") if len(w) >= MIN_SIGNIFICANT_WORD_LENGTH)


def title_similarity(title_a: str, title_b: str) -> float:
    """Shared significant words over the size of the smaller word set.

    Containment rather than Jaccard, so a short headline still matches its
    longer elaboration. Titles without significant words score 0.
    """
    words_a = significant_words(normalize_title(title_a))
    words_b = significant_words(normalize_title(title_b))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / min(len(words_a), len(words_b))


def are_titles_similar(title_a: str, title_b: str, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> bool:
    return title_similarity(title_a, title_b) >= threshold


@dataclass
class DedupState:
    """Identity sets and accepted items for one ingestion run.

    ``existing_in_store`` is loaded once per run; the sink adds URLs to it as
    inserts succeed so the same run never inserts a URL twice.
    """

    existing_in_store: Set[str] = field(default_factory=set)
    seen_urls: Set[str] = field(default_factory=set)
    # normalized title -> index into ``accepted``
    seen_titles: Dict[str, int] = field(default_factory=dict)
    accepted: List[ArticleCandidate] = field(default_factory=list)

    def is_known_url(self, url: str) -> bool:
        return url in self.seen_urls or url in self.existing_in_store

    def find_similar(self, normalized: str, threshold: float) -> Optional[int]:
        words = significant_words(normalized)
        if not words:
            return None
        for seen_title, index in self.seen_titles.items():
            seen_words = significant_words(seen_title)
            if not seen_words:
                continue
            if len(words & seen_words) / min(len(words), len(seen_words)) >= threshold:
                return index
        return None

    def accept(self, item: ArticleCandidate, normalized: str) -> None:
        self.seen_titles[normalized] = len(self.accepted)
        self.seen_urls.add(item.url)
        self.accepted.append(item)

    def replace(self, index: int, item: ArticleCandidate, normalized: str) -> None:
        previous = self.accepted[index]
        del self.seen_titles[normalize_title(previous.title)]
        self.seen_titles[normalized] = index
        self.seen_urls.add(item.url)
        self.accepted[index] = item


def dedupe(
    items: Iterable[ArticleCandidate],
    state: Optional[DedupState] = None,
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> DedupState:
    """Fold ``items`` into ``state`` in order and return it.

    Exact URL matches are skipped before any title comparison. A fuzzy
    duplicate replaces the accepted item only when it brings an image the
    accepted one lacks; otherwise the first processed item wins.
    """
    state = state if state is not None else DedupState()
    for item in items:
        if state.is_known_url(item.url):
            logger.debug("dedup.url_seen", extra={"url": item.url})
            continue
        normalized = normalize_title(item.title)
        match = state.find_similar(normalized, threshold)
        if match is None:
            state.accept(item, normalized)
            continue
        existing = state.accepted[match]
        if item.image_url and not existing.image_url:
            logger.info("dedup.replaced", extra={"url": item.url, "replaced_url": existing.url})
            state.replace(match, item, normalized)
        else:
            logger.debug("dedup.title_duplicate", extra={"url": item.url, "kept_url": existing.url})
    return state
