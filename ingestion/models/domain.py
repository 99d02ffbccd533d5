"""Domain DTOs for the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SourceKind(str, Enum):
    GENERAL = "general"
    ENTERTAINMENT = "entertainment"


class SourceConfig(BaseModel):
    """A named listing page in the source registry."""

    name: str = Field(..., description="Provenance label stored with each article.")
    url: str = Field(..., description="Listing page URL.")
    kind: SourceKind = Field(SourceKind.GENERAL, description="Relevance policy for titles.")
    category: str = Field("general", description="Category tag used for filtering and persistence.")

    @field_validator("name", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("category")
    @classmethod
    def _lower_category(cls, value: str) -> str:
        return value.strip().lower() or "general"


class ExtractedDetail(BaseModel):
    """Metadata recovered from an article page.

    ``publish_date`` is mandatory: a page without a resolvable date never
    produces an ExtractedDetail.
    """

    image_url: Optional[str] = None
    publish_date: datetime
    summary: Optional[str] = None


class CandidateItem(BaseModel):
    """A (url, title) pair discovered on a listing page or from a news API."""

    source_name: str
    url: str
    title_text: str
    category: str = "general"
    detail: Optional[ExtractedDetail] = Field(
        None,
        description="Pre-resolved metadata (API sources); skips the detail fetch when present.",
    )


class ArticleCandidate(BaseModel):
    """A validated article ready for deduplication and persistence."""

    title: str
    url: str
    source: str
    category: str = "general"
    image_url: Optional[str] = None
    publish_date: datetime
    summary: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: CandidateItem, detail: ExtractedDetail) -> "ArticleCandidate":
        return cls(
            title=candidate.title_text,
            url=candidate.url,
            source=candidate.source_name,
            category=candidate.category,
            image_url=detail.image_url,
            publish_date=detail.publish_date,
            summary=detail.summary,
        )


class EventCandidate(BaseModel):
    """Event-like content keyed by (title, start_date)."""

    title: str
    start_date: datetime
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    category: str = "general"
    venue_name: Optional[str] = None
    image_url: Optional[str] = None
    external_url: Optional[str] = None
    source: str = "scraped"

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        title = value.strip()
        if not title:
            raise ValueError("title must not be blank")
        return title


class WriteAction(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    FAILED = "failed"


class WriteResult(BaseModel):
    """Outcome of persisting a single item."""

    key: str
    action: WriteAction
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.action is not WriteAction.FAILED


class IngestionReport(BaseModel):
    """Summary of one ingestion run."""

    trace_id: str
    category: str
    discovered: int = 0
    validated: int = 0
    deduplicated: int = 0
    results: list[WriteResult] = Field(default_factory=list)
    articles: list[ArticleCandidate] = Field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(1 for r in self.results if r.action is WriteAction.INSERTED)

    @property
    def updated(self) -> int:
        return sum(1 for r in self.results if r.action is WriteAction.UPDATED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.action is WriteAction.FAILED)
