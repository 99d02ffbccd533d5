from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ingestion.db.models import Event, NewsArticle
from ingestion.db.session import session_scope
from ingestion.models.domain import ArticleCandidate, EventCandidate, WriteResult
from ingestion.repositories.articles import list_active_articles
from ingestion.repositories.events import list_upcoming_events, upsert_events
from ingestion.settings import get_settings
from ingestion.tasks import collect

from .database import session_dependency
from .fallback import fallback_articles
from .models import Article, DataSource, EventItem, EventsEnvelope, NewsEnvelope, SyncRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SessionDep = Annotated[Session, Depends(session_dependency)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _article_from_row(row: NewsArticle) -> Article:
    return Article(
        id=str(row.id),
        title=row.title,
        summary=row.summary,
        category=row.category,
        external_url=row.external_url,
        featured_image_url=row.featured_image_url,
        publish_date=row.publish_date,
        source=row.source,
    )


def _article_from_candidate(item: ArticleCandidate) -> Article:
    return Article(
        title=item.title,
        summary=item.summary,
        category=item.category,
        external_url=item.url,
        featured_image_url=item.image_url,
        publish_date=item.publish_date,
        source=item.source,
    )


def _event_from_row(row: Event) -> EventItem:
    return EventItem(
        id=str(row.id),
        title=row.title,
        description=row.description,
        category=row.category,
        start_date=row.start_date,
        end_date=row.end_date,
        venue_name=row.venue_name,
        image_url=row.image_url,
        external_url=row.external_url,
        source=row.source,
    )


def _serve_stored(
    category: str,
    limit: int,
    *,
    source: DataSource,
    empty_source: DataSource,
    error: Optional[str] = None,
) -> NewsEnvelope:
    """Serve stored rows, or the built-in items when the store is empty or down."""
    try:
        with session_scope() as session:
            rows = [_article_from_row(r) for r in list_active_articles(session, category=category, limit=limit)]
    except Exception as exc:
        logger.error("api.store_unavailable", extra={"error": str(exc)})
        return NewsEnvelope(
            data=fallback_articles(),
            source="emergency_fallback",
            timestamp=_now(),
            error=error or str(exc),
        )
    if rows:
        return NewsEnvelope(data=rows, source=source, timestamp=_now(), error=error)
    return NewsEnvelope(data=fallback_articles(), source=empty_source, timestamp=_now(), error=error)


@router.get("/news", response_model=NewsEnvelope)
def list_news_route(
    category: str = Query(default="general"),
    limit: int = Query(default=10, ge=1, le=50),
) -> NewsEnvelope:
    return _serve_stored(category, limit, source="cached", empty_source="fallback_content")


@router.post("/news/sync", response_model=NewsEnvelope)
def sync_news_route(payload: Optional[SyncRequest] = None) -> NewsEnvelope:
    request = payload or SyncRequest()
    try:
        settings = get_settings()
    except RuntimeError as exc:
        logger.error("api.sync_unconfigured", extra={"error": str(exc)})
        return _serve_stored(
            request.category,
            request.limit,
            source="cached_fallback",
            empty_source="fallback_content",
            error=str(exc),
        )

    try:
        report = collect.ingest_core(request.category, request.limit, settings=settings)
    except Exception as exc:
        logger.exception("api.sync_failed", extra={"category": request.category})
        return _serve_stored(
            request.category,
            request.limit,
            source="cached",
            empty_source="emergency_fallback",
            error=str(exc),
        )

    if report.articles:
        return NewsEnvelope(
            data=[_article_from_candidate(a) for a in report.articles],
            source="live_scraping",
            timestamp=_now(),
        )
    # nothing new this run
    return _serve_stored(request.category, request.limit, source="cached", empty_source="fallback_content")


@router.get("/events", response_model=EventsEnvelope)
def list_events_route(
    category: str = Query(default="all"),
    limit: int = Query(default=20, ge=1, le=100),
) -> EventsEnvelope:
    try:
        with session_scope() as session:
            events = [_event_from_row(e) for e in list_upcoming_events(session, category=category, limit=limit)]
    except Exception as exc:
        logger.error("api.store_unavailable", extra={"error": str(exc)})
        return EventsEnvelope(data=[], source="emergency_fallback", timestamp=_now(), error=str(exc))
    return EventsEnvelope(data=events, source="cached", timestamp=_now(), total=len(events))


@router.post("/events", response_model=list[WriteResult])
def upsert_events_route(payload: list[EventCandidate], session: SessionDep) -> list[WriteResult]:
    return upsert_events(session, payload)
