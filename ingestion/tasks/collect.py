"""Celery tasks for the news ingestion workflow."""

from __future__ import annotations

import uuid
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from celery import shared_task

from ingestion.connectors.base import ConnectorError, FetchFn, HttpFetcher
from ingestion.connectors.listing import SourceFetcher
from ingestion.connectors.news_api import NewsAPIConnector
from ingestion.db.session import ensure_schema, session_scope
from ingestion.models.domain import IngestionReport
from ingestion.repositories.articles import (
    JobRunRecorder,
    deactivate_stale_articles,
    load_existing_urls,
    upsert_articles,
)
from ingestion.services.deduplicator import DedupState, dedupe
from ingestion.services.extractor import ArticleDetailExtractor
from ingestion.services.pipeline import FreshnessPolicy, final_gate, validate_candidates
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

# Fetch factory is kept pluggable for tests; it must return a url -> text callable.
FETCH_FACTORY: Callable[[Settings], FetchFn] | None = None

logger = get_logger(__name__)


def _open_fetch(settings: Settings, stack: ExitStack) -> FetchFn:
    if FETCH_FACTORY is not None:
        return FETCH_FACTORY(settings)
    return stack.enter_context(HttpFetcher.from_settings(settings))


def ingest_core(
    category: str = "general",
    limit: int = 10,
    *,
    settings: Optional[Settings] = None,
    news_api: Optional[NewsAPIConnector] = None,
    now: Optional[datetime] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> IngestionReport:
    """Fetch, validate, dedupe and persist one batch; test-friendly.

    Source-, candidate- and row-level failures are logged and skipped. Errors
    outside those scopes (store unreachable) propagate after the job run is
    recorded as failed.
    """
    config = settings or get_settings()
    ensure_schema(config)
    current = now or datetime.now(timezone.utc)
    trace_id = str(uuid.uuid4())
    report = IngestionReport(trace_id=trace_id, category=category)
    logger.info("ingest.start", extra={"trace_id": trace_id, "category": category, "limit": limit})

    if news_api is None and config.news_api_key:
        news_api = NewsAPIConnector(settings=config, summary_max_length=config.summary_max_length)

    with ExitStack() as stack, session_scope(config) as session, JobRunRecorder(
        session, category=category, source="scraper", task_name="ingest_news", trace_id=trace_id
    ):
        fetch = _open_fetch(config, stack)
        state = DedupState(existing_in_store=load_existing_urls(session))

        overrides: Dict[str, Any] = {"sleep": sleep} if sleep is not None else {}
        candidates = SourceFetcher.from_settings(fetch, config, **overrides).discover(config.news_sources, category)
        if news_api is not None:
            try:
                candidates.extend(news_api.fetch(category, limit, max_attempts=config.http_max_attempts))
            except ConnectorError as exc:
                logger.warning("fetch.source_failed", extra={"trace_id": trace_id, "source": "NewsAPI", "error": str(exc)})
        report.discovered = len(candidates)

        extractor = ArticleDetailExtractor(fetch, summary_max_length=config.summary_max_length)
        validated = validate_candidates(
            candidates, extractor, policy=FreshnessPolicy.from_settings(config), now=current
        )
        report.validated = len(validated)

        dedupe(validated, state, threshold=config.title_similarity_threshold)
        batch = final_gate(state.accepted)
        report.deduplicated = len(batch)

        report.results = upsert_articles(
            session, batch, synced_at=current, existing_in_store=state.existing_in_store
        )
        written = {r.key for r in report.results if r.ok}
        report.articles = [item for item in batch if item.url in written][:limit]

        retired = deactivate_stale_articles(session, current - timedelta(days=config.freshness_window_days))
        logger.info(
            "ingest.finished",
            extra={
                "trace_id": trace_id,
                "category": category,
                "discovered": report.discovered,
                "validated": report.validated,
                "deduplicated": report.deduplicated,
                "inserted": report.inserted,
                "updated": report.updated,
                "failed": report.failed,
                "retired": retired,
            },
        )
    return report


@shared_task(name="ingestion.tasks.collect.ingest_news")
def ingest_news(category: str = "general", limit: int = 10) -> Dict[str, Any]:  # pragma: no cover - wrapper
    report = ingest_core(category, limit)
    return {
        "trace_id": report.trace_id,
        "category": report.category,
        "inserted": report.inserted,
        "updated": report.updated,
        "failed": report.failed,
    }
