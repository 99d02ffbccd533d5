"""Repositories for persisting articles and job runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ingestion.db.models import JobRun, JobStage, JobStatus, NewsArticle
from ingestion.models.domain import ArticleCandidate, WriteAction, WriteResult
from ingestion.services.freshness import as_utc
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


def load_existing_urls(session: Session) -> Set[str]:
    """URLs of all active articles; loaded once at the start of a run."""
    stmt = select(NewsArticle.external_url).where(NewsArticle.is_active.is_(True))
    return set(session.execute(stmt).scalars())


def _apply(entity: NewsArticle, item: ArticleCandidate, synced_at: datetime) -> None:
    entity.title = item.title
    entity.summary = item.summary
    entity.category = item.category
    entity.featured_image_url = item.image_url
    entity.publish_date = as_utc(item.publish_date)
    entity.source = item.source
    entity.is_active = True
    entity.last_synced_at = synced_at


def upsert_article(session: Session, item: ArticleCandidate, synced_at: datetime) -> WriteAction:
    existing = session.execute(
        select(NewsArticle).where(NewsArticle.external_url == item.url)
    ).scalar_one_or_none()
    if existing is not None:
        _apply(existing, item, synced_at)
        session.flush()
        return WriteAction.UPDATED
    entity = NewsArticle(external_url=item.url)
    _apply(entity, item, synced_at)
    session.add(entity)
    session.flush()
    return WriteAction.INSERTED


def upsert_articles(
    session: Session,
    items: Sequence[ArticleCandidate],
    *,
    synced_at: Optional[datetime] = None,
    existing_in_store: Optional[Set[str]] = None,
) -> List[WriteResult]:
    """Upsert keyed on ``external_url``; one failed row does not stop the batch.

    Each row is written inside a SAVEPOINT. Inserted URLs are added to
    ``existing_in_store`` as soon as the write succeeds.
    """
    synced = synced_at or datetime.now(timezone.utc)
    results: List[WriteResult] = []
    for item in items:
        try:
            with session.begin_nested():
                action = upsert_article(session, item, synced)
        except Exception as exc:
            logger.error("sink.write_failed", extra={"url": item.url, "error": str(exc)})
            results.append(WriteResult(key=item.url, action=WriteAction.FAILED, error=str(exc)[:512]))
            continue
        if existing_in_store is not None:
            existing_in_store.add(item.url)
        results.append(WriteResult(key=item.url, action=action))
    return results


def list_active_articles(
    session: Session,
    *,
    category: Optional[str] = None,
    limit: int = 10,
) -> List[NewsArticle]:
    stmt = select(NewsArticle).where(NewsArticle.is_active.is_(True))
    if category and category not in ("all", "general"):
        stmt = stmt.where(NewsArticle.category == category)
    stmt = stmt.order_by(NewsArticle.publish_date.desc(), NewsArticle.created_at.desc()).limit(limit)
    return list(session.execute(stmt).scalars())


def deactivate_stale_articles(session: Session, cutoff: datetime) -> int:
    """Logically delete active articles published before ``cutoff``."""
    stmt = (
        update(NewsArticle)
        .where(NewsArticle.is_active.is_(True), NewsArticle.publish_date < as_utc(cutoff))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount or 0


class JobRunRecorder:
    """Context manager to record job run lifecycle."""

    def __init__(
        self,
        session: Session,
        *,
        stage: JobStage = JobStage.INGEST,
        category: str | None,
        source: str | None,
        task_name: str,
        trace_id: str | None = None,
    ) -> None:
        self._session = session
        self._job = JobRun(
            stage=stage,
            status=JobStatus.RUNNING,
            category=category,
            source=source,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )

    def __enter__(self) -> JobRun:
        self._session.add(self._job)
        # Durable RUNNING row even if later work fails
        self._session.commit()
        return self._job

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None:
            self._job.status = JobStatus.SUCCEEDED
        else:
            self._session.rollback()
            self._job.status = JobStatus.FAILED
            self._job.error_message = str(exc)[:512]
        self._job.finished_at = datetime.now(timezone.utc)
        self._session.add(self._job)
        try:
            self._session.commit()
        except Exception:  # pragma: no cover - do not mask original error
            self._session.rollback()
