"""Event persistence keyed on (title, start_date)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ingestion.db.models import Event
from ingestion.models.domain import EventCandidate, WriteAction, WriteResult
from ingestion.services.freshness import as_utc
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


def event_key(item: EventCandidate) -> str:
    return f"{item.title}@{as_utc(item.start_date).isoformat()}"


def _upsert_event(session: Session, item: EventCandidate, synced_at: datetime) -> WriteAction:
    start = as_utc(item.start_date)
    entity = session.execute(
        select(Event).where(Event.title == item.title, Event.start_date == start)
    ).scalar_one_or_none()
    action = WriteAction.UPDATED
    if entity is None:
        entity = Event(title=item.title, start_date=start)
        session.add(entity)
        action = WriteAction.INSERTED
    entity.end_date = as_utc(item.end_date) if item.end_date else None
    entity.description = item.description
    entity.category = item.category
    entity.venue_name = item.venue_name
    entity.image_url = item.image_url
    entity.external_url = item.external_url
    entity.source = item.source
    entity.is_active = True
    entity.last_synced_at = synced_at
    session.flush()
    return action


def upsert_events(
    session: Session,
    items: Sequence[EventCandidate],
    *,
    synced_at: Optional[datetime] = None,
) -> List[WriteResult]:
    synced = synced_at or datetime.now(timezone.utc)
    results: List[WriteResult] = []
    for item in items:
        key = event_key(item)
        try:
            with session.begin_nested():
                action = _upsert_event(session, item, synced)
        except Exception as exc:
            logger.error("sink.write_failed", extra={"event_key": key, "error": str(exc)})
            results.append(WriteResult(key=key, action=WriteAction.FAILED, error=str(exc)[:512]))
            continue
        results.append(WriteResult(key=key, action=action))
    return results


def list_upcoming_events(
    session: Session,
    *,
    category: Optional[str] = None,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> List[Event]:
    current = as_utc(now) if now else datetime.now(timezone.utc)
    stmt = select(Event).where(Event.is_active.is_(True), Event.start_date >= current)
    if category and category != "all":
        stmt = stmt.where(Event.category == category)
    stmt = stmt.order_by(Event.start_date.asc()).limit(limit)
    return list(session.execute(stmt).scalars())
