from __future__ import annotations

import logging
from typing import Generator

from sqlalchemy.orm import Session

from ingestion.db.session import ensure_schema, session_scope

logger = logging.getLogger(__name__)


def init_db() -> bool:
    """Create missing tables; returns False when the store is not configured."""
    try:
        ensure_schema()
    except RuntimeError as exc:
        logger.warning("api.store_unconfigured", extra={"error": str(exc)})
        return False
    return True


def session_dependency() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session
