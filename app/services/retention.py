"""Data retention: delete sync reports older than RETENTION_HOURS."""

import logging
from datetime import datetime, timezone, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.models import SyncReport

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_retention(session: Session, settings: "Settings") -> int:
    """
    Delete sync reports created before now - RETENTION_HOURS.

    Returns the number of reports deleted. Idempotent: safe to run repeatedly.
    Tickets in the tracker are never touched.
    """
    if not settings.RETENTION_ENABLED:
        logger.info("Retention is disabled (RETENTION_ENABLED=false); skipping.")
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.RETENTION_HOURS)
    deleted_count = (
        session.query(SyncReport)
        .filter(SyncReport.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    session.commit()

    if deleted_count > 0:
        logger.info(
            "Retention run: cutoff=%s, reports_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
