"""
CLI entrypoint for the sync report retention job. Run from cron, e.g.:

  python -m app.retention

Or daily: 0 3 * * * cd /path/to/scan-ticket-sync && .venv/bin/python -m app.retention
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.database import session_scope
from app.services.retention import run_retention

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run retention: delete sync reports older than RETENTION_HOURS."""
    settings = get_settings()
    try:
        with session_scope() as db:
            reports_deleted = run_retention(db, settings)
    except SQLAlchemyError as e:
        logger.exception("Retention job failed: %s", e)
        return 1
    logger.info("Retention completed: reports_deleted=%s", reports_deleted)
    return 0


if __name__ == "__main__":
    sys.exit(main())
