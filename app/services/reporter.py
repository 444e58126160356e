"""Record the outcome of a sync run: structured log line and, when a session is given, a SyncReport row."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import SyncReport
from app.schemas.sync import TicketsReport
from app.schemas.tracker import RequestContext
from app.services.reconciliation import ReconcileResult

logger = logging.getLogger(__name__)


class SyncReporter:
    """
    Holds the report of the most recent run. Each record() replaces it.

    Persistence is best effort: tickets have already been written by the time
    a report is recorded, so a database failure is logged and not raised.
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session = session
        self.report: TicketsReport | None = None

    def record(
        self,
        scan_id: str | None,
        context: RequestContext,
        project_key: str,
        result: ReconcileResult,
    ) -> TicketsReport:
        report = TicketsReport(
            scan_id=scan_id,
            application=context.application,
            repo=context.repo_name,
            branch=context.branch,
            project_key=project_key,
            new_ids=list(result.new_ids),
            updated_ids=list(result.updated_ids),
            closed_ids=list(result.closed_ids),
        )
        self.report = report
        logger.info(
            "Ticket sync completed",
            extra={
                "scan_id": scan_id,
                "project_key": project_key,
                "application": context.application,
                "repo": context.repo_name,
                "branch": context.branch,
                "new_count": len(report.new_ids),
                "updated_count": len(report.updated_ids),
                "closed_count": len(report.closed_ids),
            },
        )
        if self._session is not None:
            self._persist(self._session, report)
        return report

    def _persist(self, session: Session, report: TicketsReport) -> None:
        try:
            session.add(
                SyncReport(
                    scan_id=report.scan_id,
                    application=report.application,
                    repo=report.repo,
                    branch=report.branch,
                    project_key=report.project_key,
                    new_ids=report.new_ids,
                    updated_ids=report.updated_ids,
                    closed_ids=report.closed_ids,
                )
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to persist sync report", extra={"scan_id": report.scan_id})
