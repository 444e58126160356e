"""ORM model for the audit record of one ticket sync run."""

from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base


class SyncReport(Base):
    """
    Outcome of one reconciliation: which tickets were created, updated and closed.

    One row per sync run; rows are pruned by the retention job.
    """

    __tablename__ = "sync_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scan_id = Column(String(255), nullable=True, index=True)
    application = Column(String(255), nullable=True)
    repo = Column(String(1024), nullable=True)
    branch = Column(String(1024), nullable=True)
    project_key = Column(String(255), nullable=False, index=True)
    new_ids = Column(JSONB, nullable=False, default=list)
    updated_ids = Column(JSONB, nullable=False, default=list)
    closed_ids = Column(JSONB, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
