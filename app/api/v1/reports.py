"""Reports endpoint: latest persisted sync reports."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models import SyncReport
from app.schemas.sync import SyncReportItem, SyncReportsResponse

router = APIRouter()


@router.get("", response_model=SyncReportsResponse)
def get_reports(
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    project_key: str | None = None,
) -> SyncReportsResponse:
    """Most recent sync reports first, optionally for one tracker project."""
    query = db.query(SyncReport)
    if project_key:
        query = query.filter(SyncReport.project_key == project_key)
    rows = query.order_by(SyncReport.created_at.desc()).limit(limit).all()
    return SyncReportsResponse(reports=[SyncReportItem.model_validate(r) for r in rows])
