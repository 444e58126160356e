"""Pydantic schemas for the sync API and sync reports."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.scan_results import ScanResultBundle
from app.schemas.tracker import RequestContext, TrackerTargetOverrides


class TrackerSyncRequest(BaseModel):
    """Request body for POST /sync: a finished scan and where its tickets live."""

    scan: ScanResultBundle = Field(..., description="Finished scan results.")
    context: RequestContext = Field(..., description="Repository / application context of the scan.")
    target: TrackerTargetOverrides | None = Field(
        default=None,
        description="Overrides of the configured tracker project, issue type and fields.",
    )


class TicketsReport(BaseModel):
    """Ticket ids touched by one sync run."""

    scan_id: str | None = None
    application: str | None = None
    repo: str | None = None
    branch: str | None = None
    project_key: str
    new_ids: list[str] = Field(default_factory=list)
    updated_ids: list[str] = Field(default_factory=list)
    closed_ids: list[str] = Field(default_factory=list)


class TrackerSyncResponse(BaseModel):
    """Response body for POST /sync."""

    scope: str = Field(..., description="Tracking scope used (branch, repo, application).")
    project_key: str
    findings: int = Field(..., ge=0, description="Findings after normalization.")
    existing_tickets: int = Field(..., ge=0, description="Tickets found in the tracker for this scope.")
    created: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    closed: int = Field(default=0, ge=0)
    report: TicketsReport
    skipped_fields: list[str] = Field(
        default_factory=list,
        description="Custom fields left out because the tracker rejected or did not know them.",
    )


class SyncReportItem(BaseModel):
    """Persisted sync report, as returned by GET /reports."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    scan_id: str | None = None
    application: str | None = None
    repo: str | None = None
    branch: str | None = None
    project_key: str
    new_ids: list[str] = Field(default_factory=list)
    updated_ids: list[str] = Field(default_factory=list)
    closed_ids: list[str] = Field(default_factory=list)
    created_at: datetime


class SyncReportsResponse(BaseModel):
    """Response body for GET /reports."""

    reports: list[SyncReportItem] = Field(default_factory=list)
