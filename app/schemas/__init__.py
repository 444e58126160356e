"""Pydantic request/response and domain schemas."""

from app.schemas.findings import Finding, LineDetail, PackageDetails, Severity
from app.schemas.health import HealthResponse
from app.schemas.scan_results import (
    ScaPackage,
    ScaResults,
    ScaVulnerability,
    ScanResultBundle,
    StaticIssue,
    StaticLineDetail,
)
from app.schemas.sync import (
    SyncReportItem,
    SyncReportsResponse,
    TicketsReport,
    TrackerSyncRequest,
    TrackerSyncResponse,
)
from app.schemas.tickets import (
    CloseTicket,
    CommentTicket,
    CreateTicket,
    ExistingTicket,
    TicketSearchPage,
    TrackerAction,
    TrackerStatus,
    UpdateTicket,
)
from app.schemas.tracker import (
    FieldMapping,
    ReferenceLinks,
    RequestContext,
    TrackerTarget,
    TrackerTargetOverrides,
)

__all__ = [
    "CloseTicket",
    "CommentTicket",
    "CreateTicket",
    "ExistingTicket",
    "FieldMapping",
    "Finding",
    "HealthResponse",
    "LineDetail",
    "PackageDetails",
    "ReferenceLinks",
    "RequestContext",
    "ScaPackage",
    "ScaResults",
    "ScaVulnerability",
    "ScanResultBundle",
    "Severity",
    "StaticIssue",
    "StaticLineDetail",
    "SyncReportItem",
    "SyncReportsResponse",
    "TicketSearchPage",
    "TicketsReport",
    "TrackerAction",
    "TrackerStatus",
    "TrackerSyncRequest",
    "TrackerSyncResponse",
    "TrackerTarget",
    "TrackerTargetOverrides",
    "UpdateTicket",
]
