"""Sync endpoint: reconcile a finished scan's findings with Jira tickets."""

import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import TrackerCallError, TrackerConfigurationError, TrackerNotConfiguredError
from app.schemas.sync import TrackerSyncRequest, TrackerSyncResponse
from app.services.jira_gateway import JiraTrackerGateway
from app.services.tracker_gateway import TrackerGateway
from app.services.tracker_sync import sync_scan

logger = logging.getLogger(__name__)
router = APIRouter()


async def get_tracker_gateway() -> AsyncIterator[TrackerGateway]:
    """Dependency yielding a Jira gateway for the duration of one request."""
    try:
        gateway = JiraTrackerGateway(get_settings())
    except TrackerNotConfiguredError as e:
        logger.error("Ticket sync failed", extra={"sync_status": "failure", "reason": e.message[:500]})
        raise HTTPException(status_code=503, detail=e.message) from e
    async with gateway:
        yield gateway


@router.post("", response_model=TrackerSyncResponse)
async def post_sync(
    body: TrackerSyncRequest,
    db: Annotated[Session, Depends(get_db)],
    gateway: Annotated[TrackerGateway, Depends(get_tracker_gateway)],
) -> TrackerSyncResponse:
    """
    Create, update and close Jira tickets so they match the scan's findings.

    Tickets are scoped by branch, repo or application depending on the request
    context and tracking settings. Re-sending the same scan makes no changes.
    """
    try:
        result = await sync_scan(body, get_settings(), gateway, session=db)
    except TrackerConfigurationError as e:
        logger.error(
            "Ticket sync failed",
            extra={"sync_status": "failure", "scan_id": body.scan.scan_id, "reason": e.message[:500]},
        )
        raise HTTPException(status_code=422, detail=e.message) from e
    except TrackerCallError as e:
        logger.error(
            "Ticket sync failed",
            extra={
                "sync_status": "failure",
                "scan_id": body.scan.scan_id,
                "issue_key": e.ticket_key,
                "pending_count": len(e.pending_keys),
                "reason": e.message[:500],
            },
        )
        status = 502 if (e.status_code or 500) >= 500 else 400
        raise HTTPException(status_code=status, detail=e.message) from e
    return result
